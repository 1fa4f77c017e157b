"""Help page tree: lookup, plain-text rendering and the ``help`` command."""

from typing import Iterator, List, Sequence, Tuple

from .exceptions import GenericException
from .plugin_base import (
    Command,
    Handler,
    HelpPage,
    MessageContext,
    Plugin,
    RequiredPermission,
    plug,
)

HELP_NAME = "help"


def build_help_root(pages: Sequence[HelpPage]) -> HelpPage:
    """Root page whose children are every plugin's top-level pages."""
    return HelpPage(
        HELP_NAME,
        "show information about commands",
        "**Help**\nShows information about the bot's commands.\n\n"
        "*Usage:* `help <command> [subcommand ...]`",
        tuple(pages),
        RequiredPermission.NONE,
    )


def visible_pages(page: HelpPage) -> List[HelpPage]:
    return [p for p in page.sub_pages if p.permission == RequiredPermission.NONE]


def find_page(root: HelpPage, path: Sequence[str]) -> HelpPage:
    """Walk ``path`` from ``root``; the first matching child wins.

    Raises:
        GenericException: No visible page at that path.
    """
    page = root
    for step in path:
        for child in visible_pages(page):
            if child.name == step:
                page = child
                break
        else:
            raise GenericException(
                "HelpException", f"There is no help page for `{' '.join(path)}`."
            )
    return page


def walk(page: HelpPage, path: Tuple[str, ...] = ()) -> Iterator[Tuple[Tuple[str, ...], HelpPage]]:
    """Depth-first (path, page) pairs below ``page``, in declaration order."""
    for child in page.sub_pages:
        child_path = path + (child.name,)
        yield child_path, child
        yield from walk(child, child_path)


def search(root: HelpPage, term: str) -> List[Tuple[str, ...]]:
    """Paths of pages whose name or short description mentions ``term``."""
    term = term.lower()
    return [
        path for path, page in walk(root)
        if term in page.name.lower() or term in page.short_description.lower()
    ]


def render_page(page: HelpPage, path: Sequence[str] = (), prefix: str = "") -> str:
    """Plain-text body of a page plus a listing of its visible children."""
    text = page.long_description
    children = visible_pages(page)
    if children:
        lines = ["", "*Subcommands*"]
        for child in children:
            invocation = prefix + " ".join(tuple(path) + (child.name,))
            lines.append(f"`{invocation}` {child.short_description}")
        text += "\n" + "\n".join(lines)
    return text


def help_plugin(root: HelpPage, prefix: str = "") -> Plugin:
    """The built-in plugin serving ``help [page ...]`` from ``root``."""

    def parse_help(text: str) -> Handler:
        path = text.split()
        page = find_page(root, path)

        async def run(ctx: MessageContext) -> None:
            await ctx.send_message(render_page(page, path, prefix))
        return run

    return plug(HELP_NAME, commands=[Command(HELP_NAME, parse_help)])
