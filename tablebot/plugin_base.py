"""Plugin declaration types for tablebot extensibility.

A plugin module exposes exactly one ``Plugin`` value, usually built
with ``plug()``::

    def _say(text: str) -> Handler:
        body = until_end(text)

        async def run(ctx: MessageContext) -> None:
            await ctx.send_message(f"> {body}\\n - {ctx.mention}")
        return run

    plugin = plug("say", commands=[Command("say", _say)])

Everything here is immutable once built; plugins are merged into a
dispatch table by ``plugin_loader.compose_plugins``.
"""

import contextlib
from dataclasses import dataclass, field
from enum import Enum
from typing import (
    Any,
    AsyncIterator,
    Awaitable,
    Callable,
    Optional,
    Protocol,
    Tuple,
    Union,
)

import structlog

from .embed import Embed
from .exceptions import MessageSendFailure, TransportError
from .models import IncomingMessage

logger = structlog.get_logger("tablebot.plugins")


class Storage(Protocol):
    """Storage collaborator: handlers run inside one of its transactions."""

    def transaction(self) -> "contextlib.AbstractAsyncContextManager[Any]":
        ...


class NullStorage:
    """Storage that provides no persistence; transactions yield None."""

    @contextlib.asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        yield None


class Transport(Protocol):
    """Chat transport collaborator.

    ``send_message`` raises TransportError when delivery fails.
    """

    async def send_message(self, target: str, content: Union[str, Embed]) -> None:
        ...


class MessageContext:
    """Execution context handed to command handlers.

    Exposes the invoking message, a send capability bound to the
    transport, and the storage transaction the handler runs in. Plugins
    should never talk to the transport directly.
    """

    def __init__(
        self,
        message: IncomingMessage,
        transport: Transport,
        storage: Optional[Storage] = None,
    ):
        self.message = message
        self._transport = transport
        self.storage = storage or NullStorage()
        # Set by the dispatcher while the handler runs
        self.transaction: Any = None

    @property
    def author_id(self) -> str:
        return self.message.author_id

    @property
    def channel(self) -> str:
        return self.message.channel

    @property
    def content(self) -> str:
        return self.message.content

    @property
    def mention(self) -> str:
        """Chat mention markup for the invoking user."""
        return f"<@{self.message.author_id}>"

    async def send_message(
        self, content: Union[str, Embed], target: Optional[str] = None
    ) -> None:
        """Send to ``target`` (default: the originating channel).

        Raises:
            MessageSendFailure: The transport could not deliver it.
        """
        target = target or self.message.channel
        try:
            await self._transport.send_message(target, content)
        except TransportError as e:
            logger.warning("send_failed", target=target, error=str(e))
            raise MessageSendFailure(
                "The bot could not deliver a message to this channel."
            ) from e

    async def reply(self, text: str) -> None:
        """Send ``text`` to the originating channel, addressed to the author."""
        await self.send_message(f"{self.mention} {text}")


Handler = Callable[[MessageContext], Awaitable[None]]

# A parser consumes the raw argument text and returns a handler bound to
# the parsed arguments, or raises ParseFailure.
CommandParser = Callable[[str], Handler]

# An inline matcher returns a match object (anything non-None) when the
# message is for it; the handler gets the context and that match.
InlineMatcher = Callable[[str], Any]
InlineHandler = Callable[[MessageContext, Any], Awaitable[None]]


@dataclass(frozen=True)
class Command:
    """A named, invocable unit with optional nested subcommands.

    Attributes:
        name: Invocation name, unique among its siblings.
        parser: Turns the raw argument text into a handler.
        subcommands: Tried in declaration order before ``parser``;
            the first whose name matches wins.
    """
    name: str
    parser: CommandParser
    subcommands: Tuple["Command", ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "subcommands", tuple(self.subcommands))

    def find_subcommand(self, name: str) -> Optional["Command"]:
        for sub in self.subcommands:
            if sub.name == name:
                return sub
        return None


@dataclass(frozen=True)
class InlineCommand:
    """A matcher run against every message that is not a command.

    Attributes:
        name: Label for logging.
        matcher: Sync function (text) -> match or None.
        handler: Async function (ctx, match) -> None.
    """
    name: str
    matcher: InlineMatcher
    handler: InlineHandler


class RequiredPermission(str, Enum):
    """Who may see a help page. Only NONE (everyone) exists so far."""
    NONE = "none"


@dataclass(frozen=True)
class HelpPage:
    """A node of help documentation attached to a command.

    Attributes:
        name: Page name, matches the command it documents.
        short_description: One-line summary shown in listings.
        long_description: Full body shown when the page is opened.
        sub_pages: Child pages; a page without children is a leaf.
        permission: Visibility tag.
    """
    name: str
    short_description: str
    long_description: str
    sub_pages: Tuple["HelpPage", ...] = ()
    permission: RequiredPermission = RequiredPermission.NONE

    def __post_init__(self):
        object.__setattr__(self, "sub_pages", tuple(self.sub_pages))

    @property
    def is_leaf(self) -> bool:
        return not self.sub_pages


@dataclass(frozen=True)
class Plugin:
    """A bundle of commands and help pages merged into the bot at startup.

    Build with ``plug()`` rather than directly.
    """
    name: str
    commands: Tuple[Command, ...] = field(default_factory=tuple)
    inline_commands: Tuple[InlineCommand, ...] = field(default_factory=tuple)
    help_pages: Tuple[HelpPage, ...] = field(default_factory=tuple)

    def __post_init__(self):
        object.__setattr__(self, "commands", tuple(self.commands))
        object.__setattr__(self, "inline_commands", tuple(self.inline_commands))
        object.__setattr__(self, "help_pages", tuple(self.help_pages))


def plug(name: str, **resources) -> Plugin:
    """Build a Plugin; every resource list not given defaults to empty.

    Raises:
        TypeError: An unknown resource kind was given.
    """
    return Plugin(name=name, **resources)
