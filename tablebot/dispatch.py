"""Message dispatch and top-level error reporting.

The dispatcher reads a composed DispatchTable and never mutates it.
Every BotException raised while parsing or running a handler ends up in
``report_exception``, which logs the terse form for operators and sends
the user-facing form back to the originating channel.
"""

from typing import Optional, Tuple

import structlog

from .exceptions import BotException, embed_error, show_error, show_user_error
from .parser import split_first
from .plugin_base import Command, MessageContext
from .plugin_loader import DispatchTable

logger = structlog.get_logger("tablebot.bot")


class Dispatcher:
    """Routes messages to commands or inline commands.

    Args:
        table: Composed dispatch table.
        prefix: Text that marks a message as a command (e.g. "!").
        rich_errors: Report errors as embeds instead of plain text.
    """

    def __init__(self, table: DispatchTable, prefix: str = "!", rich_errors: bool = False):
        self.table = table
        self.prefix = prefix
        self.rich_errors = rich_errors

    def resolve(self, text: str) -> Optional[Tuple[Command, str, Tuple[str, ...]]]:
        """Find the command a message invokes.

        Subcommands are matched in declaration order after the parent
        name matches; the first match wins.

        Returns:
            (command, remaining argument text, command path), or None if
            the text is not a known command.
        """
        text = text.lstrip()
        if not text.startswith(self.prefix):
            return None
        name, rest = split_first(text[len(self.prefix):])
        command = self.table.get(name)
        if command is None:
            return None

        path: Tuple[str, ...] = (name,)
        while command.subcommands:
            sub_name, sub_rest = split_first(rest)
            sub = command.find_subcommand(sub_name) if sub_name else None
            if sub is None:
                break
            command, rest, path = sub, sub_rest, path + (sub_name,)
        return command, rest, path

    async def dispatch(self, ctx: MessageContext) -> None:
        """Handle one incoming message end to end.

        BotExceptions are reported to the user; any other exception is
        logged and dropped so one bad command cannot stop the bot.
        """
        try:
            await self._run(ctx)
        except BotException as e:
            await self.report_exception(ctx, e)
        except Exception as e:
            logger.exception(
                "command_unexpected_error",
                error=str(e),
                error_type=type(e).__name__,
                channel=ctx.channel,
            )

    async def _run(self, ctx: MessageContext) -> None:
        resolved = self.resolve(ctx.content)
        if resolved is None:
            if self.prefix and ctx.content.lstrip().startswith(self.prefix):
                logger.debug("unknown_command", text=ctx.content[:50])
                return
            await self._run_inline(ctx)
            return

        command, args, path = resolved
        logger.info("command_invoked", command=" ".join(path), author=ctx.author_id)
        handler = command.parser(args)
        async with ctx.storage.transaction() as transaction:
            ctx.transaction = transaction
            await handler(ctx)

    async def _run_inline(self, ctx: MessageContext) -> None:
        for inline in self.table.inline_commands:
            match = inline.matcher(ctx.content)
            if match is None:
                continue
            logger.debug("inline_command_matched", inline=inline.name)
            async with ctx.storage.transaction() as transaction:
                ctx.transaction = transaction
                await inline.handler(ctx, match)
            return

    async def report_exception(self, ctx: MessageContext, e: BotException) -> None:
        """Log ``e`` for operators and tell the user, best effort.

        An exception type that ``error_info`` cannot resolve is logged
        with its traceback and dropped.
        """
        try:
            operator_text = show_error(e)
            content = embed_error(e) if self.rich_errors else show_user_error(e)
        except TypeError:
            logger.exception(
                "error_unresolvable",
                error_type=type(e).__name__,
                channel=ctx.channel,
            )
            return

        logger.warning(
            "command_failed",
            error=operator_text,
            channel=ctx.channel,
            author=ctx.author_id,
        )
        try:
            await ctx.send_message(content)
        except Exception as send_error:
            logger.error(
                "error_report_undeliverable",
                error=str(send_error),
                original=operator_text,
                channel=ctx.channel,
            )
