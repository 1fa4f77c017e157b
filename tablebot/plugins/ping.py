"""Liveness check commands."""

from ..parser import no_arguments
from ..plugin_base import Command, Handler, HelpPage, MessageContext, plug


def _echo(reply: str):
    def parse(text: str) -> Handler:
        no_arguments(text)

        async def run(ctx: MessageContext) -> None:
            await ctx.send_message(reply)
        return run
    return parse


ping_help = HelpPage(
    "ping",
    "check that the bot is alive",
    "**Ping**\nThe bot answers with `pong`.\n\n*Usage:* `ping`",
)

ping_plugin = plug(
    "ping",
    commands=[Command("ping", _echo("pong")), Command("pong", _echo("ping"))],
    help_pages=[ping_help],
)
