"""A command that repeats its input, quoted and attributed."""

from ..parser import until_end
from ..plugin_base import Command, Handler, HelpPage, MessageContext, plug


def _parse_say(text: str) -> Handler:
    body = until_end(text)

    async def say(ctx: MessageContext) -> None:
        await ctx.send_message(f"> {body}\n - {ctx.mention}")
    return say


say_help = HelpPage(
    "say",
    "make the bot speak",
    "**Say**\nRepeat the input.\n\n"
    "*Usage:* `say This text will be repeated by the bot!`",
)

say_plugin = plug("say", commands=[Command("say", _parse_say)], help_pages=[say_help])
