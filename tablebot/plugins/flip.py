"""Random choices: coin flips, picking from a list, random numbers.

Randomness comes from the operating system's entropy source; when it is
unavailable the commands fail with RandomSourceFailure.
"""

import random

from ..exceptions import ParseFailure, RandomSourceFailure
from ..parser import integer, no_arguments, ordinal, split_first, words
from ..plugin_base import Command, Handler, HelpPage, MessageContext, plug
from ..propagation import transform_exception_const

_rng = random.SystemRandom()

NUMBER_USAGE = "Usage: flip number <low> <high>"


def random_index(size: int) -> int:
    """Uniform index in ``range(size)`` from the system entropy source."""
    try:
        return _rng.randrange(size)
    except (NotImplementedError, OSError) as e:
        raise RandomSourceFailure(f"Could not read the random source: {e}") from e


def _options(text: str) -> list:
    return [option.strip() for option in text.split(",") if option.strip()]


def _reply(message: str) -> Handler:
    async def run(ctx: MessageContext) -> None:
        await ctx.send_message(message)
    return run


def _parse_flip(text: str) -> Handler:
    options = _options(text) or ["Heads", "Tails"]
    return _reply(options[random_index(len(options))])


def _parse_number(text: str) -> Handler:
    tokens = words(text)
    if len(tokens) != 2:
        raise ParseFailure(NUMBER_USAGE)
    low, high = (
        transform_exception_const(lambda t=t: integer(t), ParseFailure(NUMBER_USAGE))
        for t in tokens
    )
    if low > high:
        raise ParseFailure(f"The lower bound {low} is above the upper bound {high}.")
    return _reply(str(low + random_index(high - low + 1)))


def _parse_pick(text: str) -> Handler:
    position, rest = split_first(text)
    options = _options(rest)
    if not position or not options:
        raise ParseFailure("Usage: flip pick <position> <option>, <option>, ...")
    index = ordinal(position, (1, len(options)))
    return _reply(options[index - 1])


def _parse_coin(text: str) -> Handler:
    no_arguments(text)
    return _parse_flip("")


flip_command = Command(
    "flip",
    _parse_flip,
    [
        Command("coin", _parse_coin),
        Command("number", _parse_number),
        Command("pick", _parse_pick),
    ],
)

flip_help = HelpPage(
    "flip",
    "flip a coin or choose between options",
    "**Flip**\nFlip a coin, or randomly choose one of several "
    "comma-separated options.\n\n*Usage:* `flip`, `flip tea, coffee`",
    [
        HelpPage(
            "coin", "flip a coin",
            "**Flip Coin**\nAnswer Heads or Tails.\n\n*Usage:* `flip coin`",
        ),
        HelpPage(
            "number", "pick a random whole number",
            "**Flip Number**\nPick a whole number between two bounds, inclusive."
            "\n\n*Usage:* `flip number 1 10`",
        ),
        HelpPage(
            "pick", "pick an option by position",
            "**Flip Pick**\nReturn the option at a 1-based position."
            "\n\n*Usage:* `flip pick 2 tea, coffee, juice`",
        ),
    ],
)

flip_plugin = plug("flip", commands=[flip_command], help_pages=[flip_help])
