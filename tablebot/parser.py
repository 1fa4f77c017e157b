"""Building blocks for command argument grammars.

Each command parses its own argument text. These helpers cover the
common shapes and raise ParseFailure (or IndexOutOfRange) with a message
fit to show the user.
"""

import shlex
from typing import List, Tuple

from .exceptions import IndexOutOfRange, ParseFailure


def until_end(text: str) -> str:
    """Take the rest of the input verbatim (leading whitespace dropped)."""
    return text.lstrip()


def no_arguments(text: str) -> None:
    """Accept only empty input."""
    if text.strip():
        raise ParseFailure(f"This command takes no arguments, got: {text.strip()}")


def words(text: str, minimum: int = 0) -> List[str]:
    """Split on whitespace, honouring double and single quotes."""
    try:
        parts = shlex.split(text)
    except ValueError as e:
        raise ParseFailure(f"Could not read arguments: {e}") from e
    if len(parts) < minimum:
        raise ParseFailure(
            f"Expected at least {minimum} argument(s), got {len(parts)}."
        )
    return parts


def integer(token: str) -> int:
    try:
        return int(token)
    except ValueError:
        raise ParseFailure(f"Expected a whole number, got: {token}") from None


def ordinal(token: str, bounds: Tuple[int, int]) -> int:
    """Parse an integer that must lie in the inclusive ``bounds``."""
    value = integer(token)
    low, high = bounds
    if not low <= value <= high:
        raise IndexOutOfRange(value, (low, high))
    return value


def split_first(text: str) -> Tuple[str, str]:
    """Split off the first word: ``"a b c"`` -> ``("a", "b c")``.

    Whitespace after the first word is dropped; the rest of the text is
    kept verbatim.
    """
    parts = text.lstrip().split(maxsplit=1)
    if not parts:
        return "", ""
    return parts[0], parts[1] if len(parts) > 1 else ""
