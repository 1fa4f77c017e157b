"""Structured rich messages for transports that support them.

An Embed is a transport-neutral message card: a title, a body and an
accent colour. Transports that cannot render cards fall back to
``Embed.as_text()``.
"""

from dataclasses import dataclass
from enum import Enum


class Colour(int, Enum):
    """Accent colours, as 0xRRGGBB integers."""
    DEFAULT = 0x000000
    RED = 0xE74C3C


@dataclass(frozen=True)
class Embed:
    """A rich message card.

    Attributes:
        title: Heading line (may contain markdown).
        description: Body text.
        colour: Accent colour shown by the transport.
    """
    title: str = ""
    description: str = ""
    colour: Colour = Colour.DEFAULT

    def as_text(self) -> str:
        """Plain-text fallback used by text-only transports."""
        return "\n".join(p for p in (self.title, self.description) if p)
