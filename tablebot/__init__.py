"""tablebot: a plugin-based command framework for chat bots.

Plugin authors should import from here (or ``tablebot.plugin_base``)
rather than from the host modules.
"""

from .embed import Colour, Embed
from .exceptions import (
    BotException,
    GenericException,
    IndexOutOfRange,
    MessageSendFailure,
    ParseFailure,
    RandomSourceFailure,
    embed_error,
    error_info,
    show_error,
    show_user_error,
)
from .plugin_base import (
    Command,
    Handler,
    HelpPage,
    InlineCommand,
    MessageContext,
    Plugin,
    RequiredPermission,
    plug,
)
from .propagation import (
    catch_bot,
    failing,
    throw_bot,
    transform_exception,
    transform_exception_const,
)

__version__ = "0.3.0"

__all__ = [
    # Exceptions
    "BotException",
    "GenericException",
    "MessageSendFailure",
    "ParseFailure",
    "IndexOutOfRange",
    "RandomSourceFailure",
    "error_info",
    "show_error",
    "show_user_error",
    "embed_error",
    # Propagation
    "throw_bot",
    "failing",
    "catch_bot",
    "transform_exception",
    "transform_exception_const",
    # Plugins
    "Command",
    "Handler",
    "HelpPage",
    "InlineCommand",
    "MessageContext",
    "Plugin",
    "RequiredPermission",
    "plug",
    # Messages
    "Colour",
    "Embed",
]
