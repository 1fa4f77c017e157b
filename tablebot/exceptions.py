"""Exception families for tablebot.

There are two families here:

``TablebotError``
    Failures of the bot itself (configuration, plugin loading,
    composition, transport). These carry structured context for logging
    and are handled by the host, never shown to chat users.

``BotException``
    The closed set of failures a command can report back to the user
    who invoked it. Every variant resolves to an ``ErrorInfo`` (name and
    message) through ``error_info``, and all rendering goes through that
    pair. To add a variant, declare a subclass below and add one case to
    ``error_info``; nothing else should look at concrete variants.
"""

from typing import Any, NamedTuple, Optional, Tuple

from .embed import Colour, Embed


class TablebotError(Exception):
    """Base exception for bot-level (non user-facing) errors.

    Attributes:
        message: Human-readable error description.
        module: Originating module name (e.g. "plugin_loader").
        context: Arbitrary key-value pairs for structured logging.
    """

    def __init__(
        self,
        message: str = "",
        *,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        self.message = message
        self.module = module
        self.context = context
        super().__init__(message)

    def __str__(self) -> str:
        parts = [self.message or self.__class__.__name__]
        if self.module:
            parts.append(f"[module={self.module}]")
        if self.context:
            ctx = ", ".join(f"{k}={v}" for k, v in self.context.items())
            parts.append(f"({ctx})")
        return " ".join(parts)

    def __repr__(self) -> str:
        cls = self.__class__.__name__
        return f"{cls}({self.message!r}, module={self.module!r})"


class ConfigurationError(TablebotError):
    """Invalid or unreadable configuration.

    Attributes:
        setting_name: The offending setting or file (if known).
    """

    def __init__(
        self,
        message: str = "",
        *,
        setting_name: Optional[str] = None,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        self.setting_name = setting_name
        super().__init__(message, module=module or "config", **context)


class PluginLoadError(TablebotError):
    """A plugin module could not be imported or exposes no Plugin value."""

    def __init__(
        self,
        message: str = "",
        *,
        plugin: Optional[str] = None,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        self.plugin = plugin
        super().__init__(message, module=module or "plugin_loader", **context)


class CompositionError(TablebotError):
    """Plugins cannot be merged into one dispatch table.

    Fatal: the bot must not start serving messages with an ambiguous
    command namespace.

    Attributes:
        name: The colliding command or plugin name.
        plugins: Names of the plugins involved, in load order.
    """

    def __init__(
        self,
        message: str = "",
        *,
        name: Optional[str] = None,
        plugins: Tuple[str, ...] = (),
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        self.name = name
        self.plugins = tuple(plugins)
        super().__init__(message, module=module or "plugin_loader", **context)


class TransportError(TablebotError):
    """The chat transport failed to deliver or receive a message.

    Attributes:
        status: HTTP status returned by the chat API (if any).
    """

    def __init__(
        self,
        message: str = "",
        *,
        status: Optional[int] = None,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        self.status = status
        super().__init__(message, module=module or "transport", **context)


# ---------------------------------------------------------------------------
# User-facing exceptions
# ---------------------------------------------------------------------------

class BotException(Exception):
    """Base class for failures reported back to the invoking user.

    Variants are value-like: two exceptions are equal when they have the
    same type and payload.
    """

    def __eq__(self, other: object) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return self.args == other.args

    def __hash__(self) -> int:
        return hash((type(self), self.args))

    def __str__(self) -> str:
        return show_error(self)

    def __repr__(self) -> str:
        args = ", ".join(repr(a) for a in self.args)
        return f"{self.__class__.__name__}({args})"


class GenericException(BotException):
    """Ad-hoc error; the caller supplies both display fields."""

    def __init__(self, name: str, message: str) -> None:
        self.name = name
        self.message = message
        super().__init__(name, message)


class MessageSendFailure(BotException):
    """The transport failed to deliver a message."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ParseFailure(BotException):
    """A command's argument grammar rejected the input."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class IndexOutOfRange(BotException):
    """An ordinal argument fell outside an inclusive valid range."""

    def __init__(self, index: int, bounds: Tuple[int, int]) -> None:
        low, high = bounds
        self.index = index
        self.bounds = (low, high)
        super().__init__(index, (low, high))


class RandomSourceFailure(BotException):
    """An operation depending on randomness failed."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ErrorInfo(NamedTuple):
    """Display name and message of a BotException."""
    name: str
    message: str


ERROR_EMOJI = "⚠"


def error_info(e: BotException) -> ErrorInfo:
    """Resolve a BotException into its display name and message.

    Add new errors here. This is the only function that knows about
    concrete variants.
    """
    if isinstance(e, GenericException):
        return ErrorInfo(e.name, e.message)
    if isinstance(e, MessageSendFailure):
        return ErrorInfo("MessageSendFailure", e.message)
    if isinstance(e, ParseFailure):
        return ErrorInfo("ParseFailure", e.message)
    if isinstance(e, IndexOutOfRange):
        low, high = e.bounds
        return ErrorInfo(
            "IndexOutOfRange",
            f"Index value of {e.index} is not in the valid range [{low}, {high}].",
        )
    if isinstance(e, RandomSourceFailure):
        return ErrorInfo("RandomSourceFailure", e.message)
    raise TypeError(f"no error info defined for {type(e).__name__}")


def _format_title(name: str) -> str:
    return f"{ERROR_EMOJI} **{name}** {ERROR_EMOJI}"


def show_error(e: BotException) -> str:
    """Terse ``name: message`` form for logs and the command line."""
    info = error_info(e)
    return f"{info.name}: {info.message}"


def show_user_error(e: BotException) -> str:
    """User-facing error text for sending back to the chat."""
    info = error_info(e)
    return (
        _format_title(info.name) + "\n"
        "An error was encountered while resolving your command:\n"
        f"> `{info.message}`"
    )


def embed_error(e: BotException) -> Embed:
    """Render an error as a red rich message card."""
    info = error_info(e)
    return Embed(
        title=_format_title(info.name),
        description=info.message,
        colour=Colour.RED,
    )
