"""Chat bot host for tablebot.

Composes the plugins into a dispatch table once, connects the
transport, and runs one asyncio task per incoming message so a slow
handler never blocks unrelated messages.

Key classes:
    TableBot: Owns the transport, storage, dispatch table and the
        in-flight message tasks.
"""

import asyncio
from typing import Optional, Sequence, Set

import aiohttp
import structlog

from .config import Config, get_config
from .dispatch import Dispatcher
from .models import IncomingMessage
from .plugin_base import MessageContext, NullStorage, Plugin, Storage, Transport
from .plugin_loader import DispatchTable, PluginLoader, compose_plugins
from .plugins import BUILTIN_PLUGINS
from .transport import RestTransport

logger = structlog.get_logger("tablebot.bot")


def log_task_exception(task: asyncio.Task):
    """Log exceptions from fire-and-forget tasks instead of silently swallowing them."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc:
        logger.error("message_task_failed", error=str(exc), exc_type=type(exc).__name__)


class TableBot:
    """Plugin-based chat bot.

    Lifecycle: ``compose()`` (may raise CompositionError, before any
    traffic), then ``run()``, then ``stop()``.

    Args:
        config: Config instance (defaults to the global one).
        transport: Chat transport; a RestTransport is created in
            ``start()`` when omitted.
        storage: Storage collaborator for handler transactions.
        builtin_plugins: Plugins loaded ahead of discovered ones.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        transport: Optional[Transport] = None,
        storage: Optional[Storage] = None,
        builtin_plugins: Sequence[Plugin] = BUILTIN_PLUGINS,
    ):
        self.config = config or get_config()
        self.transport = transport
        self.storage = storage or NullStorage()
        self.builtin_plugins = tuple(builtin_plugins)
        self.loader = PluginLoader(self.config)
        self.table: Optional[DispatchTable] = None
        self.dispatcher: Optional[Dispatcher] = None
        self.session: Optional[aiohttp.ClientSession] = None
        self.running = False
        self._tasks: Set[asyncio.Task] = set()

    def compose(self) -> DispatchTable:
        """Load and merge all plugins. Must run once before ``run()``.

        Raises:
            CompositionError: The plugins declare colliding names.
        """
        if self.table is not None:
            raise RuntimeError("plugins are already composed")
        self.loader.discover_and_load()
        plugins = self.loader.select(self.builtin_plugins)
        self.table = compose_plugins(plugins, help_prefix=self.config.command_prefix)
        self.dispatcher = Dispatcher(
            self.table,
            prefix=self.config.command_prefix,
            rich_errors=self.config.rich_errors,
        )
        return self.table

    def handle_message(self, message: IncomingMessage) -> asyncio.Task:
        """Dispatch one message on its own task."""
        if self.dispatcher is None:
            raise RuntimeError("compose() must be called before handling messages")
        if self.transport is None:
            raise RuntimeError("no transport configured")
        ctx = MessageContext(message, self.transport, self.storage)
        task = asyncio.create_task(self.dispatcher.dispatch(ctx))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        task.add_done_callback(log_task_exception)
        return task

    async def start(self):
        """Open the HTTP session and the default transport if needed."""
        if self.transport is None:
            self.session = aiohttp.ClientSession()
            self.transport = RestTransport(
                self.config.api_url, self.config.account, self.session
            )
        self.running = True
        logger.info(
            "bot_started",
            prefix=self.config.command_prefix,
            commands=sorted(self.table.command_names) if self.table else [],
        )

    async def stop(self):
        """Wait for in-flight messages, then release the transport."""
        self.running = False
        if isinstance(self.transport, RestTransport):
            self.transport.running = False
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        if self.session is not None:
            await self.session.close()
            self.session = None
        logger.info("bot_stopped")

    async def run(self):
        """Main run loop: start, dispatch received messages, stop on exit."""
        await self.start()
        try:
            receive = getattr(self.transport, "receive", None)
            if receive is None:
                logger.error("transport_cannot_receive", transport=type(self.transport).__name__)
                return
            async for message in receive():
                logger.info(
                    "message_received",
                    author=message.author_id,
                    length=len(message.content),
                )
                self.handle_message(message)
        finally:
            await self.stop()
