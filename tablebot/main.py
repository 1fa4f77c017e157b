"""Main entry point for tablebot.

Initializes logging in two phases (defaults then config-driven),
composes the plugins (aborting on name collisions), and runs the async
event loop with graceful shutdown on SIGTERM/SIGINT.

Key functions:
    main: Async entry point.
    run: Synchronous wrapper that calls asyncio.run(main()).
"""

import asyncio
import signal
import sys

import structlog

from . import __version__
from .exceptions import CompositionError, ConfigurationError
from .logging_config import setup_logging


async def main():
    """Main async entry point."""
    # Phase 1: defaults, cache_logger_on_first_use=False
    setup_logging()
    logger = structlog.get_logger("tablebot.bot")

    logger.info("tablebot_starting", version=__version__)

    # Import here to ensure logging is configured first
    from .bot import TableBot
    from .config import get_config

    try:
        config = get_config()
    except ConfigurationError as e:
        logger.error("config_load_failed", error=str(e))
        print(f"tablebot: {e}", file=sys.stderr)
        sys.exit(1)
    config.validate()

    # Phase 2: reconfigure with real config, cache_logger_on_first_use=True
    setup_logging(config)

    bot = TableBot(config)
    try:
        bot.compose()
    except CompositionError as e:
        logger.error("plugin_composition_failed", error=str(e), plugins=list(e.plugins))
        print(f"tablebot: cannot start, {e.message}", file=sys.stderr)
        sys.exit(1)

    loop = asyncio.get_running_loop()
    shutdown_event = asyncio.Event()

    def handle_shutdown(sig):
        logger.info("shutdown_signal_received", signal=sig.name)
        shutdown_event.set()

    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, handle_shutdown, sig)
        except NotImplementedError:
            # Windows: fall back to signal.signal for SIGINT (Ctrl+C)
            if sig == signal.SIGINT:
                signal.signal(
                    signal.SIGINT,
                    lambda s, f: handle_shutdown(signal.SIGINT),
                )

    bot_task = asyncio.create_task(bot.run())
    shutdown_task = asyncio.create_task(shutdown_event.wait())
    try:
        # Whichever ends first: a shutdown signal or the receive loop itself
        done, _ = await asyncio.wait(
            {bot_task, shutdown_task}, return_when=asyncio.FIRST_COMPLETED
        )
        if bot_task in done:
            logger.warning("bot_run_ended")
            bot_task.result()
        else:
            bot_task.cancel()
            try:
                await bot_task
            except asyncio.CancelledError:
                pass

    except Exception as e:
        logger.error("bot_error", error=str(e))
        raise
    finally:
        shutdown_task.cancel()
        await bot.stop()
        logger.info("tablebot_stopped")


def run():
    """Synchronous entry point for the ``tablebot`` console script."""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run()
