"""Main entry point for the bot."""
import asyncio
import logging
import signal

from wordrev.app import WordRevBot
from wordrev.config import ensure_directories, settings
from wordrev.logging_config import setup_logging
from wordrev.monitoring import start_monitoring

logger = logging.getLogger("wordrev")


async def shutdown(sig: signal.Signals, task: asyncio.Task) -> None:
    """Cancel the bot task on an exit signal."""
    print()  # Print newline before logging
    logger.info(f"Received exit signal {sig.name}...")
    task.cancel()


def handle_exception(loop: asyncio.AbstractEventLoop, context: dict) -> None:
    """Handle exceptions in the event loop."""
    msg = context.get("exception", context["message"])
    logger.error(f"Caught exception: {msg}")


async def main() -> None:
    """Run the bot."""
    loop = asyncio.get_running_loop()
    loop.set_exception_handler(handle_exception)

    bot = WordRevBot()
    task = asyncio.create_task(bot.run_forever())

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, lambda s=sig: asyncio.create_task(shutdown(s, task)))

    logger.info("Starting bot...")
    await task


if __name__ == "__main__":
    ensure_directories()

    setup_logging("Starting wordrev ...")

    if settings.monitoring.enabled:
        start_monitoring(settings.monitoring.port)
        logger.info(f"Metrics exposed on port {settings.monitoring.port}")

    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt, shutting down...")
