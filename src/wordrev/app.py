"""Main application entry point."""
import asyncio
import logging
from typing import Optional
from warnings import filterwarnings

from telegram.ext import Application
from telegram.warnings import PTBUserWarning

from wordrev.bot import build_conversation_handler
from wordrev.config import settings
from wordrev.models.base import init_db

# Suppress the warning about CallbackQueryHandler and per_message
filterwarnings(action="ignore", message=r".*CallbackQueryHandler", category=PTBUserWarning)


class WordRevBot:
    """Main application class."""

    def __init__(self):
        """Initialize the application."""
        self.application: Optional[Application] = None
        self.running = False
        self.logger = logging.getLogger(__name__)

    async def start(self) -> None:
        """Start the application."""
        if self.running:
            return

        try:
            settings.validate_bot()

            init_db()
            self.logger.info("Database initialized")

            self.application = Application.builder().token(settings.bot.token).build()
            self.logger.info("Application created")

            self.application.add_handler(build_conversation_handler())
            self.logger.info("Handlers added")

            await self.application.initialize()
            await self.application.start()
            await self.application.updater.start_polling()
            self.logger.info("Application started")

            self.running = True

        except Exception as e:
            self.logger.error("Failed to start application: %s", str(e))
            await self.stop(force=True)
            raise

    async def stop(self, force: bool = False) -> None:
        """Stop the application."""
        if not self.running and not force:
            return

        try:
            if self.application:
                if self.running:
                    await self.application.updater.stop()
                    await self.application.stop()
                await self.application.shutdown()
                self.logger.info("Application stopped")
        except Exception as e:
            self.logger.error("Error while stopping application: %s", str(e))
            raise
        finally:
            self.running = False
            self.application = None

    async def run_forever(self) -> None:
        """Start the bot and keep it running until cancelled."""
        await self.start()
        try:
            while True:
                await asyncio.sleep(1)
        except asyncio.CancelledError:
            self.logger.info("Run loop cancelled")
        finally:
            self.logger.info("Cleaning up...")
            await self.stop()
