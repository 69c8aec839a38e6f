"""Tests for the main application."""
import asyncio
from typing import Generator
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from wordrev.app import WordRevBot
from wordrev.config import settings


@pytest.fixture
def application() -> AsyncMock:
    """Create a mock application with async methods."""
    mock_app = AsyncMock()
    mock_app.initialize = AsyncMock()
    mock_app.start = AsyncMock()
    mock_app.updater = AsyncMock()
    mock_app.updater.start_polling = AsyncMock()
    mock_app.stop = AsyncMock()
    mock_app.shutdown = AsyncMock()
    mock_app.add_handler = MagicMock()
    return mock_app


@pytest.fixture
def init_db_mock() -> Generator[MagicMock, None, None]:
    with patch("wordrev.app.init_db") as mock_init_db:
        yield mock_init_db


@pytest.fixture
def bot(application: AsyncMock, init_db_mock: MagicMock) -> Generator[WordRevBot, None, None]:
    """Create a bot instance with mocked dependencies."""
    mock_builder = MagicMock()
    mock_builder.token.return_value.build.return_value = application

    with patch("telegram.ext.Application.builder", return_value=mock_builder), \
            patch.object(settings.bot, "token", "test_token_123"):
        yield WordRevBot()


@pytest.mark.asyncio
async def test_start(bot: WordRevBot, application: AsyncMock, init_db_mock: MagicMock) -> None:
    """Test starting the bot."""
    await bot.start()

    assert bot.running
    assert bot.application is application
    init_db_mock.assert_called_once()
    application.add_handler.assert_called_once()
    application.updater.start_polling.assert_awaited_once()

    await bot.stop()


@pytest.mark.asyncio
async def test_stop(bot: WordRevBot, application: AsyncMock) -> None:
    """Test stopping the bot."""
    await bot.start()
    await bot.stop()

    assert not bot.running
    assert bot.application is None
    application.updater.stop.assert_awaited_once()
    application.shutdown.assert_awaited_once()


@pytest.mark.asyncio
async def test_start_when_already_running(bot: WordRevBot, application: AsyncMock) -> None:
    """Test starting the bot when it's already running."""
    await bot.start()
    await bot.start()

    application.initialize.assert_awaited_once()
    await bot.stop()


@pytest.mark.asyncio
async def test_stop_when_not_running(bot: WordRevBot) -> None:
    """Test stopping the bot when it's not running."""
    await bot.stop()
    assert bot.application is None


@pytest.mark.asyncio
async def test_start_without_token(bot: WordRevBot) -> None:
    with patch.object(settings.bot, "token", ""):
        with pytest.raises(ValueError, match="TELEGRAM_BOT_TOKEN"):
            await bot.start()

    assert not bot.running
    assert bot.application is None


@pytest.mark.asyncio
async def test_failed_start_cleans_up(bot: WordRevBot, application: AsyncMock) -> None:
    application.start.side_effect = RuntimeError("Network unreachable")

    with pytest.raises(RuntimeError):
        await bot.start()

    assert not bot.running
    assert bot.application is None
    application.shutdown.assert_awaited_once()


@pytest.mark.asyncio
async def test_error_while_stopping(bot: WordRevBot, application: AsyncMock) -> None:
    """Test error handling during stop."""
    await bot.start()
    application.stop.side_effect = Exception("Test error")

    with pytest.raises(Exception) as exc_info:
        await bot.stop()
    assert str(exc_info.value) == "Test error"

    assert not bot.running
    assert bot.application is None


@pytest.mark.asyncio
async def test_run_forever_stops_on_cancel(bot: WordRevBot, application: AsyncMock) -> None:
    task = asyncio.create_task(bot.run_forever())
    await asyncio.sleep(0.01)
    assert bot.running

    task.cancel()
    await task

    assert not bot.running
    application.shutdown.assert_awaited_once()
