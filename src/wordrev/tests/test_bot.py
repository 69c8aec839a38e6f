"""Tests for Telegram bot handlers."""
from typing import Generator
from unittest.mock import AsyncMock, Mock, patch

import pytest
from faker import Faker
from sqlalchemy.orm import Session
from telegram import Update, User as TelegramUser
from telegram.ext import Application, CallbackContext

from wordrev.bot import (
    ADDING_WORDS,
    ERR_MSG_BAD_STAGE,
    ERR_MSG_NOT_REGISTERED,
    ERR_MSG_STORAGE,
    MAIN_MENU,
    REVISING,
    SESSION_KEY,
    handle_add_words,
    handle_callback,
    handle_revision_answer,
    handle_start,
    show_statistics,
)
from wordrev.exceptions import PersistenceUnavailable
from wordrev.models.models import User, Word
from wordrev.services.revision_service import RevisionSession

fake = Faker()


@pytest.fixture(autouse=True)
def bot_db(session_factory) -> Generator[None, None, None]:
    """Point the handlers at the test database."""
    with patch("wordrev.bot.SessionLocal", session_factory):
        yield


@pytest.fixture
def telegram_user(user: User) -> Mock:
    """Create a mock Telegram user matching the registered user."""
    telegram_user = Mock(spec=TelegramUser)
    telegram_user.id = user.telegram_id
    telegram_user.first_name = fake.first_name()
    telegram_user.username = user.username
    telegram_user.is_bot = False
    return telegram_user


@pytest.fixture
def update(telegram_user: Mock) -> Mock:
    """Create a mock Update object."""
    update = AsyncMock(spec=Update)
    update.update_id = fake.random_int()
    update.effective_user = telegram_user
    update.message = AsyncMock()
    update.message.reply_text = AsyncMock()
    update.callback_query = AsyncMock()
    update.callback_query.answer = AsyncMock()
    update.callback_query.edit_message_text = AsyncMock()
    return update


@pytest.fixture
def context() -> Mock:
    """Create a mock CallbackContext object."""
    context = AsyncMock(spec=CallbackContext)
    context.application = AsyncMock(spec=Application)
    context.user_data = {}
    return context


def press(update: Mock, data: str) -> Mock:
    update.callback_query.data = data
    update.callback_query.edit_message_text.reset_mock()
    return update


def type_text(update: Mock, text: str) -> Mock:
    update.callback_query = None
    update.message.text = text
    update.message.reply_text.reset_mock()
    return update


def edited_text(update: Mock) -> str:
    return update.callback_query.edit_message_text.call_args[0][0]


def replied_text(update: Mock) -> str:
    return update.message.reply_text.call_args[0][0]


@pytest.mark.asyncio
async def test_start_registers_user(update: Mock, context: Mock, db: Session) -> None:
    """Test start command handler."""
    update.effective_user.id = fake.random_int(min=100000, max=999999)
    update.callback_query = None

    result = await handle_start(update, context)

    user = db.query(User).filter(User.telegram_id == update.effective_user.id).first()
    assert user is not None
    assert user.username == update.effective_user.first_name
    update.message.reply_text.assert_called_once()
    assert "Welcome" in replied_text(update)
    assert result == MAIN_MENU


@pytest.mark.asyncio
async def test_unregistered_user_is_sent_to_start(update: Mock, context: Mock) -> None:
    update.effective_user.id = fake.random_int(min=100000, max=999999)

    result = await handle_callback(press(update, "revise"), context)

    assert edited_text(update) == ERR_MSG_NOT_REGISTERED
    assert result == MAIN_MENU


@pytest.mark.asyncio
async def test_stage_selector_shows_counts(update: Mock, context: Mock, make_word) -> None:
    make_word("apple")
    make_word("banana")
    make_word("cook", stage=2)

    result = await handle_callback(press(update, "revise"), context)

    assert result == MAIN_MENU
    keyboard = update.callback_query.edit_message_text.call_args[1]["reply_markup"].inline_keyboard
    labels = [row[0].text for row in keyboard[:6]]
    assert labels[0] == "Not revised (2)"
    assert labels[2] == "2nd (1)"
    assert labels[5] == "5th or above (0)"
    assert keyboard[0][0].callback_data == "stage_0"


@pytest.mark.asyncio
async def test_select_stage_shows_first_word(update: Mock, context: Mock, make_word) -> None:
    apple = make_word("apple")
    make_word("banana")

    result = await handle_callback(press(update, "stage_0"), context)

    assert result == REVISING
    text = edited_text(update)
    assert "Word 1 of 2" in text
    assert apple.translation in text
    assert "I would like the ___ today." in text
    assert isinstance(context.user_data[SESSION_KEY], RevisionSession)


@pytest.mark.asyncio
async def test_select_empty_stage(update: Mock, context: Mock) -> None:
    result = await handle_callback(press(update, "stage_4"), context)

    assert result == MAIN_MENU
    assert "No words in stage 4th" in edited_text(update)


@pytest.mark.asyncio
async def test_answer_and_continue(update: Mock, context: Mock, make_word, stored_word) -> None:
    apple = make_word("apple")
    make_word("banana")
    await handle_callback(press(update, "stage_0"), context)
    callback_query = update.callback_query

    result = await handle_revision_answer(type_text(update, "Apple"), context)

    assert result == REVISING
    assert "Correct" in replied_text(update)
    assert "1st" in replied_text(update)
    assert stored_word(apple.id).stage == 1

    update.callback_query = callback_query
    result = await handle_callback(press(update, "rev_continue"), context)

    assert result == REVISING
    assert "Word 1 of 1" in edited_text(update)


@pytest.mark.asyncio
async def test_wrong_answer_shows_correct_word(update: Mock, context: Mock, make_word) -> None:
    make_word("cook", stage=1)
    await handle_callback(press(update, "stage_1"), context)

    await handle_revision_answer(type_text(update, "book"), context)

    assert "The answer is <b>cook</b>" in replied_text(update)


@pytest.mark.asyncio
async def test_blank_answer_is_rejected(update: Mock, context: Mock, make_word, stored_word) -> None:
    apple = make_word("apple")
    await handle_callback(press(update, "stage_0"), context)

    result = await handle_revision_answer(type_text(update, "   "), context)

    assert result == REVISING
    assert "Please enter an answer" in replied_text(update)
    assert stored_word(apple.id).last_touched_at == apple.last_touched_at


@pytest.mark.asyncio
async def test_hint_reveals_letter(update: Mock, context: Mock, make_word) -> None:
    make_word("apple")
    await handle_callback(press(update, "stage_0"), context)

    await handle_callback(press(update, "rev_hint"), context)

    assert "I would like the a___ today." in edited_text(update)


@pytest.mark.asyncio
async def test_delete_last_word(update: Mock, context: Mock, make_word, stored_word) -> None:
    apple = make_word("apple")
    await handle_callback(press(update, "stage_0"), context)

    result = await handle_callback(press(update, "rev_delete"), context)

    assert result == MAIN_MENU
    assert stored_word(apple.id) is None
    assert "No words in stage" in edited_text(update)


@pytest.mark.asyncio
async def test_storage_failure_is_reported(update: Mock, context: Mock, make_word) -> None:
    make_word("apple")
    await handle_callback(press(update, "stage_0"), context)
    session = context.user_data[SESSION_KEY]

    with patch.object(session.gateway, "update", side_effect=PersistenceUnavailable("update", "disk I/O error")):
        result = await handle_revision_answer(type_text(update, "apple"), context)

    assert result == REVISING
    assert replied_text(update) == ERR_MSG_STORAGE


@pytest.mark.asyncio
async def test_add_words(update: Mock, context: Mock, db: Session, user: User) -> None:
    result = await handle_callback(press(update, "add_words"), context)
    assert result == ADDING_WORDS

    text = "apple | 苹果 | noun | An apple a day.\nc00k | 烹饪\n\nbook | 书"
    result = await handle_add_words(type_text(update, text), context)

    assert result == ADDING_WORDS
    reply = replied_text(update)
    assert "Saved: apple, book" in reply
    assert "c00k" in reply
    words = db.query(Word).filter(Word.user_id == user.id).order_by(Word.id).all()
    assert [word.target_word for word in words] == ["apple", "book"]
    assert words[0].blanked_example == "An ___ a day."


@pytest.mark.asyncio
async def test_show_statistics(update: Mock, context: Mock, make_word) -> None:
    make_word("apple")
    make_word("cook", stage=3)

    result = await show_statistics(press(update, "statistics"), context)

    assert result == MAIN_MENU
    text = edited_text(update)
    assert "Not revised: 1" in text
    assert "3rd: 1" in text
    assert "Total: 2" in text


@pytest.mark.asyncio
async def test_select_unknown_stage(update: Mock, context: Mock) -> None:
    result = await handle_callback(press(update, "stage_9"), context)

    assert result == MAIN_MENU
    assert edited_text(update) == ERR_MSG_BAD_STAGE


@pytest.mark.asyncio
async def test_open_word_from_stage_list(update: Mock, context: Mock, make_word) -> None:
    apple = make_word("apple")
    banana = make_word("banana")
    await handle_callback(press(update, "stage_0"), context)
    await handle_callback(press(update, "rev_hint"), context)

    result = await handle_callback(press(update, "rev_list"), context)

    assert result == REVISING
    assert "2 words" in edited_text(update)
    keyboard = update.callback_query.edit_message_text.call_args[1]["reply_markup"].inline_keyboard
    assert keyboard[0][0].text == f"▶️ 1. {apple.translation}"
    assert keyboard[1][0].text == f"2. {banana.translation}"
    assert keyboard[1][0].callback_data == "rev_open_2"
    assert keyboard[2][0].callback_data == "rev_show"

    await handle_callback(press(update, "rev_show"), context)
    assert "I would like the a___ today." in edited_text(update)

    result = await handle_callback(press(update, "rev_open_2"), context)

    assert result == REVISING
    text = edited_text(update)
    assert "Word 2 of 2" in text
    assert banana.translation in text
    assert "I would like the ___ today." in text


@pytest.mark.asyncio
async def test_open_word_out_of_range(update: Mock, context: Mock, make_word) -> None:
    make_word("apple")
    await handle_callback(press(update, "stage_0"), context)

    result = await handle_callback(press(update, "rev_open_5"), context)

    assert result == REVISING
    assert "Word 1 of 1" in edited_text(update)
