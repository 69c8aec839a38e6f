"""Telegram handlers driving a revision session."""
import html
import logging
from typing import List, Optional

from telegram import InlineKeyboardButton, InlineKeyboardMarkup, Update
from telegram.ext import (
    CallbackContext,
    CallbackQueryHandler,
    CommandHandler,
    ConversationHandler,
    MessageHandler,
    filters,
)

from wordrev.exceptions import PersistenceUnavailable
from wordrev.models.base import SessionLocal
from wordrev.models.models import User
from wordrev.models.revision_models import AnswerResult, Outcome, SessionView, UserAction
from wordrev.services.persistence import SqlWordGateway
from wordrev.services.revision_service import RevisionSession
from wordrev.services.stage_machine import STAGES, stage_display_name
from wordrev.services.user_service import UserService
from wordrev.services.word_service import WordService, parse_word_entry

# Get logger for this module
logger = logging.getLogger(__name__)

# Conversation states
MAIN_MENU, ADDING_WORDS, REVISING = range(3)

# Button texts
MENU = "🏠 Menu"
REVISE = "🔁 Revise"
ADD_NEW_WORDS = "📝 Add New Words"
VIEW_STATISTICS = "📊 View Statistics"
CHOOSE_STAGE = "🗂️ Stages"

REVISION_CALLBACK_PREFIX = "rev_"
STAGE_CALLBACK_PREFIX = f"{UserAction.SELECT_STAGE.value}_"
SESSION_KEY = "revision_session"

ERR_MSG_NOT_REGISTERED = "Please /start first to register"
ERR_MSG_STORAGE = "⚠️ Could not reach your word list. Please try again."
ERR_MSG_BAD_STAGE = "⚠️ That stage does not exist. Please choose another one."

WORD_LIST_LIMIT = 30


def msg_back_to(text: str) -> str: return f"🔙 {text}"


KB_BACK_TO_MENU = [InlineKeyboardButton(msg_back_to(MENU), callback_data="back_to_menu")]
ERR_KB_NOT_REGISTERED = InlineKeyboardMarkup([KB_BACK_TO_MENU])


async def log_received(update: Update, context_type: str) -> None:
    """Log an incoming update."""
    txt = ""
    if update.callback_query:
        txt = f" {update.callback_query.data}"
    elif update.message:
        txt = f" {update.message.text}"
    logger.info(f"Received @{context_type:8} from user {update.effective_user.username} ({update.effective_user.id}){txt}")


async def send_or_edit(update: Update, text: str, keyboard: List[List[InlineKeyboardButton]]) -> None:
    """Edit the message behind a button press, or reply to a typed message."""
    reply_markup = InlineKeyboardMarkup(keyboard)
    if update.callback_query:
        await update.callback_query.edit_message_text(text, reply_markup=reply_markup, parse_mode="HTML")
    else:
        await update.message.reply_text(text, reply_markup=reply_markup, parse_mode="HTML")


def get_user_from_update(update: Update) -> Optional[User]:
    """Get user from database based on update."""
    user = update.effective_user
    if not user:
        return None

    db = SessionLocal()
    try:
        return UserService(db).get_user_by_telegram_id(user.id)
    finally:
        db.close()


def get_revision_session(context: CallbackContext, user: User) -> RevisionSession:
    """Get the user's revision session, creating it on first use."""
    session = context.user_data.get(SESSION_KEY)
    if session is None or session.gateway.user_id != user.id:
        session = RevisionSession(SqlWordGateway(user.id, SessionLocal))
        context.user_data[SESSION_KEY] = session
    return session


async def handle_start(update: Update, context: CallbackContext) -> int:
    """Start the conversation and show main menu."""
    await log_received(update, "start")

    db = SessionLocal()
    try:
        user = UserService(db).get_or_create_user(
            telegram_id=update.effective_user.id,
            username=update.effective_user.first_name,
        )
    finally:
        db.close()

    keyboard = [
        [InlineKeyboardButton(REVISE, callback_data="revise")],
        [InlineKeyboardButton(ADD_NEW_WORDS, callback_data="add_words")],
        [InlineKeyboardButton(VIEW_STATISTICS, callback_data="statistics")],
    ]
    message = (f"Welcome, {html.escape(user.username or 'friend')}! 👋\n\n"
               "Save words you want to remember and revise them stage by stage.\n"
               "What would you like to do?")
    await send_or_edit(update, message, keyboard)
    return MAIN_MENU


async def handle_callback(update: Update, context: CallbackContext) -> int:
    """Handle callback queries from inline keyboard."""
    query = update.callback_query
    await query.answer()

    await log_received(update, "callback")

    if query.data == "back_to_menu":
        return await handle_start(update, context)
    elif query.data == "revise":
        return await show_stage_selector(update, context)
    elif query.data.startswith(STAGE_CALLBACK_PREFIX):
        return await handle_select_stage(update, context)
    elif query.data.startswith(REVISION_CALLBACK_PREFIX):
        return await handle_revision_action(update, context)
    elif query.data == "add_words":
        return await add_words(update, context)
    elif query.data == "statistics":
        return await show_statistics(update, context)

    return MAIN_MENU


async def handle_message(update: Update, context: CallbackContext) -> int:
    """Handle text typed outside of a flow."""
    await log_received(update, "message")
    await update.message.reply_text("Please start with /start")
    return MAIN_MENU


async def show_stage_selector(update: Update, context: CallbackContext) -> int:
    """Show one button per stage with its word count."""
    user = get_user_from_update(update)
    if not user:
        await update.callback_query.edit_message_text(ERR_MSG_NOT_REGISTERED, reply_markup=ERR_KB_NOT_REGISTERED)
        return MAIN_MENU

    session = get_revision_session(context, user)
    try:
        counts = await session.stage_statistics()
    except PersistenceUnavailable:
        await send_or_edit(update, ERR_MSG_STORAGE, [KB_BACK_TO_MENU])
        return MAIN_MENU

    keyboard = [
        [InlineKeyboardButton(f"{stage_display_name(stage)} ({counts.get(stage, 0)})",
                              callback_data=f"{STAGE_CALLBACK_PREFIX}{stage}")]
        for stage in STAGES
    ]
    keyboard.append(KB_BACK_TO_MENU)
    await send_or_edit(update, "Choose a stage to revise:", keyboard)
    return MAIN_MENU


async def handle_select_stage(update: Update, context: CallbackContext) -> int:
    """Load the chosen stage and show its first word."""
    user = get_user_from_update(update)
    if not user:
        await update.callback_query.edit_message_text(ERR_MSG_NOT_REGISTERED, reply_markup=ERR_KB_NOT_REGISTERED)
        return MAIN_MENU

    try:
        stage = int(update.callback_query.data[len(STAGE_CALLBACK_PREFIX):])
    except ValueError:
        logger.warning(f"Bad stage callback: {update.callback_query.data}")
        return MAIN_MENU

    session = get_revision_session(context, user)
    try:
        view = await session.select_stage(stage)
    except ValueError as e:
        logger.warning(f"User {user.id} picked a bad stage: {e}")
        await send_or_edit(update, ERR_MSG_BAD_STAGE,
                           [[InlineKeyboardButton(CHOOSE_STAGE, callback_data="revise")], KB_BACK_TO_MENU])
        return MAIN_MENU
    except PersistenceUnavailable as e:
        logger.warning(f"Could not select stage {stage} for user {user.id}: {e}")
        await send_or_edit(update, ERR_MSG_STORAGE, [KB_BACK_TO_MENU])
        return MAIN_MENU

    await send_session_view(update, view)
    return REVISING if not view.is_empty else MAIN_MENU


def format_session_view(view: SessionView) -> str:
    """Render the current word as a chat message."""
    word = view.word
    pos = f" <i>({html.escape(word.part_of_speech)})</i>" if word.part_of_speech else ""
    return (f"🗂️ {stage_display_name(view.stage)} · {view.progress_text}\n\n"
            f"<b>{html.escape(word.translation)}</b>{pos}\n\n"
            f"{html.escape(view.displayed_sentence)}\n\n"
            "Type the English word.")


async def send_session_view(update: Update, view: SessionView) -> None:
    """Send the current word, or say the stage is empty."""
    if view.is_empty:
        await send_or_edit(
            update,
            f"No words in stage {stage_display_name(view.stage)}. 🎉",
            [[InlineKeyboardButton(CHOOSE_STAGE, callback_data="revise")], KB_BACK_TO_MENU],
        )
        return

    row = []
    if view.hint_enabled:
        row.append(InlineKeyboardButton("💡 Hint", callback_data=f"{REVISION_CALLBACK_PREFIX}{UserAction.HINT.value}"))
    row.append(InlineKeyboardButton("⏭️ Skip", callback_data=f"{REVISION_CALLBACK_PREFIX}{UserAction.SKIP.value}"))
    row.append(InlineKeyboardButton("🗑️ Delete", callback_data=f"{REVISION_CALLBACK_PREFIX}{UserAction.DELETE.value}"))
    keyboard = [
        row,
        [InlineKeyboardButton("📋 Words", callback_data=f"{REVISION_CALLBACK_PREFIX}{UserAction.LIST_WORDS.value}")],
        [InlineKeyboardButton(CHOOSE_STAGE, callback_data="revise"), KB_BACK_TO_MENU[0]],
    ]
    await send_or_edit(update, format_session_view(view), keyboard)


async def show_word_list(update: Update, view: SessionView) -> None:
    """List the words of the stage by translation so one can be opened."""
    keyboard = []
    for position, record in enumerate(view.queue[:WORD_LIST_LIMIT], start=1):
        marker = "▶️ " if position == view.position else ""
        keyboard.append([InlineKeyboardButton(
            f"{marker}{position}. {record.translation}",
            callback_data=f"{REVISION_CALLBACK_PREFIX}{UserAction.OPEN_WORD.value}_{position}",
        )])
    keyboard.append([InlineKeyboardButton(msg_back_to("Word"),
                                          callback_data=f"{REVISION_CALLBACK_PREFIX}{UserAction.SHOW_WORD.value}")])

    text = f"🗂️ {stage_display_name(view.stage)}: {view.total} words"
    if view.total > WORD_LIST_LIMIT:
        text += f" (showing the first {WORD_LIST_LIMIT})"
    await send_or_edit(update, text, keyboard)


def format_feedback(result: AnswerResult) -> str:
    """Render the outcome of an answer."""
    word = result.word
    if result.outcome == Outcome.CORRECT:
        text = (f"✅ Correct! <b>{html.escape(word.target_word)}</b>\n"
                f"Now in stage: {stage_display_name(word.stage)}")
    else:
        text = f"❌ Not quite. The answer is <b>{html.escape(result.correct_answer)}</b>"
    if word.example_sentence:
        text += f"\n\n<i>{html.escape(word.example_sentence)}</i>"
    return text


async def handle_revision_answer(update: Update, context: CallbackContext) -> int:
    """Check a typed answer."""
    user = get_user_from_update(update)
    if not user:
        await update.message.reply_text(ERR_MSG_NOT_REGISTERED, reply_markup=ERR_KB_NOT_REGISTERED)
        return MAIN_MENU

    await log_received(update, "answer")

    session = get_revision_session(context, user)
    try:
        result = await session.submit_answer(update.message.text or "")
    except PersistenceUnavailable:
        await update.message.reply_text(ERR_MSG_STORAGE)
        return REVISING

    if result.outcome == Outcome.ERROR:
        await update.message.reply_text(f"⚠️ {result.message}")
        return REVISING if session.current_word else MAIN_MENU

    await send_or_edit(
        update,
        format_feedback(result),
        [[InlineKeyboardButton("➡️ Continue",
                               callback_data=f"{REVISION_CALLBACK_PREFIX}{UserAction.CONTINUE.value}")]],
    )
    return REVISING


async def handle_revision_action(update: Update, context: CallbackContext) -> int:
    """Handle hint, skip, delete, continue and word list buttons."""
    user = get_user_from_update(update)
    if not user:
        await update.callback_query.edit_message_text(ERR_MSG_NOT_REGISTERED, reply_markup=ERR_KB_NOT_REGISTERED)
        return MAIN_MENU

    payload = update.callback_query.data[len(REVISION_CALLBACK_PREFIX):]
    action_name, _, argument = payload.partition("_")
    try:
        action = UserAction(action_name)
    except ValueError:
        logger.warning(f"Unknown revision action: {update.callback_query.data}")
        return REVISING

    session = get_revision_session(context, user)
    try:
        if action == UserAction.HINT:
            session.reveal_next_letter()
            view = session.view()
        elif action == UserAction.SHOW_WORD:
            view = session.view()
        elif action == UserAction.DELETE:
            view = await session.delete_current_word()
        elif action in (UserAction.SKIP, UserAction.CONTINUE):
            view = await session.continue_to_next_word()
        elif action == UserAction.LIST_WORDS:
            view = session.view()
            if not view.is_empty:
                await show_word_list(update, view)
                return REVISING
        elif action == UserAction.OPEN_WORD:
            view = session.navigate_to(int(argument))
        else:
            return REVISING
    except PersistenceUnavailable:
        await send_or_edit(update, ERR_MSG_STORAGE, [KB_BACK_TO_MENU])
        return REVISING
    except ValueError as e:
        logger.warning(f"Revision action {action.value} failed for user {user.id}: {e}")
        view = session.view()

    await send_session_view(update, view)
    return REVISING if not view.is_empty else MAIN_MENU


async def add_words(update: Update, context: CallbackContext) -> int:
    """Ask for words to save."""
    await send_or_edit(
        update,
        "Send words to save, one per line:\n\n"
        "<code>word | translation | part of speech | example sentence</code>\n\n"
        "Part of speech and example are optional.",
        [KB_BACK_TO_MENU],
    )
    return ADDING_WORDS


async def handle_add_words(update: Update, context: CallbackContext) -> int:
    """Save the words typed by the user."""
    user = get_user_from_update(update)
    if not user:
        await update.message.reply_text(ERR_MSG_NOT_REGISTERED, reply_markup=ERR_KB_NOT_REGISTERED)
        return MAIN_MENU

    await log_received(update, "add")

    added = []
    errors = []
    db = SessionLocal()
    try:
        word_service = WordService(db)
        for line in (update.message.text or "").splitlines():
            if not line.strip():
                continue
            try:
                word = word_service.add_word(user.id, *parse_word_entry(line))
                added.append(word.target_word)
            except ValueError as e:
                errors.append(f"{html.escape(line.strip())}: {html.escape(str(e))}")
    finally:
        db.close()

    message = ""
    if added:
        message += f"✅ Saved: {html.escape(', '.join(added))}\n"
    if errors:
        message += "⚠️ Not saved:\n" + "\n".join(errors)
    if not message:
        message = "Nothing to save."

    await update.message.reply_text(
        message,
        reply_markup=InlineKeyboardMarkup([
            [InlineKeyboardButton(REVISE, callback_data="revise")],
            KB_BACK_TO_MENU,
        ]),
        parse_mode="HTML",
    )
    return ADDING_WORDS


async def show_statistics(update: Update, context: CallbackContext) -> int:
    """Show how many words are in each stage."""
    user = get_user_from_update(update)
    if not user:
        await update.callback_query.edit_message_text(ERR_MSG_NOT_REGISTERED, reply_markup=ERR_KB_NOT_REGISTERED)
        return MAIN_MENU

    db = SessionLocal()
    try:
        statistics = WordService(db).get_stage_statistics(user.id)
    finally:
        db.close()

    lines = [f"{stage_display_name(stage)}: {count}" for stage, count in statistics.items()]
    message = "📊 Your words\n\n" + "\n".join(lines) + f"\n\nTotal: {sum(statistics.values())}"
    await send_or_edit(update, message, [KB_BACK_TO_MENU])
    return MAIN_MENU


def build_conversation_handler() -> ConversationHandler:
    """Create conversation handler for both messages and callbacks."""
    return ConversationHandler(
        entry_points=[CommandHandler("start", handle_start)],
        states={
            MAIN_MENU: [
                MessageHandler(filters.TEXT & ~filters.COMMAND, handle_message),
                CallbackQueryHandler(handle_callback),
            ],
            ADDING_WORDS: [
                MessageHandler(filters.TEXT & ~filters.COMMAND, handle_add_words),
                CallbackQueryHandler(handle_callback),
            ],
            REVISING: [
                MessageHandler(filters.TEXT & ~filters.COMMAND, handle_revision_answer),
                CallbackQueryHandler(handle_callback),
            ],
        },
        fallbacks=[CommandHandler("start", handle_start)],
        per_message=False,
    )
