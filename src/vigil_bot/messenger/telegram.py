"""Telegram messenger adapter using python-telegram-bot v21+."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from telegram import (
    BotCommand,
    InlineKeyboardButton,
    InlineKeyboardMarkup,
    LinkPreviewOptions,
    Update,
)
from telegram.constants import ChatAction, ParseMode
from telegram.error import BadRequest
from telegram.ext import (
    Application,
    CallbackQueryHandler,
    CommandHandler,
    ContextTypes,
    MessageHandler as TGMessageHandler,
    filters,
)

from vigil_bot.config import TelegramConfig
from vigil_bot.core.types import ChatType, Platform
from vigil_bot.log import get_logger
from vigil_bot.messenger.base import MessengerAdapter
from vigil_bot.messenger.models import InlineKeyboard, OutgoingMessage, PlatformUpdate, UpdateKind

logger = get_logger(__name__)

BOT_COMMANDS = (
    ("start", "Start the bot and see the welcome message"),
    ("new", "Start a new conversation"),
    ("help", "Show help and examples"),
    ("data", "Show the latest data insights"),
)

_NO_PREVIEW = LinkPreviewOptions(is_disabled=True)


def to_reply_markup(keyboard: Optional[InlineKeyboard]) -> Optional[InlineKeyboardMarkup]:
    if keyboard is None or not keyboard.rows:
        return None
    return InlineKeyboardMarkup(
        [
            [
                InlineKeyboardButton(b.text, url=b.url)
                if b.url
                else InlineKeyboardButton(b.text, callback_data=b.callback_data)
                for b in row
            ]
            for row in keyboard.rows
        ]
    )


def _parse_mode(mode: Optional[str]) -> Optional[str]:
    if mode == "html":
        return ParseMode.HTML
    if mode == "markdown":
        return ParseMode.MARKDOWN_V2
    return None


def _command_name(text: str) -> str:
    # "/start@my_bot arg" -> "start"
    return text.split()[0][1:].split("@")[0].lower()


def convert_update(update: Update) -> Optional[PlatformUpdate]:
    """Platform-neutral view of a Telegram update; None for unsupported kinds."""
    user = update.effective_user
    chat = update.effective_chat
    query = update.callback_query

    if query is not None:
        kind = UpdateKind.CALLBACK
        message = query.message
        text = ""
    else:
        message = update.message
        if message is None or not message.text:
            return None
        text = message.text
        kind = UpdateKind.COMMAND if text.startswith("/") else UpdateKind.TEXT

    if user is None or chat is None:
        return None

    timestamp = getattr(message, "date", None) or datetime.now(timezone.utc)
    return PlatformUpdate(
        platform=Platform.TELEGRAM,
        kind=kind,
        user_id=str(user.id),
        chat_id=str(chat.id),
        chat_type=chat.type or ChatType.PRIVATE,
        chat_title=chat.title,
        username=user.username,
        first_name=user.first_name,
        last_name=user.last_name,
        language_code=user.language_code,
        is_premium=user.is_premium,
        is_bot=bool(user.is_bot),
        text=text,
        command=_command_name(text) if kind == UpdateKind.COMMAND else None,
        message_id=str(message.message_id) if message is not None else None,
        callback_id=query.id if query is not None else None,
        callback_data=query.data if query is not None else None,
        update_id=update.update_id,
        timestamp=timestamp,
    )


class TelegramAdapter(MessengerAdapter):
    """Telegram bot adapter using long polling."""

    def __init__(self, config: TelegramConfig):
        super().__init__()
        self.config = config
        self._app: Application | None = None  # type: ignore[type-arg]

    @property
    def platform_name(self) -> str:
        return Platform.TELEGRAM

    async def start(self) -> None:
        if not self.config.token:
            raise ValueError("Telegram bot token not configured")

        self._app = Application.builder().token(self.config.token).build()

        self._app.add_handler(
            CommandHandler([name for name, _ in BOT_COMMANDS], self._on_telegram_update)
        )
        self._app.add_handler(
            TGMessageHandler(filters.TEXT & ~filters.COMMAND, self._on_telegram_update)
        )
        self._app.add_handler(CallbackQueryHandler(self._on_telegram_update))
        self._app.add_error_handler(self._on_telegram_error)

        await self._app.initialize()
        await self._app.bot.set_my_commands([BotCommand(name, desc) for name, desc in BOT_COMMANDS])
        await self._app.start()
        await self._app.updater.start_polling(  # type: ignore[union-attr]
            drop_pending_updates=self.config.drop_pending_updates
        )
        logger.info("telegram_adapter_started", username=self._app.bot.username)

    async def stop(self) -> None:
        if self._app:
            app, self._app = self._app, None
            if app.updater and app.updater.running:
                await app.updater.stop()
            if app.running:
                await app.stop()
            await app.shutdown()
            logger.info("telegram_adapter_stopped")

    @property
    def _bot(self) -> Any:
        if not self._app:
            raise RuntimeError("Telegram adapter is not started")
        return self._app.bot

    async def send_message(self, message: OutgoingMessage) -> str:
        reply_id = int(message.reply_to_message_id) if message.reply_to_message_id else None
        sent = await self._bot.send_message(
            chat_id=int(message.chat_id),
            text=message.text,
            parse_mode=_parse_mode(message.parse_mode),
            reply_markup=to_reply_markup(message.keyboard),
            reply_to_message_id=reply_id,
            link_preview_options=_NO_PREVIEW,
        )
        return str(sent.message_id)

    async def edit_message(
        self,
        chat_id: str,
        message_id: str,
        text: str,
        parse_mode: Optional[str] = None,
        keyboard: Optional[InlineKeyboard] = None,
    ) -> None:
        try:
            await self._bot.edit_message_text(
                text=text,
                chat_id=int(chat_id),
                message_id=int(message_id),
                parse_mode=_parse_mode(parse_mode),
                reply_markup=to_reply_markup(keyboard),
                link_preview_options=_NO_PREVIEW,
            )
        except BadRequest as e:
            # Editing to identical content is not an error for us.
            if "not modified" in str(e).lower():
                logger.debug("telegram_edit_not_modified", message_id=message_id)
                return
            raise

    async def delete_message(self, chat_id: str, message_id: str) -> None:
        await self._bot.delete_message(chat_id=int(chat_id), message_id=int(message_id))

    async def send_typing_indicator(self, chat_id: str) -> None:
        await self._bot.send_chat_action(chat_id=int(chat_id), action=ChatAction.TYPING)

    async def answer_callback(self, callback_id: str, text: Optional[str] = None) -> None:
        await self._bot.answer_callback_query(callback_query_id=callback_id, text=text)

    async def _on_telegram_update(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        if not self._update_callback:
            return
        incoming = convert_update(update)
        if incoming is None:
            logger.debug("telegram_update_ignored", update_id=update.update_id)
            return
        # Exceptions propagate to the application's error handler.
        await self._update_callback(incoming)

    async def _on_telegram_error(self, update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
        error = context.error
        incoming = convert_update(update) if isinstance(update, Update) else None
        if not self._error_callback or error is None:
            logger.error("telegram_unhandled_error", error=str(error))
            return
        await self._error_callback(error, incoming)
