"""Update handler: commands, free text and button presses, end to end."""

from __future__ import annotations

import dataclasses
import json
import traceback
from typing import Optional

from vigil_bot.ai.backend import BackendOptions, BackendResult, ConversationBackend
from vigil_bot.config import DebugConfig
from vigil_bot.core.callbacks import decode, processing_text
from vigil_bot.core.resolver import IdentityResolver
from vigil_bot.log import get_logger
from vigil_bot.messenger.base import MessengerAdapter
from vigil_bot.messenger.models import InlineKeyboard, OutgoingMessage, PlatformUpdate, UpdateKind
from vigil_bot.relay.delivery import Failed, deliver
from vigil_bot.relay.progress import PLACEHOLDER_TEXT, ProgressRelay
from vigil_bot.render.keyboards import build_keyboard, help_keyboard, welcome_keyboard
from vigil_bot.render.markup import escape_html
from vigil_bot.render.renderer import PARSE_MODE_HTML, RenderOptions, downgrade, render
from vigil_bot.render.summary import format_structured_data_summary
from vigil_bot.storage.message_repo import MessageRepository

logger = get_logger(__name__)

WELCOME_TEXT = """<b>Welcome to Vybe Vigilante Bot! 👋</b>

I'm your AI assistant for navigating the Solana ecosystem, powered by real-time market data! ⚡️

<i>Here's what I can help you with:</i>
• Analyze tokens, trends, and market movements
• Check wallet balances and transaction history
• Monitor price changes and set alerts
• Compare assets and get investment insights

<b>Just ask me anything about Solana!</b>"""

HELP_TEXT = """<b>🤖 VYBE VIGILANTE BOT - HELP CENTER</b>

Your powerful assistant for navigating Solana with real-time data!

<pre>
┏━━━━━━━━━━━━━━━━━━━━━━━━┓
┃  🚀 VYBE VIGILANTE 🚀  ┃
┃  Your Solana Assistant  ┃
┗━━━━━━━━━━━━━━━━━━━━━━━━┛
</pre>

<i>Select a category or try an example:</i>"""

NEW_CHAT_TEXT = "<b>✨ New conversation started!</b>\n\nWhat would you like to explore in the Solana ecosystem?"
DATA_HEADER = "<b>📊 DATA INSIGHTS</b>\n\n"
NO_DATA_TEXT = "No recent data insights available. Try asking a question about tokens or wallets first."

ERROR_TEXT = (
    "🤖 Oh no! An unexpected error occurred. Please try again in a moment. "
    "If the problem persists, use /new to start fresh."
)
CRITICAL_ERROR_TEXT = (
    "😥 Apologies! A critical error occurred. My team has been notified. "
    "Please try again later or use /new."
)
INVALID_BUTTON_TEXT = "Invalid button press."
ACK_TEXT = "Processing..."
DEBUG_JSON_HEADER = "⚙️ DEBUG JSON RESPONSE ⚙️"

# Leaves room for the <pre><code> wrapper and entity growth.
DEBUG_CHUNK_LENGTH = 3000


def _split_message(text: str, max_length: int = 4000) -> list[str]:
    """Split a long message into chunks that fit within platform limits."""
    if len(text) <= max_length:
        return [text]

    chunks = []
    while text:
        if len(text) <= max_length:
            chunks.append(text)
            break
        # Try to split at a newline
        split_at = text.rfind("\n", 0, max_length)
        if split_at == -1:
            split_at = max_length
        chunks.append(text[:split_at])
        text = text[split_at:].lstrip("\n")
    return chunks


class UpdateHandler:
    """Routes each inbound update to its flow and reports failures to the user."""

    def __init__(
        self,
        adapter: MessengerAdapter,
        resolver: IdentityResolver,
        backend: ConversationBackend,
        messages: MessageRepository,
        render_options: RenderOptions = RenderOptions(),
        debug: DebugConfig | None = None,
    ):
        self._adapter = adapter
        self._resolver = resolver
        self._backend = backend
        self._messages = messages
        self._render_options = render_options
        self._debug = debug or DebugConfig()
        self._relay = ProgressRelay(adapter)
        self._commands = {
            "start": self._handle_start,
            "new": self._handle_new,
            "help": self._handle_help,
            "data": self._handle_data,
        }

    async def handle(self, update: PlatformUpdate) -> None:
        """Process one update; errors are reported to the user, never raised."""
        match update.kind:
            case UpdateKind.COMMAND:
                command = self._commands.get(update.command or "")
                if command is None:
                    logger.debug("command_ignored", command=update.command)
                    return
                stage = f"{update.command}_command"
                flow = command
            case UpdateKind.CALLBACK:
                stage = "callback_query_processing"
                flow = self._handle_callback
            case _:
                stage = "text_message_processing"
                flow = self._handle_text

        try:
            await flow(update)
        except Exception as e:
            await self._handle_error(update, e, stage)

    # --- commands ---------------------------------------------------------

    async def _handle_start(self, update: PlatformUpdate) -> None:
        await self._typing(update.chat_id)
        context = await self._resolver.resolve(update)
        await self._send_html(update.chat_id, WELCOME_TEXT, welcome_keyboard())
        logger.info("start_message_sent", user_id=context.user.id)

    async def _handle_new(self, update: PlatformUpdate) -> None:
        await self._typing(update.chat_id)
        context = await self._resolver.resolve(update)
        context = await self._resolver.start_new_chat(context)
        await self._send_html(update.chat_id, NEW_CHAT_TEXT)
        logger.info("new_conversation_started", chat_id=context.chat.id, user_id=context.user.id)

    async def _handle_help(self, update: PlatformUpdate) -> None:
        await self._typing(update.chat_id)
        await self._resolver.resolve(update)
        await self._send_help(update.chat_id)

    async def _handle_data(self, update: PlatformUpdate) -> None:
        await self._typing(update.chat_id)
        context = await self._resolver.resolve(update)
        data = await self._messages.latest_structured_data(context.chat.id)
        summary = format_structured_data_summary(data)
        if summary:
            keyboard = build_keyboard(data, self._render_options.explorer_url)
            await self._send_html(update.chat_id, DATA_HEADER + summary, keyboard)
            return
        await self._adapter.send_message(OutgoingMessage(chat_id=update.chat_id, text=NO_DATA_TEXT))

    # --- free text --------------------------------------------------------

    async def _handle_text(self, update: PlatformUpdate) -> None:
        text = update.text.strip()
        if not text:
            logger.warning("empty_text_ignored", update_id=update.update_id)
            return
        if text.startswith("/"):
            logger.debug("command_ignored", text=text)
            return

        logger.info("text_message_received", platform_user_id=update.user_id, text_length=len(text))
        await self._typing(update.chat_id)
        context = await self._resolver.resolve(update)

        relayed = await self._relay.run(
            context.user, context.chat, context.session, text, self._backend.send_message
        )
        await self._debug_echo(update.chat_id, relayed.result)
        await self._deliver(update.chat_id, relayed.result)

    # --- button presses ---------------------------------------------------

    async def _handle_callback(self, update: PlatformUpdate) -> None:
        if not update.callback_data or not update.callback_data.strip():
            logger.warning("callback_without_data", update_id=update.update_id)
            if update.callback_id:
                try:
                    await self._adapter.answer_callback(update.callback_id, INVALID_BUTTON_TEXT)
                except Exception as e:
                    logger.debug("callback_answer_failed", error=str(e))
            return

        try:
            await self._adapter.answer_callback(update.callback_id or "", ACK_TEXT)
        except Exception as e:
            # Usually a button on an old message; nothing to do.
            logger.warning("callback_ack_failed", callback_data=update.callback_data, error=str(e))
            return

        logger.info(
            "callback_query_received",
            callback_data=update.callback_data,
            chat_id=update.chat_id,
            message_id=update.message_id,
        )
        context = await self._resolver.resolve(update)
        decoded = decode(update.callback_data)

        if decoded.local_command == "help":
            await self._send_help(update.chat_id)
            return

        await self._typing(update.chat_id)
        placeholder_id = await self._show_processing(update, processing_text(decoded))

        options = None
        if decoded.system_directive or decoded.tool_hints:
            options = BackendOptions(
                system_directive=decoded.system_directive,
                priority_tools=decoded.tool_hints,
            )
        relayed = await self._relay.run(
            context.user,
            context.chat,
            context.session,
            decoded.query_text,
            self._backend.send_message,
            options,
            placeholder_id=placeholder_id,
        )
        await self._deliver(update.chat_id, relayed.result, relayed.placeholder_id)

    async def _show_processing(self, update: PlatformUpdate, text: str) -> Optional[str]:
        """Turn the pressed message into the placeholder, or send a fresh one."""
        if update.message_id:
            try:
                await self._adapter.edit_message(
                    update.chat_id, update.message_id, text, parse_mode=PARSE_MODE_HTML
                )
                return update.message_id
            except Exception as e:
                logger.warning("processing_edit_failed", message_id=update.message_id, error=str(e))
        try:
            return await self._adapter.send_message(
                OutgoingMessage(chat_id=update.chat_id, text=PLACEHOLDER_TEXT, parse_mode=PARSE_MODE_HTML)
            )
        except Exception as e:
            logger.warning("processing_send_failed", chat_id=update.chat_id, error=str(e))
            return None

    # --- output -----------------------------------------------------------

    async def _deliver(self, chat_id: str, result: BackendResult, placeholder_id: Optional[str] = None) -> None:
        rendered = render(result, self._render_options)
        fallback = downgrade(result, rendered, self._render_options)
        outcome = await deliver(self._adapter, chat_id, rendered, placeholder_id, fallback)
        if isinstance(outcome, Failed):
            logger.error("response_not_delivered", chat_id=chat_id, reason=outcome.reason)
        else:
            logger.info(
                "response_delivered",
                chat_id=chat_id,
                outcome=type(outcome).__name__,
                tier=rendered.tier,
                length=len(rendered.text),
            )

    async def _debug_echo(self, chat_id: str, result: BackendResult) -> None:
        if not self._debug.show_full_json:
            return
        payload = json.dumps(dataclasses.asdict(result), indent=2, ensure_ascii=False, default=str)
        chunks = _split_message(payload, DEBUG_CHUNK_LENGTH)
        for idx, chunk in enumerate(chunks, start=1):
            header = DEBUG_JSON_HEADER if len(chunks) == 1 else f"{DEBUG_JSON_HEADER} ({idx}/{len(chunks)})"
            text = f'{header}\n\n<pre><code class="language-json">{escape_html(chunk)}</code></pre>'
            try:
                await self._send_html(chat_id, text)
            except Exception as e:
                logger.error("debug_json_send_failed", part=idx, error=str(e))
                return

    async def _send_help(self, chat_id: str) -> None:
        await self._send_html(chat_id, HELP_TEXT, help_keyboard())

    async def _send_html(self, chat_id: str, text: str, keyboard: InlineKeyboard | None = None) -> str:
        return await self._adapter.send_message(
            OutgoingMessage(chat_id=chat_id, text=text, parse_mode=PARSE_MODE_HTML, keyboard=keyboard)
        )

    async def _typing(self, chat_id: str) -> None:
        try:
            await self._adapter.send_typing_indicator(chat_id)
        except Exception as e:
            logger.debug("typing_indicator_failed", chat_id=chat_id, error=str(e))

    # --- errors -----------------------------------------------------------

    async def _handle_error(self, update: PlatformUpdate, error: Exception, stage: str) -> None:
        """Apologize to the user; never raises."""
        logger.error(
            "update_processing_failed",
            stage=stage,
            error=str(error),
            platform_user_id=update.user_id,
            chat_id=update.chat_id,
            exc_info=error,
        )

        message = f"<b>⚠️ Error</b>\n\n{escape_html(ERROR_TEXT)}"
        if self._debug.debug_mode:
            trace = "".join(traceback.format_exception(error))
            message += f'\n\n<pre><code class="language-python">{escape_html(trace)}</code></pre>'

        edit_target = update.message_id if update.kind == UpdateKind.CALLBACK else None
        try:
            await self._reply(update.chat_id, message, PARSE_MODE_HTML, edit_target)
        except Exception as e:
            logger.warning("error_reply_html_failed", error=str(e))
            try:
                await self._reply(update.chat_id, ERROR_TEXT, None, edit_target)
            except Exception as e2:
                logger.error("error_reply_failed", error=str(e2), original_error=str(error))

    async def handle_global_error(self, error: BaseException, update: PlatformUpdate | None) -> None:
        """Last-resort handler for errors escaping the transport's dispatch."""
        logger.error(
            "unhandled_transport_error",
            error=str(error),
            error_type=type(error).__name__,
            update_id=update.update_id if update else None,
            exc_info=error,
        )
        if update is None:
            return
        edit_target = update.message_id if update.kind == UpdateKind.CALLBACK else None
        try:
            await self._reply(update.chat_id, CRITICAL_ERROR_TEXT, None, edit_target)
        except Exception as e:
            logger.error("global_error_reply_failed", error=str(e))

    async def _reply(
        self, chat_id: str, text: str, parse_mode: Optional[str], edit_target: Optional[str]
    ) -> None:
        if edit_target:
            await self._adapter.edit_message(chat_id, edit_target, text, parse_mode=parse_mode)
        else:
            await self._adapter.send_message(OutgoingMessage(chat_id=chat_id, text=text, parse_mode=parse_mode))
