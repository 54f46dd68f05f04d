"""Drive one visible placeholder message through backend stage events."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Optional

from vigil_bot.ai.backend import BackendCall, BackendOptions, BackendResult
from vigil_bot.log import get_logger
from vigil_bot.messenger.base import MessengerAdapter
from vigil_bot.messenger.models import OutgoingMessage
from vigil_bot.render.markup import escape_html
from vigil_bot.render.renderer import PARSE_MODE_HTML
from vigil_bot.storage.models import Chat, Session, User

logger = get_logger(__name__)


@dataclass(frozen=True)
class StageLabel:
    icon: str
    title: str


STAGE_LABELS: dict[str, StageLabel] = {
    "setup": StageLabel("🔄", "INITIALIZING"),
    "memory_consultation": StageLabel("🧠", "CHECKING MEMORY"),
    "token_resolution": StageLabel("🔍", "IDENTIFYING TOKENS"),
    "main_consultation": StageLabel("⚙️", "PROCESSING REQUEST"),
    "executing_tools": StageLabel("🛠️", "EXECUTING ACTIONS"),
    "synthesis": StageLabel("📊", "ANALYZING RESULTS"),
    "finalizing": StageLabel("✨", "FINALIZING RESPONSE"),
    "complete": StageLabel("✅", "COMPLETED"),
    "error": StageLabel("❌", "ERROR"),
}

DEFAULT_STAGE_ICON = "⏳"

# Stages long enough to need the typing indicator re-sent.
HEAVY_STAGES = frozenset({"main_consultation", "executing_tools", "synthesis"})

PLACEHOLDER_TEXT = "⏳ <b>Processing your request...</b>"


def stage_label(stage: str) -> StageLabel:
    return STAGE_LABELS.get(stage) or StageLabel(DEFAULT_STAGE_ICON, stage.upper())


def format_stage_message(stage: str, detail: Optional[str] = None) -> str:
    label = stage_label(stage)
    text = f"{label.icon} <b>{escape_html(label.title)}</b>\n"
    if detail:
        text += f"\n{escape_html(detail)}"
    return text


@dataclass
class RelayResult:
    result: BackendResult
    placeholder_id: Optional[str]
    placeholder_deleted: bool = False


class ProgressRelay:
    """Relays stage events of one backend call onto a single placeholder message."""

    def __init__(self, adapter: MessengerAdapter):
        self._adapter = adapter

    async def run(
        self,
        user: User,
        chat: Chat,
        session: Session,
        query_text: str,
        backend_call: BackendCall,
        tool_hints: Optional[BackendOptions] = None,
        *,
        placeholder_id: Optional[str] = None,
    ) -> RelayResult:
        """Invoke *backend_call* once, mirroring its stages on the placeholder.

        If *placeholder_id* is given that message is adopted and left in place for
        the caller; otherwise a placeholder is created and deleted afterwards.
        """
        chat_id = session.chat_id
        adopted = placeholder_id is not None
        if not adopted:
            placeholder_id = await self._create_placeholder(chat_id)

        log = logger.bind(chat_id=chat.id, user_id=user.id, placeholder_id=placeholder_id)
        lock = asyncio.Lock()

        async def on_stage(stage: str, detail: Optional[str] = None) -> None:
            async with lock:
                await self._apply_stage(chat_id, placeholder_id, stage, detail)

        loop = asyncio.get_running_loop()
        started = loop.time()
        result = await backend_call(
            user.id,
            chat.id,
            query_text,
            session.id,
            on_stage,
            tool_hints,
        )
        log.info(
            "backend_call_completed",
            duration_ms=int((loop.time() - started) * 1000),
            has_reply=bool(result.text),
            has_structured_data=bool(result.structured_data),
            actions=[a.get("name") for a in result.executed_actions],
        )

        deleted = False
        if not adopted and placeholder_id is not None:
            deleted = await self._delete_placeholder(chat_id, placeholder_id)
        return RelayResult(result=result, placeholder_id=placeholder_id, placeholder_deleted=deleted)

    async def _create_placeholder(self, chat_id: str) -> Optional[str]:
        try:
            return await self._adapter.send_message(
                OutgoingMessage(chat_id=chat_id, text=PLACEHOLDER_TEXT, parse_mode=PARSE_MODE_HTML)
            )
        except Exception as e:
            logger.warning("placeholder_send_failed", chat_id=chat_id, error=str(e))
            return None

    async def _apply_stage(
        self, chat_id: str, placeholder_id: Optional[str], stage: str, detail: Optional[str]
    ) -> None:
        if placeholder_id is not None:
            try:
                await self._adapter.edit_message(
                    chat_id, placeholder_id, format_stage_message(stage, detail), parse_mode=PARSE_MODE_HTML
                )
            except Exception as e:
                logger.warning("progress_update_failed", stage=stage, detail=detail, error=str(e))

        if stage in HEAVY_STAGES:
            try:
                await self._adapter.send_typing_indicator(chat_id)
            except Exception as e:
                logger.warning("typing_indicator_failed", stage=stage, error=str(e))

    async def _delete_placeholder(self, chat_id: str, placeholder_id: str) -> bool:
        try:
            await self._adapter.delete_message(chat_id, placeholder_id)
        except Exception as e:
            logger.warning("placeholder_delete_failed", placeholder_id=placeholder_id, error=str(e))
            return False
        return True
