"""Platform-neutral update, message and keyboard models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import StrEnum
from typing import Optional

from vigil_bot.core.types import ChatType, Platform


class UpdateKind(StrEnum):
    TEXT = "text"
    COMMAND = "command"
    CALLBACK = "callback"


@dataclass(frozen=True, slots=True)
class PlatformUpdate:
    """One inbound update (message, command or button press) from the platform."""

    platform: Platform
    kind: UpdateKind
    user_id: str
    chat_id: str
    chat_type: str = ChatType.PRIVATE
    chat_title: Optional[str] = None
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    language_code: Optional[str] = None
    is_premium: Optional[bool] = None
    is_bot: bool = False
    text: str = ""
    command: Optional[str] = None
    message_id: Optional[str] = None
    callback_id: Optional[str] = None
    callback_data: Optional[str] = None
    update_id: Optional[int] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_private(self) -> bool:
        return self.chat_type == ChatType.PRIVATE


@dataclass(frozen=True, slots=True)
class InlineButton:
    """A keyboard button: either a callback payload or an external link."""

    text: str
    callback_data: Optional[str] = None
    url: Optional[str] = None


@dataclass(frozen=True, slots=True)
class InlineKeyboard:
    rows: tuple[tuple[InlineButton, ...], ...]

    @classmethod
    def from_rows(cls, rows: list[list[InlineButton]]) -> InlineKeyboard:
        return cls(rows=tuple(tuple(row) for row in rows if row))

    def buttons(self) -> list[InlineButton]:
        return [button for row in self.rows for button in row]

    def callback_data(self) -> list[str]:
        return [b.callback_data for b in self.buttons() if b.callback_data]


@dataclass(frozen=True, slots=True)
class OutgoingMessage:
    chat_id: str
    text: str
    parse_mode: Optional[str] = None  # "html" or None
    keyboard: Optional[InlineKeyboard] = None
    reply_to_message_id: Optional[str] = None
