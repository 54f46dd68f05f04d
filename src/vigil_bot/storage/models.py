"""Data models for storage layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from vigil_bot.core.types import ChatStatus, MessageRole, SessionStatus, UserStatus


@dataclass
class User:
    id: int
    username: str
    firstname: Optional[str]
    lastname: Optional[str]
    nicename: Optional[str]
    language: str
    status: UserStatus
    created: datetime
    modified: datetime

    @property
    def display_name(self) -> str:
        return self.nicename or self.firstname or self.username


@dataclass
class Session:
    id: int
    user_id: int
    platform: str
    platform_user_id: str
    platform_username: Optional[str]
    first_name: Optional[str]
    last_name: Optional[str]
    language_code: Optional[str]
    is_premium: Optional[bool]
    chat_id: str  # platform chat id at last contact
    chat_type: str
    chat_title: Optional[str]
    last_interaction: datetime
    status: SessionStatus
    is_bot: bool = False


@dataclass
class Chat:
    id: int
    user_id: int
    session_id: int
    platform: str
    title: str
    last_message_at: datetime
    status: ChatStatus


@dataclass
class Message:
    chat_id: int
    user_id: int
    role: MessageRole
    text: str
    status: str = "Active"
    metas: dict[str, Any] = field(default_factory=dict)
    created: Optional[datetime] = None
    id: Optional[int] = None

    @property
    def structured_data(self) -> dict[str, Any] | None:
        return self.metas.get("structuredData")


@dataclass(frozen=True)
class ResolvedContext:
    """The durable identity triple an inbound update belongs to."""

    user: User
    session: Session
    chat: Chat
