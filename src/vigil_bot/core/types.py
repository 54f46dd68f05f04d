"""Shared types and enumerations."""

from __future__ import annotations

from enum import StrEnum


class Platform(StrEnum):
    TELEGRAM = "telegram"


class UserStatus(StrEnum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"


class SessionStatus(StrEnum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"


class ChatStatus(StrEnum):
    ACTIVE = "Active"
    ARCHIVED = "Archived"


class MessageRole(StrEnum):
    USER = "user"
    ASSISTANT = "assistant"


class ChatType(StrEnum):
    PRIVATE = "private"
    GROUP = "group"
    SUPERGROUP = "supergroup"
    CHANNEL = "channel"
