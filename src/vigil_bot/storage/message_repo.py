"""Conversation messages and their structured-data metadata."""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Optional

from vigil_bot.core.types import MessageRole
from vigil_bot.log import get_logger
from vigil_bot.storage.database import Database
from vigil_bot.storage.models import Message

logger = get_logger(__name__)


class MessageRepository:
    """Append-only message log per chat."""

    def __init__(self, db: Database):
        self._db = db

    async def save(self, message: Message) -> int:
        """Save a message and return its ID."""
        async with self._db.transaction() as conn:
            cursor = await conn.execute(
                """INSERT INTO messages (chat_id, user_id, role, text, status, metas_json)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (
                    message.chat_id,
                    message.user_id,
                    message.role.value,
                    message.text,
                    message.status,
                    json.dumps(message.metas, default=str),
                ),
            )
        return cursor.lastrowid  # type: ignore[return-value]

    async def get_chat_history(self, chat_id: int, limit: int = 20) -> list[Message]:
        """Latest *limit* messages of a chat, oldest first."""
        cursor = await self._db.conn.execute(
            """SELECT * FROM (
                   SELECT * FROM messages
                   WHERE chat_id = ? AND status = 'Active'
                   ORDER BY created DESC, id DESC
                   LIMIT ?
               ) ORDER BY created ASC, id ASC""",
            (chat_id, limit),
        )
        rows = await cursor.fetchall()
        return [self._row_to_message(row) for row in rows]

    async def latest_structured_data(self, chat_id: int) -> Optional[dict[str, Any]]:
        """Structured payload of the newest assistant message that carries one."""
        cursor = await self._db.conn.execute(
            """SELECT * FROM messages
               WHERE chat_id = ? AND role = ? AND status = 'Active'
                 AND json_extract(metas_json, '$.structuredData') IS NOT NULL
               ORDER BY created DESC, id DESC
               LIMIT 1""",
            (chat_id, MessageRole.ASSISTANT.value),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_message(row).structured_data

    @staticmethod
    def _row_to_message(row) -> Message:
        return Message(
            id=row["id"],
            chat_id=row["chat_id"],
            user_id=row["user_id"],
            role=MessageRole(row["role"]),
            text=row["text"],
            status=row["status"],
            metas=json.loads(row["metas_json"]),
            created=datetime.fromisoformat(row["created"]),
        )
