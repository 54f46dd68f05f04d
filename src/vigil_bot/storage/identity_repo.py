"""Identity, session and chat rows."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from vigil_bot.core.types import ChatStatus, SessionStatus, UserStatus
from vigil_bot.log import get_logger
from vigil_bot.storage.database import Database
from vigil_bot.storage.models import Chat, Session, User

if TYPE_CHECKING:
    import aiosqlite

    from vigil_bot.messenger.models import PlatformUpdate

logger = get_logger(__name__)


class IdentityRepository:
    """Create/update access to users, sessions and chats. Never deletes.

    Methods do not commit; callers group them with ``Database.transaction()``.
    """

    def __init__(self, db: Database):
        self._db = db

    async def find_session(self, platform: str, platform_user_id: str) -> Optional[Session]:
        cursor = await self._db.conn.execute(
            "SELECT * FROM sessions WHERE platform = ? AND platform_user_id = ?",
            (platform, platform_user_id),
        )
        row = await cursor.fetchone()
        return self._row_to_session(row) if row else None

    async def get_user(self, user_id: int) -> User:
        cursor = await self._db.conn.execute("SELECT * FROM users WHERE id = ?", (user_id,))
        row = await cursor.fetchone()
        if row is None:
            raise LookupError(f"User {user_id} not found")
        return self._row_to_user(row)

    async def upsert_user(self, username: str, update: PlatformUpdate, now: datetime) -> User:
        """Create the user keyed by *username*, or refresh its profile fields."""
        nicename = update.first_name or username
        language = update.language_code or "en"
        await self._db.conn.execute(
            """INSERT INTO users (username, firstname, lastname, nicename, language,
                                  status, created, modified)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)
               ON CONFLICT(username) DO UPDATE SET
                   firstname = excluded.firstname,
                   lastname = excluded.lastname,
                   nicename = excluded.nicename,
                   language = excluded.language,
                   status = excluded.status,
                   modified = excluded.modified""",
            (
                username,
                update.first_name,
                update.last_name,
                nicename,
                language,
                UserStatus.ACTIVE.value,
                now.isoformat(),
                now.isoformat(),
            ),
        )
        cursor = await self._db.conn.execute("SELECT * FROM users WHERE username = ?", (username,))
        row = await cursor.fetchone()
        return self._row_to_user(row)

    async def insert_session(self, user_id: int, update: PlatformUpdate, now: datetime) -> Session:
        cursor = await self._db.conn.execute(
            """INSERT INTO sessions
               (user_id, platform, platform_user_id, platform_username, first_name,
                last_name, language_code, is_bot, is_premium, chat_id, chat_type,
                chat_title, last_interaction, status)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                user_id,
                update.platform.value,
                update.user_id,
                update.username,
                update.first_name,
                update.last_name,
                update.language_code,
                int(update.is_bot),
                _to_db_bool(update.is_premium),
                update.chat_id,
                update.chat_type,
                None if update.is_private else update.chat_title,
                now.isoformat(),
                SessionStatus.ACTIVE.value,
            ),
        )
        return await self._get_session(cursor.lastrowid)  # type: ignore[arg-type]

    async def update_session(self, session: Session, update: PlatformUpdate, now: datetime) -> Session:
        """Refresh the mutable profile fields from the latest update."""
        is_premium = update.is_premium if update.is_premium is not None else session.is_premium
        await self._db.conn.execute(
            """UPDATE sessions SET
                   platform_username = ?, first_name = ?, last_name = ?,
                   language_code = ?, is_premium = ?, chat_id = ?, chat_type = ?,
                   chat_title = ?, last_interaction = ?, status = ?
               WHERE id = ?""",
            (
                update.username,
                update.first_name,
                update.last_name,
                update.language_code,
                _to_db_bool(is_premium),
                update.chat_id,
                update.chat_type,
                None if update.is_private else update.chat_title,
                now.isoformat(),
                SessionStatus.ACTIVE.value,
                session.id,
            ),
        )
        return await self._get_session(session.id)

    async def find_active_chat(self, session_id: int, platform: str) -> Optional[Chat]:
        """Most recently active chat of a session, if any."""
        cursor = await self._db.conn.execute(
            """SELECT * FROM chats
               WHERE session_id = ? AND platform = ? AND status = ?
               ORDER BY last_message_at DESC, id DESC
               LIMIT 1""",
            (session_id, platform, ChatStatus.ACTIVE.value),
        )
        row = await cursor.fetchone()
        return self._row_to_chat(row) if row else None

    async def insert_chat(
        self, user_id: int, session_id: int, platform: str, title: str, now: datetime
    ) -> Chat:
        cursor = await self._db.conn.execute(
            """INSERT INTO chats (user_id, session_id, platform, title, last_message_at, status)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (user_id, session_id, platform, title, now.isoformat(), ChatStatus.ACTIVE.value),
        )
        return await self._get_chat(cursor.lastrowid)  # type: ignore[arg-type]

    async def touch_chat(self, chat_id: int, now: datetime) -> Chat:
        await self._db.conn.execute(
            "UPDATE chats SET last_message_at = ?, status = ? WHERE id = ?",
            (now.isoformat(), ChatStatus.ACTIVE.value, chat_id),
        )
        return await self._get_chat(chat_id)

    async def archive_chat(self, chat_id: int) -> None:
        await self._db.conn.execute(
            "UPDATE chats SET status = ? WHERE id = ?",
            (ChatStatus.ARCHIVED.value, chat_id),
        )

    async def count_chats(self, session_id: int, status: ChatStatus | None = None) -> int:
        if status is None:
            cursor = await self._db.conn.execute(
                "SELECT COUNT(*) FROM chats WHERE session_id = ?", (session_id,)
            )
        else:
            cursor = await self._db.conn.execute(
                "SELECT COUNT(*) FROM chats WHERE session_id = ? AND status = ?",
                (session_id, status.value),
            )
        row = await cursor.fetchone()
        return row[0]

    async def count_sessions(self, platform: str, platform_user_id: str) -> int:
        cursor = await self._db.conn.execute(
            "SELECT COUNT(*) FROM sessions WHERE platform = ? AND platform_user_id = ?",
            (platform, platform_user_id),
        )
        row = await cursor.fetchone()
        return row[0]

    async def _get_session(self, session_id: int) -> Session:
        cursor = await self._db.conn.execute("SELECT * FROM sessions WHERE id = ?", (session_id,))
        return self._row_to_session(await cursor.fetchone())

    async def _get_chat(self, chat_id: int) -> Chat:
        cursor = await self._db.conn.execute("SELECT * FROM chats WHERE id = ?", (chat_id,))
        return self._row_to_chat(await cursor.fetchone())

    @staticmethod
    def _row_to_user(row: aiosqlite.Row) -> User:
        return User(
            id=row["id"],
            username=row["username"],
            firstname=row["firstname"],
            lastname=row["lastname"],
            nicename=row["nicename"],
            language=row["language"],
            status=UserStatus(row["status"]),
            created=datetime.fromisoformat(row["created"]),
            modified=datetime.fromisoformat(row["modified"]),
        )

    @staticmethod
    def _row_to_session(row: aiosqlite.Row) -> Session:
        return Session(
            id=row["id"],
            user_id=row["user_id"],
            platform=row["platform"],
            platform_user_id=row["platform_user_id"],
            platform_username=row["platform_username"],
            first_name=row["first_name"],
            last_name=row["last_name"],
            language_code=row["language_code"],
            is_premium=None if row["is_premium"] is None else bool(row["is_premium"]),
            chat_id=row["chat_id"],
            chat_type=row["chat_type"],
            chat_title=row["chat_title"],
            last_interaction=datetime.fromisoformat(row["last_interaction"]),
            status=SessionStatus(row["status"]),
            is_bot=bool(row["is_bot"]),
        )

    @staticmethod
    def _row_to_chat(row: aiosqlite.Row) -> Chat:
        return Chat(
            id=row["id"],
            user_id=row["user_id"],
            session_id=row["session_id"],
            platform=row["platform"],
            title=row["title"],
            last_message_at=datetime.fromisoformat(row["last_message_at"]),
            status=ChatStatus(row["status"]),
        )


def _to_db_bool(value: Optional[bool]) -> Optional[int]:
    return None if value is None else int(value)
