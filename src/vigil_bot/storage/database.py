"""SQLite database connection manager with schema migration."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

import aiosqlite

from vigil_bot.log import get_logger

logger = get_logger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS users (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    username        TEXT    NOT NULL UNIQUE,
    firstname       TEXT,
    lastname        TEXT,
    nicename        TEXT,
    language        TEXT    NOT NULL DEFAULT 'en',
    type            TEXT    NOT NULL DEFAULT 'TelegramUser',
    status          TEXT    NOT NULL DEFAULT 'Active' CHECK(status IN ('Active','Inactive')),
    created         TEXT    NOT NULL,
    modified        TEXT    NOT NULL
);

CREATE TABLE IF NOT EXISTS sessions (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id             INTEGER NOT NULL REFERENCES users(id),
    platform            TEXT    NOT NULL,
    platform_user_id    TEXT    NOT NULL,
    platform_username   TEXT,
    first_name          TEXT,
    last_name           TEXT,
    language_code       TEXT,
    is_bot              INTEGER NOT NULL DEFAULT 0,
    is_premium          INTEGER,
    chat_id             TEXT    NOT NULL,
    chat_type           TEXT    NOT NULL,
    chat_title          TEXT,
    last_interaction    TEXT    NOT NULL,
    status              TEXT    NOT NULL DEFAULT 'Active' CHECK(status IN ('Active','Inactive')),
    UNIQUE (platform, platform_user_id)
);

CREATE TABLE IF NOT EXISTS chats (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id         INTEGER NOT NULL REFERENCES users(id),
    session_id      INTEGER NOT NULL REFERENCES sessions(id),
    platform        TEXT    NOT NULL,
    title           TEXT    NOT NULL,
    last_message_at TEXT    NOT NULL,
    status          TEXT    NOT NULL DEFAULT 'Active' CHECK(status IN ('Active','Archived')),
    created         TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%f','now'))
);

CREATE UNIQUE INDEX IF NOT EXISTS idx_chats_one_active
    ON chats(session_id) WHERE status = 'Active';

CREATE INDEX IF NOT EXISTS idx_chats_session
    ON chats(session_id, status, last_message_at);

CREATE TABLE IF NOT EXISTS messages (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    chat_id         INTEGER NOT NULL REFERENCES chats(id),
    user_id         INTEGER NOT NULL REFERENCES users(id),
    role            TEXT    NOT NULL CHECK(role IN ('user','assistant')),
    text            TEXT    NOT NULL,
    status          TEXT    NOT NULL DEFAULT 'Active',
    metas_json      TEXT    NOT NULL DEFAULT '{}',
    created         TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%f','now'))
);

CREATE INDEX IF NOT EXISTS idx_messages_chat
    ON messages(chat_id, created);
"""


class Database:
    """Async SQLite database manager.

    One connection is shared by every unit of work. Statements are serialized by
    aiosqlite's worker thread; multi-statement write units go through
    :meth:`transaction`, which holds a lock so two units never interleave inside
    the same SQLite transaction.
    """

    def __init__(self, db_path: str):
        self._db_path = db_path
        self._conn: aiosqlite.Connection | None = None
        self._tx_lock = asyncio.Lock()

    async def initialize(self) -> None:
        """Open connection and run migrations."""
        Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = await aiosqlite.connect(self._db_path, isolation_level=None)
        self._conn.row_factory = aiosqlite.Row
        await self._conn.execute("PRAGMA journal_mode=WAL")
        await self._conn.execute("PRAGMA foreign_keys=ON")
        await self._conn.executescript(SCHEMA_SQL)
        logger.info("database_initialized", path=self._db_path)

    @property
    def conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError("Database not initialized. Call initialize() first.")
        return self._conn

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """Run a block atomically: commit on success, roll back on any error."""
        async with self._tx_lock:
            conn = self.conn
            await conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                await conn.rollback()
                raise
            else:
                await conn.commit()

    async def close(self) -> None:
        if self._conn:
            await self._conn.close()
            self._conn = None
            logger.info("database_closed")
