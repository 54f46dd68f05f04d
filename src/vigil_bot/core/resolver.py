"""Resolve inbound updates to a durable (user, session, chat) triple."""

from __future__ import annotations

import sqlite3
from datetime import datetime, timezone

from vigil_bot.core.types import Platform
from vigil_bot.log import get_logger
from vigil_bot.messenger.models import PlatformUpdate
from vigil_bot.storage.database import Database
from vigil_bot.storage.identity_repo import IdentityRepository
from vigil_bot.storage.models import Chat, ResolvedContext, Session, User

logger = get_logger(__name__)

_HANDLE_PREFIXES = {Platform.TELEGRAM: "tg"}


def synthesize_username(update: PlatformUpdate) -> str:
    """Username key for a new identity: the platform handle, else ``tg_<id>``."""
    if update.username:
        return update.username
    prefix = _HANDLE_PREFIXES.get(update.platform, update.platform.value)
    return f"{prefix}_{update.user_id}"


def chat_title(update: PlatformUpdate, user: User) -> str:
    if not update.is_private and update.chat_title:
        return update.chat_title
    return f"Chat with {user.display_name}"


class IdentityResolver:
    """Find-or-create the identity, session and active chat for an update.

    Concurrent first contact from the same account is serialized by the unique
    ``(platform, platform_user_id)`` constraint: the losing creation rolls back and
    retries once through the existing-session path. The partial unique index on
    active chats does the same for chat creation.
    """

    def __init__(self, db: Database, repo: IdentityRepository | None = None):
        self._db = db
        self._repo = repo or IdentityRepository(db)

    @property
    def repo(self) -> IdentityRepository:
        return self._repo

    async def resolve(self, update: PlatformUpdate) -> ResolvedContext:
        """Return the triple for *update*; raises storage errors unmodified."""
        log = logger.bind(platform=update.platform.value, platform_user_id=update.user_id)
        try:
            session = await self._repo.find_session(update.platform.value, update.user_id)
            if session is not None:
                return await self._resolve_existing(session, update)

            try:
                return await self._create_all(update)
            except sqlite3.IntegrityError:
                session = await self._repo.find_session(update.platform.value, update.user_id)
                if session is None:
                    raise
                log.info("session_create_conflict", session_id=session.id)
                return await self._resolve_existing(session, update)
        except Exception:
            log.error("resolve_failed", exc_info=True)
            raise

    async def start_new_chat(self, context: ResolvedContext) -> ResolvedContext:
        """Archive the session's active chat and open a fresh one."""
        now = _now()
        async with self._db.transaction():
            await self._repo.archive_chat(context.chat.id)
            chat = await self._repo.insert_chat(
                user_id=context.user.id,
                session_id=context.session.id,
                platform=context.session.platform,
                title=context.chat.title,
                now=now,
            )
        logger.info(
            "chat_restarted",
            session_id=context.session.id,
            archived_chat_id=context.chat.id,
            chat_id=chat.id,
        )
        return ResolvedContext(user=context.user, session=context.session, chat=chat)

    async def _resolve_existing(self, session: Session, update: PlatformUpdate) -> ResolvedContext:
        now = _now()
        try:
            async with self._db.transaction():
                session, user, chat, created = await self._refresh_existing(session, update, now)
        except sqlite3.IntegrityError:
            # Another update created the active chat first
            chat = await self._repo.find_active_chat(session.id, session.platform)
            if chat is None:
                raise
            user = await self._repo.get_user(session.user_id)
            created = False

        if created:
            logger.info("chat_created", session_id=session.id, chat_id=chat.id)
        else:
            logger.debug("chat_reused", session_id=session.id, chat_id=chat.id)
        return ResolvedContext(user=user, session=session, chat=chat)

    async def _refresh_existing(
        self, session: Session, update: PlatformUpdate, now: datetime
    ) -> tuple[Session, User, Chat, bool]:
        session = await self._repo.update_session(session, update, now)
        user = await self._repo.get_user(session.user_id)
        chat = await self._repo.find_active_chat(session.id, session.platform)
        if chat is not None:
            return session, user, await self._repo.touch_chat(chat.id, now), False

        chat = await self._repo.insert_chat(
            user_id=user.id,
            session_id=session.id,
            platform=session.platform,
            title=chat_title(update, user),
            now=now,
        )
        return session, user, chat, True

    async def _create_all(self, update: PlatformUpdate) -> ResolvedContext:
        now = _now()
        username = synthesize_username(update)
        async with self._db.transaction():
            user = await self._repo.upsert_user(username, update, now)
            session = await self._repo.insert_session(user.id, update, now)
            chat = await self._repo.insert_chat(
                user_id=user.id,
                session_id=session.id,
                platform=session.platform,
                title=chat_title(update, user),
                now=now,
            )
        logger.info(
            "identity_created",
            user_id=user.id,
            session_id=session.id,
            chat_id=chat.id,
        )
        return ResolvedContext(user=user, session=session, chat=chat)


def _now() -> datetime:
    return datetime.now(timezone.utc)
