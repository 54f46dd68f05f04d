from __future__ import annotations

import asyncio

import pytest

from vigil_bot.core.resolver import IdentityResolver, chat_title, synthesize_username
from vigil_bot.core.types import ChatStatus, ChatType, Platform, SessionStatus
from vigil_bot.messenger.models import UpdateKind
from tests.fakes import make_update


def test_synthesize_username_prefers_handle() -> None:
    assert synthesize_username(make_update(username="alice")) == "alice"
    assert synthesize_username(make_update(user_id="777")) == "tg_777"


@pytest.mark.anyio
async def test_first_contact_creates_user_session_and_chat(resolver: IdentityResolver) -> None:
    ctx = await resolver.resolve(make_update(user_id="1001", chat_id="1001"))

    assert ctx.user.username == "tg_1001"
    assert ctx.user.nicename == "Alice"
    assert ctx.session.platform == Platform.TELEGRAM
    assert ctx.session.platform_user_id == "1001"
    assert ctx.session.chat_id == "1001"
    assert ctx.session.status == SessionStatus.ACTIVE
    assert ctx.chat.status == ChatStatus.ACTIVE
    assert ctx.chat.session_id == ctx.session.id
    assert ctx.chat.title == "Chat with Alice"


@pytest.mark.anyio
async def test_repeat_contact_reuses_active_chat(resolver: IdentityResolver) -> None:
    first = await resolver.resolve(make_update())
    second = await resolver.resolve(make_update(text="again"))

    assert second.user.id == first.user.id
    assert second.session.id == first.session.id
    assert second.chat.id == first.chat.id
    assert second.chat.last_message_at >= first.chat.last_message_at
    assert await resolver.repo.count_chats(first.session.id) == 1


@pytest.mark.anyio
async def test_session_profile_is_refreshed(resolver: IdentityResolver) -> None:
    await resolver.resolve(make_update(username="old_name", is_premium=True))
    ctx = await resolver.resolve(make_update(username="new_name", language_code="es"))

    assert ctx.session.platform_username == "new_name"
    assert ctx.session.language_code == "es"
    # absent premium flag keeps the stored value
    assert ctx.session.is_premium is True


@pytest.mark.anyio
async def test_concurrent_first_contact_yields_single_session(resolver: IdentityResolver) -> None:
    updates = [make_update(user_id="555", chat_id="555", text=f"msg {i}") for i in range(5)]

    results = await asyncio.gather(*(resolver.resolve(u) for u in updates))

    assert len({ctx.session.id for ctx in results}) == 1
    assert len({ctx.chat.id for ctx in results}) == 1
    assert len({ctx.user.id for ctx in results}) == 1
    assert await resolver.repo.count_sessions(Platform.TELEGRAM.value, "555") == 1
    session_id = results[0].session.id
    assert await resolver.repo.count_chats(session_id, ChatStatus.ACTIVE) == 1


@pytest.mark.anyio
async def test_distinct_accounts_get_distinct_sessions(resolver: IdentityResolver) -> None:
    a, b = await asyncio.gather(
        resolver.resolve(make_update(user_id="1", chat_id="1")),
        resolver.resolve(make_update(user_id="2", chat_id="2")),
    )
    assert a.session.id != b.session.id
    assert a.user.id != b.user.id


@pytest.mark.anyio
async def test_start_new_chat_archives_previous(resolver: IdentityResolver) -> None:
    ctx = await resolver.resolve(make_update())

    fresh = await resolver.start_new_chat(ctx)

    assert fresh.chat.id != ctx.chat.id
    assert fresh.session.id == ctx.session.id
    assert await resolver.repo.count_chats(ctx.session.id, ChatStatus.ACTIVE) == 1
    assert await resolver.repo.count_chats(ctx.session.id, ChatStatus.ARCHIVED) == 1

    again = await resolver.resolve(make_update(text="hello"))
    assert again.chat.id == fresh.chat.id


@pytest.mark.anyio
async def test_group_chat_uses_group_title(resolver: IdentityResolver) -> None:
    update = make_update(
        kind=UpdateKind.TEXT,
        user_id="9",
        chat_id="-100",
        chat_type=ChatType.SUPERGROUP,
        chat_title="Solana Traders",
    )
    ctx = await resolver.resolve(update)

    assert ctx.chat.title == "Solana Traders"
    assert ctx.session.chat_title == "Solana Traders"
    assert chat_title(update, ctx.user) == "Solana Traders"


@pytest.mark.anyio
async def test_private_chat_has_no_session_title(resolver: IdentityResolver) -> None:
    ctx = await resolver.resolve(make_update(chat_title="ignored"))
    assert ctx.session.chat_title is None
