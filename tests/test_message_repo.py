from __future__ import annotations

import pytest

from vigil_bot.core.resolver import IdentityResolver
from vigil_bot.core.types import MessageRole
from vigil_bot.storage.message_repo import MessageRepository
from vigil_bot.storage.models import Message
from tests.fakes import make_update


@pytest.mark.anyio
async def test_history_is_oldest_first_and_limited(
    resolver: IdentityResolver, messages: MessageRepository
) -> None:
    ctx = await resolver.resolve(make_update())
    for i in range(5):
        role = MessageRole.USER if i % 2 == 0 else MessageRole.ASSISTANT
        await messages.save(Message(chat_id=ctx.chat.id, user_id=ctx.user.id, role=role, text=f"m{i}"))

    history = await messages.get_chat_history(ctx.chat.id, limit=3)

    assert [m.text for m in history] == ["m2", "m3", "m4"]


@pytest.mark.anyio
async def test_latest_structured_data_skips_messages_without_payload(
    resolver: IdentityResolver, messages: MessageRepository
) -> None:
    ctx = await resolver.resolve(make_update())
    assert await messages.latest_structured_data(ctx.chat.id) is None

    await messages.save(
        Message(
            chat_id=ctx.chat.id,
            user_id=ctx.user.id,
            role=MessageRole.ASSISTANT,
            text="tokens",
            metas={"structuredData": {"token": {"symbol": "BONK"}}},
        )
    )
    await messages.save(
        Message(chat_id=ctx.chat.id, user_id=ctx.user.id, role=MessageRole.ASSISTANT, text="plain")
    )
    await messages.save(
        Message(
            chat_id=ctx.chat.id,
            user_id=ctx.user.id,
            role=MessageRole.USER,
            text="user payloads are ignored",
            metas={"structuredData": {"wallet": "x"}},
        )
    )

    assert await messages.latest_structured_data(ctx.chat.id) == {"token": {"symbol": "BONK"}}
