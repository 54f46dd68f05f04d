from __future__ import annotations

import pytest

from vigil_bot.config import DebugConfig
from vigil_bot.core.callbacks import PRIORITY_TOOLS, USE_TOOLS_ALWAYS
from vigil_bot.core.errors import BackendError
from vigil_bot.core.resolver import IdentityResolver
from vigil_bot.core.types import ChatStatus, MessageRole, Platform
from vigil_bot.messenger.models import UpdateKind
from vigil_bot.relay.handler import (
    ACK_TEXT,
    CRITICAL_ERROR_TEXT,
    DATA_HEADER,
    DEBUG_JSON_HEADER,
    ERROR_TEXT,
    HELP_TEXT,
    INVALID_BUTTON_TEXT,
    NEW_CHAT_TEXT,
    NO_DATA_TEXT,
    WELCOME_TEXT,
    UpdateHandler,
)
from vigil_bot.relay.progress import PLACEHOLDER_TEXT
from vigil_bot.render.keyboards import CB_EXPLORE_TOP_TOKENS, CB_MARKET_OVERVIEW
from vigil_bot.storage.message_repo import MessageRepository
from vigil_bot.storage.models import Message
from tests.fakes import FakeAdapter, FakeBackend, make_update


def _handler(
    adapter: FakeAdapter,
    resolver: IdentityResolver,
    backend: FakeBackend,
    messages: MessageRepository,
    debug: DebugConfig | None = None,
) -> UpdateHandler:
    return UpdateHandler(adapter, resolver, backend, messages, debug=debug)


def _callback(data: str | None, message_id: str = "55"):
    return make_update(
        kind=UpdateKind.CALLBACK,
        callback_data=data,
        callback_id="cb1",
        message_id=message_id,
    )


@pytest.mark.anyio
async def test_new_user_hello_end_to_end(
    adapter: FakeAdapter, resolver: IdentityResolver, messages: MessageRepository
) -> None:
    backend = FakeBackend(reply="Hi!", structured_data=None)
    handler = _handler(adapter, resolver, backend, messages)

    await handler.handle(make_update(text="hello"))

    assert await resolver.repo.count_sessions(Platform.TELEGRAM.value, "42") == 1
    placeholder, final = adapter.sent
    assert placeholder.text == PLACEHOLDER_TEXT
    assert final.text == "Hi!"
    assert final.parse_mode == "html"
    assert final.keyboard.callback_data() == [CB_EXPLORE_TOP_TOKENS, CB_MARKET_OVERVIEW]
    assert adapter.deleted == [("42", "101")]
    # placeholder is gone before the answer arrives
    assert adapter.events.index(("delete", "101")) < adapter.events.index(("send", "Hi!"))
    assert backend.calls[0].text == "hello"
    assert backend.calls[0].options is None


@pytest.mark.anyio
async def test_slash_text_and_unknown_commands_are_ignored(
    adapter: FakeAdapter, resolver: IdentityResolver, backend: FakeBackend, messages: MessageRepository
) -> None:
    handler = _handler(adapter, resolver, backend, messages)

    await handler.handle(make_update(text="/unknown"))
    await handler.handle(make_update(kind=UpdateKind.COMMAND, text="/settings"))
    await handler.handle(make_update(text="   "))

    assert adapter.sent == []
    assert backend.calls == []


@pytest.mark.anyio
async def test_start_sends_welcome(
    adapter: FakeAdapter, resolver: IdentityResolver, backend: FakeBackend, messages: MessageRepository
) -> None:
    await _handler(adapter, resolver, backend, messages).handle(make_update(kind=UpdateKind.COMMAND, text="/start"))

    assert adapter.sent[0].text == WELCOME_TEXT
    assert adapter.sent[0].keyboard is not None
    assert await resolver.repo.count_sessions(Platform.TELEGRAM.value, "42") == 1


@pytest.mark.anyio
async def test_new_command_opens_fresh_chat(
    adapter: FakeAdapter, resolver: IdentityResolver, backend: FakeBackend, messages: MessageRepository
) -> None:
    first = await resolver.resolve(make_update())

    await _handler(adapter, resolver, backend, messages).handle(make_update(kind=UpdateKind.COMMAND, text="/new"))

    assert adapter.sent[0].text == NEW_CHAT_TEXT
    assert await resolver.repo.count_chats(first.session.id, ChatStatus.ARCHIVED) == 1
    assert await resolver.repo.count_chats(first.session.id, ChatStatus.ACTIVE) == 1
    current = await resolver.resolve(make_update())
    assert current.chat.id != first.chat.id


@pytest.mark.anyio
async def test_help_command(
    adapter: FakeAdapter, resolver: IdentityResolver, backend: FakeBackend, messages: MessageRepository
) -> None:
    await _handler(adapter, resolver, backend, messages).handle(make_update(kind=UpdateKind.COMMAND, text="/help"))

    assert adapter.sent[0].text == HELP_TEXT
    assert "help:tokens" in adapter.sent[0].keyboard.callback_data()


@pytest.mark.anyio
async def test_data_command_without_and_with_data(
    adapter: FakeAdapter, resolver: IdentityResolver, backend: FakeBackend, messages: MessageRepository
) -> None:
    handler = _handler(adapter, resolver, backend, messages)

    await handler.handle(make_update(kind=UpdateKind.COMMAND, text="/data"))
    assert adapter.sent[-1].text == NO_DATA_TEXT

    ctx = await resolver.resolve(make_update())
    await messages.save(
        Message(
            chat_id=ctx.chat.id,
            user_id=ctx.user.id,
            role=MessageRole.ASSISTANT,
            text="BONK overview",
            metas={"structuredData": {"token": {"symbol": "BONK"}}},
        )
    )
    await handler.handle(make_update(kind=UpdateKind.COMMAND, text="/data"))

    assert adapter.sent[-1].text.startswith(DATA_HEADER + "<b>📊 TOKEN ANALYSIS")
    assert "token:chart:BONK" in adapter.sent[-1].keyboard.callback_data()


@pytest.mark.anyio
async def test_backend_error_yields_apology(
    adapter: FakeAdapter, resolver: IdentityResolver, messages: MessageRepository
) -> None:
    backend = FakeBackend(error=BackendError("model unavailable"))

    await _handler(adapter, resolver, backend, messages).handle(make_update(text="hello"))

    apology = adapter.sent[-1]
    assert apology.text == f"<b>⚠️ Error</b>\n\n{ERROR_TEXT}"
    assert "<pre>" not in apology.text


@pytest.mark.anyio
async def test_debug_mode_appends_stack_trace(
    adapter: FakeAdapter, resolver: IdentityResolver, messages: MessageRepository
) -> None:
    backend = FakeBackend(error=BackendError("model unavailable"))
    handler = _handler(adapter, resolver, backend, messages, DebugConfig(debug_mode=True))

    await handler.handle(make_update(text="hello"))

    assert '<pre><code class="language-python">' in adapter.sent[-1].text
    assert "BackendError" in adapter.sent[-1].text


@pytest.mark.anyio
async def test_apology_falls_back_to_plain_text(
    adapter: FakeAdapter, resolver: IdentityResolver, messages: MessageRepository
) -> None:
    backend = FakeBackend(error=BackendError("down"))
    adapter.fail_html_send = True

    await _handler(adapter, resolver, backend, messages).handle(make_update(text="hello"))

    assert adapter.sent[-1].text == ERROR_TEXT
    assert adapter.sent[-1].parse_mode is None


@pytest.mark.anyio
async def test_storage_failure_is_reported_not_raised(
    adapter: FakeAdapter, backend: FakeBackend, messages: MessageRepository
) -> None:
    class BrokenResolver:
        async def resolve(self, update):
            raise RuntimeError("database is locked")

    handler = UpdateHandler(adapter, BrokenResolver(), backend, messages)  # type: ignore[arg-type]

    await handler.handle(make_update(text="hello"))

    assert ERROR_TEXT in adapter.sent[-1].text
    assert backend.calls == []


@pytest.mark.anyio
async def test_full_json_echo(
    adapter: FakeAdapter, resolver: IdentityResolver, backend: FakeBackend, messages: MessageRepository
) -> None:
    backend.structured_data = {"token": {"symbol": "SOL", "note": "<tag>"}}
    handler = _handler(adapter, resolver, backend, messages, DebugConfig(show_full_json=True))

    await handler.handle(make_update(text="sol?"))

    debug = [m for m in adapter.sent if m.text.startswith(DEBUG_JSON_HEADER)]
    assert len(debug) == 1
    assert "&lt;tag&gt;" in debug[0].text
    assert adapter.sent.index(debug[0]) < len(adapter.sent) - 1


@pytest.mark.anyio
async def test_button_press_runs_decoded_query_in_pressed_message(
    adapter: FakeAdapter, resolver: IdentityResolver, backend: FakeBackend, messages: MessageRepository
) -> None:
    await _handler(adapter, resolver, backend, messages).handle(_callback("token:info:SOL"))

    assert adapter.answers == [("cb1", ACK_TEXT)]
    assert "ANALYZING SOL" in adapter.edits[0].text
    call = backend.calls[0]
    assert "SOL" in call.text and "analyze" in call.text
    assert call.options.system_directive == USE_TOOLS_ALWAYS
    assert call.options.priority_tools == PRIORITY_TOOLS["token"]
    # every edit, including the final answer, lands on the pressed message
    assert {e.message_id for e in adapter.edits} == {"55"}
    assert adapter.edits[-1].text.startswith("<code>SOL</code>")
    assert adapter.sent == []
    assert adapter.deleted == []


@pytest.mark.anyio
async def test_button_press_sends_new_message_when_edit_fails(
    adapter: FakeAdapter, resolver: IdentityResolver, backend: FakeBackend, messages: MessageRepository
) -> None:
    adapter.fail_edit = True

    await _handler(adapter, resolver, backend, messages).handle(_callback("action:explore_top_tokens"))

    assert adapter.sent[0].text == PLACEHOLDER_TEXT
    assert adapter.sent[-1].text.startswith("<code>SOL</code>")
    assert len(backend.calls) == 1


@pytest.mark.anyio
async def test_empty_button_payload_is_rejected(
    adapter: FakeAdapter, resolver: IdentityResolver, backend: FakeBackend, messages: MessageRepository
) -> None:
    await _handler(adapter, resolver, backend, messages).handle(_callback(""))

    assert adapter.answers == [("cb1", INVALID_BUTTON_TEXT)]
    assert backend.calls == []
    assert await resolver.repo.count_sessions(Platform.TELEGRAM.value, "42") == 0


@pytest.mark.anyio
async def test_stale_button_stops_after_failed_ack(
    adapter: FakeAdapter, resolver: IdentityResolver, backend: FakeBackend, messages: MessageRepository
) -> None:
    adapter.fail_answer = True

    await _handler(adapter, resolver, backend, messages).handle(_callback("token:info:SOL"))

    assert backend.calls == []
    assert adapter.sent == [] and adapter.edits == []


@pytest.mark.anyio
async def test_help_button_is_answered_locally(
    adapter: FakeAdapter, resolver: IdentityResolver, backend: FakeBackend, messages: MessageRepository
) -> None:
    await _handler(adapter, resolver, backend, messages).handle(_callback("action:show_help"))

    assert backend.calls == []
    assert adapter.sent[0].text == HELP_TEXT


@pytest.mark.anyio
async def test_button_error_edits_pressed_message(
    adapter: FakeAdapter, resolver: IdentityResolver, messages: MessageRepository
) -> None:
    backend = FakeBackend(stages=[], error=BackendError("down"))

    await _handler(adapter, resolver, backend, messages).handle(_callback("wallet:pnl:abc"))

    assert adapter.edits[-1].message_id == "55"
    assert ERROR_TEXT in adapter.edits[-1].text


@pytest.mark.anyio
async def test_global_error_handler(
    adapter: FakeAdapter, resolver: IdentityResolver, backend: FakeBackend, messages: MessageRepository
) -> None:
    handler = _handler(adapter, resolver, backend, messages)

    await handler.handle_global_error(RuntimeError("boom"), None)
    assert adapter.sent == []

    await handler.handle_global_error(RuntimeError("boom"), make_update(text="hi"))
    assert adapter.sent[-1].text == CRITICAL_ERROR_TEXT

    await handler.handle_global_error(RuntimeError("boom"), _callback("token:info:SOL"))
    assert adapter.edits[-1].text == CRITICAL_ERROR_TEXT


@pytest.mark.anyio
async def test_rejected_rich_reply_is_resent_as_simple_html(
    adapter: FakeAdapter, resolver: IdentityResolver, messages: MessageRepository
) -> None:
    backend = FakeBackend(reply="BONK <dips> 5%", structured_data={"token": {"symbol": "BONK"}})
    handler = _handler(adapter, resolver, backend, messages)
    # placeholder and enhanced reply are both rejected
    adapter.reject_html_sends = 2

    await handler.handle(make_update(text="bonk?"))

    [final] = adapter.sent
    assert final.parse_mode == "html"
    assert final.text == "BONK &lt;dips&gt; 5%"
    assert final.keyboard.callback_data() == [CB_MARKET_OVERVIEW]
