from __future__ import annotations

import pytest

from vigil_bot.ai.backend import AssistantMessage, BackendResult
from vigil_bot.relay.delivery import Edited, Failed, SentNew, deliver
from vigil_bot.render.keyboards import CB_MARKET_OVERVIEW
from vigil_bot.render.renderer import RenderedResponse, downgrade, render
from tests.fakes import FakeAdapter

RENDERED = RenderedResponse(text="<b>A &amp; B</b>", keyboard=None)


@pytest.mark.anyio
async def test_edits_placeholder_when_possible(adapter: FakeAdapter) -> None:
    outcome = await deliver(adapter, "42", RENDERED, placeholder_id="7")

    assert outcome == Edited("7")
    assert adapter.edits[0].text == RENDERED.text
    assert adapter.sent == []


@pytest.mark.anyio
async def test_sends_new_without_placeholder(adapter: FakeAdapter) -> None:
    outcome = await deliver(adapter, "42", RENDERED)

    assert isinstance(outcome, SentNew)
    assert not outcome.plain
    assert adapter.sent[0].parse_mode == "html"


@pytest.mark.anyio
async def test_edit_failure_falls_back_to_send(adapter: FakeAdapter) -> None:
    adapter.fail_edit = True

    outcome = await deliver(adapter, "42", RENDERED, placeholder_id="7")

    assert isinstance(outcome, SentNew)
    assert adapter.sent[0].text == RENDERED.text


@pytest.mark.anyio
async def test_html_rejection_falls_back_to_plain(adapter: FakeAdapter) -> None:
    adapter.fail_html_send = True

    outcome = await deliver(adapter, "42", RENDERED)

    assert isinstance(outcome, SentNew)
    assert outcome.plain
    assert adapter.sent[0].text == "A & B"
    assert adapter.sent[0].parse_mode is None


@pytest.mark.anyio
async def test_reports_failure_without_raising(adapter: FakeAdapter) -> None:
    adapter.fail_edit = True
    adapter.fail_send = True

    outcome = await deliver(adapter, "42", RENDERED, placeholder_id="7")

    assert isinstance(outcome, Failed)
    assert "send failed" in outcome.reason


@pytest.mark.anyio
async def test_rejected_enhanced_send_retries_simple_tier_as_html(adapter: FakeAdapter) -> None:
    result = BackendResult(
        assistant_message=AssistantMessage(text="BONK <dips> 5%"),
        structured_data={"token": {"symbol": "BONK", "name": "BONK", "price_usd": 0.00002}},
    )
    rendered = render(result)
    adapter.reject_html_sends = 1

    outcome = await deliver(adapter, "42", rendered, fallback=downgrade(result, rendered))

    assert outcome == SentNew(outcome.message_id, plain=False)
    [message] = adapter.sent
    assert message.parse_mode == "html"
    assert message.text == "BONK &lt;dips&gt; 5%"
    assert message.keyboard.callback_data() == [CB_MARKET_OVERVIEW]


@pytest.mark.anyio
async def test_plain_text_comes_from_the_fallback_rendering(adapter: FakeAdapter) -> None:
    fallback = RenderedResponse(text="A &lt; B", keyboard=None, tier="simple")
    adapter.fail_html_send = True

    outcome = await deliver(adapter, "42", RENDERED, fallback=fallback)

    assert outcome == SentNew(outcome.message_id, plain=True)
    assert [m.text for m in adapter.sent] == ["A < B"]
