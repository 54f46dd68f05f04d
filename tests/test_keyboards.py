from __future__ import annotations

from vigil_bot.render.keyboards import (
    CB_EXPLORE_TOP_TOKENS,
    CB_MARKET_OVERVIEW,
    CB_SHOW_HELP,
    MAX_CALLBACK_DATA_BYTES,
    build_keyboard,
    build_simple_keyboard,
    callback_button,
    help_keyboard,
    welcome_keyboard,
)

ADDRESS = "9WzDXwBbmkg8ZTbNMqUxvQRAyrZzDsGYdLVL9zYtAWWM"


def _fits(keyboard) -> bool:
    return all(len(data.encode("utf-8")) <= MAX_CALLBACK_DATA_BYTES for data in keyboard.callback_data())


def test_generic_row_when_no_data() -> None:
    for data in (None, {}, {"unrelated": 1}):
        keyboard = build_keyboard(data)
        assert keyboard is not None
        assert keyboard.callback_data() == [CB_EXPLORE_TOP_TOKENS, CB_MARKET_OVERVIEW]


def test_recommendations_keyboard() -> None:
    data = {
        "recommendations": [
            {"symbol": "SOL", "address": ADDRESS},
            {"symbol": "JUP"},
            {"symbol": "BONK"},
            {"symbol": "WIF"},
        ]
    }
    keyboard = build_keyboard(data)

    assert keyboard is not None
    view, alerts, compare, explorer = keyboard.rows
    assert [b.callback_data for b in view] == ["token:info:SOL", "token:info:JUP", "token:info:BONK"]
    assert [b.callback_data for b in alerts] == ["alert:set:SOL", "alert:set:JUP", "alert:set:BONK"]
    assert compare[0].callback_data == "action:compare:SOL:JUP"
    assert explorer[0].url == f"https://solscan.io/token/{ADDRESS}"
    assert _fits(keyboard)


def test_single_recommendation_has_no_compare_row() -> None:
    keyboard = build_keyboard({"recommendations": [{"symbol": "SOL"}]})
    assert keyboard is not None
    assert not any(d.startswith("action:compare") for d in keyboard.callback_data())


def test_token_keyboard_with_custom_explorer() -> None:
    keyboard = build_keyboard({"token": {"symbol": "BONK", "mintAddress": ADDRESS}}, "https://explorer.test")

    assert keyboard is not None
    assert "token:chart:BONK" in keyboard.callback_data()
    assert "token:predict:BONK" in keyboard.callback_data()
    assert keyboard.rows[-1][0].url == f"https://explorer.test/token/{ADDRESS}"


def test_wallet_keyboard_fits_payload_budget() -> None:
    keyboard = build_keyboard({"wallet": ADDRESS})

    assert keyboard is not None
    assert f"wallet:activity:{ADDRESS}" in keyboard.callback_data()
    assert keyboard.rows[-1][0].url == f"https://solscan.io/account/{ADDRESS}"
    assert _fits(keyboard)


def test_oversized_payloads_are_dropped() -> None:
    assert callback_button("x", "token:info:" + "X" * 60) is None

    keyboard = build_keyboard({"token": {"symbol": "X" * 60}})
    assert keyboard is not None
    assert _fits(keyboard)
    assert keyboard.callback_data() == [CB_EXPLORE_TOP_TOKENS, CB_MARKET_OVERVIEW]


def test_simple_keyboard() -> None:
    assert build_simple_keyboard(None).callback_data() == [CB_SHOW_HELP]
    assert build_simple_keyboard({"token": {"symbol": "SOL"}}).callback_data() == [CB_MARKET_OVERVIEW]
    assert build_simple_keyboard({"wallet": ADDRESS}).callback_data() == [CB_EXPLORE_TOP_TOKENS]


def test_static_keyboards() -> None:
    assert welcome_keyboard().callback_data() == [CB_EXPLORE_TOP_TOKENS, CB_SHOW_HELP]
    assert "example:sol_price" in help_keyboard().callback_data()
    assert _fits(help_keyboard())
