"""Inline keyboards derived from structured backend payloads."""

from __future__ import annotations

from typing import Any, Optional

from vigil_bot.log import get_logger
from vigil_bot.messenger.models import InlineButton, InlineKeyboard

logger = get_logger(__name__)

# Telegram rejects callback_data over 64 bytes.
MAX_CALLBACK_DATA_BYTES = 64

DEFAULT_EXPLORER_URL = "https://solscan.io"

CB_EXPLORE_TOP_TOKENS = "action:explore_top_tokens"
CB_MARKET_OVERVIEW = "action:market_overview"
CB_MORE_RECOMMENDATIONS = "action:more_recommendations"
CB_SHOW_HELP = "action:show_help"


def callback_button(text: str, data: str) -> Optional[InlineButton]:
    """A callback button, or None when *data* exceeds the payload budget."""
    if len(data.encode("utf-8")) > MAX_CALLBACK_DATA_BYTES:
        logger.debug("callback_data_dropped", data=data, size=len(data.encode("utf-8")))
        return None
    return InlineButton(text=text, callback_data=data)


def _row(*buttons: Optional[InlineButton]) -> list[InlineButton]:
    return [b for b in buttons if b is not None]


def _recommendation_rows(recommendations: list[Any], explorer_url: str) -> list[list[InlineButton]]:
    tokens = [t for t in recommendations[:3] if isinstance(t, dict)]
    symbols = [str(t.get("symbol") or "UNKNOWN") for t in tokens]
    rows = [
        _row(*(callback_button(f"📊 {s}", f"token:info:{s}") for s in symbols)),
        _row(*(callback_button(f"🔔 Alert {s}", f"alert:set:{s}") for s in symbols)),
    ]

    if len(tokens) >= 2:
        rows.append(
            _row(
                callback_button("📈 Compare Top 2", f"action:compare:{symbols[0]}:{symbols[1]}"),
                callback_button("🔄 More Tokens", CB_MORE_RECOMMENDATIONS),
            )
        )

    if tokens and tokens[0].get("address"):
        rows.append(
            [InlineButton("🔍 View on Explorer", url=f"{explorer_url}/token/{tokens[0]['address']}")]
        )
    return rows


def _token_rows(token: dict[str, Any], explorer_url: str) -> list[list[InlineButton]]:
    symbol = token.get("symbol") or "TOKEN"
    address = token.get("address") or token.get("mintAddress")
    rows = [
        _row(
            callback_button("📊 Price History", f"token:chart:{symbol}"),
            callback_button("👥 Holders", f"token:holders:{symbol}"),
        ),
        _row(
            callback_button("🔔 Set Alert", f"alert:set:{symbol}"),
            callback_button("🔮 Price Prediction", f"token:predict:{symbol}"),
        ),
    ]
    if address:
        rows.append([InlineButton("🔍 View on Explorer", url=f"{explorer_url}/token/{address}")])
    return rows


def _wallet_rows(address: str, explorer_url: str) -> list[list[InlineButton]]:
    return [
        _row(
            callback_button("💰 Token Holdings", f"wallet:tokens:{address}"),
            callback_button("📊 PnL Analysis", f"wallet:pnl:{address}"),
        ),
        _row(
            callback_button("📝 Recent Activity", f"wallet:activity:{address}"),
            callback_button("🔍 Risk Analysis", f"wallet:risk:{address}"),
        ),
        [InlineButton("🌐 View on Explorer", url=f"{explorer_url}/account/{address}")],
    ]


def build_keyboard(
    structured_data: Optional[dict[str, Any]], explorer_url: str = DEFAULT_EXPLORER_URL
) -> Optional[InlineKeyboard]:
    """Action keyboard chosen by payload shape: recommendations, token, wallet, generic."""
    data = structured_data if isinstance(structured_data, dict) else {}
    rows: list[list[InlineButton]] = []

    recommendations = data.get("recommendations")
    if isinstance(recommendations, list):
        rows = _recommendation_rows(recommendations, explorer_url)
    elif data.get("token"):
        rows = _token_rows(data["token"], explorer_url)
    elif data.get("wallet"):
        rows = _wallet_rows(str(data["wallet"]), explorer_url)

    rows = [row for row in rows if row]
    if not rows:
        rows = [
            _row(
                callback_button("🔍 Top Tokens", CB_EXPLORE_TOP_TOKENS),
                callback_button("📈 Market Overview", CB_MARKET_OVERVIEW),
            )
        ]

    keyboard = InlineKeyboard.from_rows(rows)
    return keyboard if keyboard.rows else None


def build_simple_keyboard(structured_data: Optional[dict[str, Any]]) -> InlineKeyboard:
    """One row with one or two basic actions; used when rich rendering failed."""
    data = structured_data if isinstance(structured_data, dict) else {}
    buttons: list[InlineButton] = []
    if data.get("token") or data.get("recommendations"):
        buttons.append(InlineButton("📊 Market Analysis", callback_data=CB_MARKET_OVERVIEW))
    if data.get("wallet"):
        buttons.append(InlineButton("📈 Top Tokens", callback_data=CB_EXPLORE_TOP_TOKENS))
    if not buttons:
        buttons.append(InlineButton("❓ Help", callback_data=CB_SHOW_HELP))
    return InlineKeyboard.from_rows([buttons])


def welcome_keyboard() -> InlineKeyboard:
    return InlineKeyboard.from_rows(
        [
            [InlineButton("🔍 Explore Top Tokens", callback_data=CB_EXPLORE_TOP_TOKENS)],
            [InlineButton("❓ Help & Examples", callback_data=CB_SHOW_HELP)],
        ]
    )


def help_keyboard() -> InlineKeyboard:
    return InlineKeyboard.from_rows(
        [
            [
                InlineButton("🔍 Tokens", callback_data="help:tokens"),
                InlineButton("📊 Wallets", callback_data="help:wallets"),
                InlineButton("🔔 Alerts", callback_data="help:alerts"),
            ],
            [
                InlineButton("📈 SOL Price?", callback_data="example:sol_price"),
                InlineButton("💡 Token Recommendations", callback_data="example:recommend_tokens"),
            ],
            [InlineButton("⚙️ View Commands", callback_data="help:commands")],
        ]
    )
