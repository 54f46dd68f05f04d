"""Decode button-press payloads into backend queries.

Payloads are colon-delimited tokens, ``action_type:param1:param2:...``. Every
non-empty payload decodes to a non-empty query; only an empty payload is rejected.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

from vigil_bot.core.errors import InvalidCallbackDataError
from vigil_bot.render.markup import escape_html

USE_TOOLS_ALWAYS = "USE_TOOLS_ALWAYS"

# Priority tool hints per action type, passed opaquely to the backend.
PRIORITY_TOOLS: dict[str, tuple[str, ...]] = {
    "help": ("recommend_tokens", "fetch_top_tokens", "analyze_token_trend"),
    "example": ("fetch_token_data", "recommend_tokens", "fetch_token_price_history"),
    "token": ("fetch_token_data", "fetch_token_price_history"),
    "explore": ("recommend_tokens", "fetch_top_tokens"),
    "action": ("recommend_tokens", "fetch_top_tokens", "compare_tokens"),
    "wallet": ("fetch_wallet_data", "fetch_wallet_pnl", "get_wallet_tokens_time_series"),
    "alert": ("create_price_alert", "schedule_alert"),
}

SHOW_HELP = "show_help"


@dataclass(frozen=True)
class DecodedCallback:
    action_type: str
    params: tuple[str, ...]
    query_text: str
    tool_hints: tuple[str, ...] = ()
    system_directive: Optional[str] = None
    local_command: Optional[str] = None  # handled without calling the backend

    @property
    def sub_action(self) -> str:
        return self.params[0] if self.params else ""


_TOKEN_QUERIES = {
    "info": "analyze token {symbol} in detail with price data, market metrics, and recent performance",
    "price": "what is the current price of {symbol} with volume, market cap and 24h change",
    "chart": "show price chart and historical data for {symbol}",
    "holders": "who are the top holders of {symbol} and what percentage do they own",
    "predict": "predict the price of {symbol} based on market data and trends",
}

_WALLET_QUERIES = {
    "info": "analyze wallet {address} in detail with tokens, values and balances",
    "tokens": "what tokens does wallet {address} hold with values and balances",
    "nfts": "what NFTs does wallet {address} have in its collection",
    "pnl": "calculate and analyze the PnL for wallet {address} with details on gains and losses",
    "activity": "show recent transaction activity for wallet {address}",
    "risk": "analyze risk profile for wallet {address} based on holdings and activity",
}

_HELP_QUERIES = {
    "tokens": "recommend top trending tokens on Solana with medium risk level for short term investment",
    "wallets": "explain how to analyze a Solana wallet with examples of commands to check tokens, NFTs and PnL",
    "alerts": "show me how to set up price alerts for Solana tokens with specific examples for SOL and JUP",
    "commands": "list all available commands and explain what each one does with examples",
}

_EXAMPLE_QUERIES = {
    "sol_price": "analyze SOL token price, volume, market cap and recent trends in detail",
    "recommend_tokens": (
        "recommend me trending tokens with medium risk for short term investment. "
        "Include specific tokens like SOL, JUP and BONK in your analysis"
    ),
}


def _words(*parts: str) -> str:
    return " ".join(part for part in parts if part)


def build_token_query(action: str, symbol: str) -> str:
    template = _TOKEN_QUERIES.get(action)
    if template:
        return template.format(symbol=symbol or "this token")
    return _words("analyze token", symbol, action, "with detailed market data")


def build_wallet_query(action: str, address: str) -> str:
    if not address:
        return "explain how to analyze a Solana wallet"
    template = _WALLET_QUERIES.get(action)
    if template:
        return template.format(address=address)
    return _words("analyze wallet", address, action, "with detailed data")


def build_alert_query(action: str, symbol: str, condition: str) -> str:
    if action == "set":
        return _words("set price alert for", symbol, condition or "above current price", "with notification")
    if action == "list":
        return "show all my active price alerts with current status"
    if action == "delete":
        return _words("delete my price alert for", symbol)
    return _words("manage price alert", action, symbol, "with notification settings")


def build_help_query(category: str) -> str:
    return _HELP_QUERIES.get(category, "recommend trending tokens on Solana")


def build_example_query(example: str) -> str:
    if example in _EXAMPLE_QUERIES:
        return _EXAMPLE_QUERIES[example]
    return _words("analyze the", example.replace("_", " "), "in detail with market data")


def build_generic_query(action: str, params: tuple[str, ...]) -> str:
    if action == "market_overview":
        return (
            "provide a detailed market overview of Solana ecosystem with trending tokens, "
            "volume, and market trends"
        )
    if action == "more_recommendations":
        return "recommend more diverse tokens on Solana with different risk levels and potential"
    if action == "compare":
        if len(params) >= 2:
            return (
                f"compare tokens {params[0]} and {params[1]} side by side with price, "
                "volume, market cap and trends"
            )
        return "compare the top trending tokens side by side with metrics and performance"
    return action.replace("_", " ").strip() or "provide a market overview of the Solana ecosystem"


def _param(params: tuple[str, ...], index: int) -> str:
    return params[index] if len(params) > index else ""


def _decode_help(params: tuple[str, ...]) -> DecodedCallback:
    return DecodedCallback(
        "help", params, build_help_query(_param(params, 0)), PRIORITY_TOOLS["help"], USE_TOOLS_ALWAYS
    )


def _decode_example(params: tuple[str, ...]) -> DecodedCallback:
    return DecodedCallback(
        "example", params, build_example_query(_param(params, 0)), PRIORITY_TOOLS["example"], USE_TOOLS_ALWAYS
    )


def _decode_token(params: tuple[str, ...]) -> DecodedCallback:
    query = build_token_query(_param(params, 0), _param(params, 1))
    return DecodedCallback("token", params, query, PRIORITY_TOOLS["token"], USE_TOOLS_ALWAYS)


def _decode_wallet(params: tuple[str, ...]) -> DecodedCallback:
    query = build_wallet_query(_param(params, 0), _param(params, 1))
    return DecodedCallback("wallet", params, query, PRIORITY_TOOLS["wallet"], USE_TOOLS_ALWAYS)


def _decode_alert(params: tuple[str, ...]) -> DecodedCallback:
    query = build_alert_query(_param(params, 0), _param(params, 1), _param(params, 2))
    return DecodedCallback("alert", params, query, PRIORITY_TOOLS["alert"], USE_TOOLS_ALWAYS)


def _decode_action(params: tuple[str, ...]) -> DecodedCallback:
    action = _param(params, 0)
    if action == "explore_top_tokens":
        return DecodedCallback(
            "action",
            params,
            "recommend top trending tokens on Solana with market data right now",
            PRIORITY_TOOLS["explore"],
            USE_TOOLS_ALWAYS,
        )
    if action == SHOW_HELP:
        return DecodedCallback("action", params, "show help and examples", local_command="help")
    query = build_generic_query(action, params[1:])
    return DecodedCallback("action", params, query, PRIORITY_TOOLS["action"], USE_TOOLS_ALWAYS)


_DECODERS: dict[str, Callable[[tuple[str, ...]], DecodedCallback]] = {
    "help": _decode_help,
    "example": _decode_example,
    "token": _decode_token,
    "wallet": _decode_wallet,
    "alert": _decode_alert,
    "action": _decode_action,
}


def decode(callback_data: str | None) -> DecodedCallback:
    """Decode *callback_data* into a query and its tool hints.

    Raises :class:`InvalidCallbackDataError` for an empty payload.
    """
    if not callback_data or not callback_data.strip():
        raise InvalidCallbackDataError(callback_data)

    action_type, *rest = callback_data.split(":")
    params = tuple(rest)
    decoder = _DECODERS.get(action_type)
    if decoder is not None:
        return decoder(params)

    query = f"analyze {callback_data.replace(':', ' ', 1)} with market data"
    return DecodedCallback(action_type, params, query)


def processing_text(decoded: DecodedCallback) -> str:
    """HTML label shown on the pressed message while the query runs."""
    if decoded.action_type == "token" and decoded.sub_action:
        symbol = _param(decoded.params, 1).upper() or "TOKEN"
        return f"⏳ <b>ANALYZING {escape_html(symbol)}</b>\n\nFetching token data..."
    if decoded.action_type == "action" and decoded.sub_action == "explore_top_tokens":
        return "⏳ <b>DISCOVERING TOP TOKENS</b>\n\nAnalyzing market data..."
    label = decoded.action_type.replace("_", " ", 1)
    return f"⏳ <b>PROCESSING REQUEST</b>\n\nProcessing {escape_html(label)}..."

