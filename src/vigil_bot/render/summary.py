"""Insights view of a stored structured payload (the /data command)."""

from __future__ import annotations

from typing import Any, Optional

from vigil_bot.log import get_logger
from vigil_bot.render.markup import escape_html
from vigil_bot.render.numbers import format_change, format_number
from vigil_bot.render.renderer import DEFAULT_SOURCE_LABEL, parse_timestamp

logger = get_logger(__name__)

DIVIDER = "   ────────────────────"


def _change_icon(change: float, boost: Optional[float] = 1) -> str:
    if boost is not None and change > boost:
        return "🚀"
    if change > 0:
        return "📈"
    if change < 0:
        return "📉"
    return "➡️"


def _short_address(address: str) -> str:
    if len(address) > 16:
        return f"{address[:8]}...{address[-8:]}"
    return address


def _recommendations(data: dict[str, Any]) -> list[str]:
    tokens = data["recommendations"]
    lines = [f"<b>🏆 TOP TOKENS - {len(tokens)}</b>"]
    if data.get("criteria"):
        lines.append(
            f"<i>Criteria: <b>{escape_html(str(data['criteria']))}</b> | "
            f"Risk: <b>{escape_html(str(data.get('risk_level') or 'medium'))}</b> | "
            f"Timeframe: <b>{escape_html(str(data.get('timeframe') or 'short'))}</b></i>"
        )
        lines.append("")

    for idx, token in enumerate(tokens, start=1):
        symbol = escape_html(str(token.get("symbol") or "???"))
        name = escape_html(str(token.get("name") or "")) or symbol
        change = float(token.get("price_change_1d") or token.get("price_change_24h") or 0)
        lines.append(f"{idx}. <b><code>{symbol}</code> - {name}</b>")
        lines.append(f"   💰 Price: <b>${format_number(token.get('price_usd') or 0)}</b>")
        lines.append(f"   {_change_icon(change)} Change: <b>{format_change(change)}</b>")
        lines.append(f"   💼 MCap: <b>${format_number(token.get('marketCap') or 0, True)}</b>")
        if idx < len(tokens):
            lines.append(DIVIDER)
    return lines


def _token(token: dict[str, Any]) -> list[str]:
    symbol = escape_html(str(token.get("symbol") or "???"))
    name = escape_html(str(token.get("name") or "")) or symbol
    address = str(token.get("address") or token.get("mintAddress") or "")
    lines = [
        f"<b>📊 TOKEN ANALYSIS: <code>{symbol}</code></b>",
        "",
        f"<b>Name:</b> {name}",
        f"<b>Price:</b> ${format_number(token.get('price_usd') or token.get('price') or 0)}",
    ]
    if token.get("price_change_1d") is not None:
        change = float(token["price_change_1d"])
        lines.append(f"<b>24h Change:</b> {_change_icon(change)} {format_change(change)}")
    if token.get("price_change_7d") is not None:
        change = float(token["price_change_7d"])
        lines.append(f"<b>7d Change:</b> {_change_icon(change, boost=5)} {format_change(change)}")
    lines.append(f"<b>Market Cap:</b> ${format_number(token.get('marketCap') or 0, True)}")
    lines.append(f"<b>24h Volume:</b> ${format_number(token.get('volume_24h') or 0, True)}")
    if token.get("holders") is not None:
        lines.append(f"<b>Holders:</b> {format_number(token['holders'])}")
    if address:
        lines.append(f"<b>Address:</b> <code>{escape_html(_short_address(address))}</code>")
    return lines


def _wallet(data: dict[str, Any]) -> list[str]:
    wallet = str(data["wallet"])
    tokens_info = data.get("tokens") or {}
    holdings = tokens_info.get("data") or []
    lines = [
        "<b>💼 WALLET ANALYSIS</b>",
        "",
        f"<b>Address:</b> <code>{escape_html(_short_address(wallet))}</code>",
    ]
    if tokens_info.get("totalTokenValueUsd"):
        lines.append(f"<b>Portfolio Value:</b> ${format_number(tokens_info['totalTokenValueUsd'])}")
        change = tokens_info.get("totalTokenValueUsd1dChange")
        if change is not None:
            change = float(change)
            sign = "+" if change > 0 else ""
            lines.append(f"<b>24h Change:</b> {_change_icon(change, boost=None)} {sign}{format_number(change)}")
    lines.append(f"<b>Tokens Held:</b> {len(holdings)}")
    lines.append("")
    if holdings:
        lines.append("<b>Top Holdings:</b>")
        for idx, holding in enumerate(holdings[:5], start=1):
            symbol = escape_html(str(holding.get("symbol") or "???"))
            line = f"{idx}. <code>{symbol}</code>: {format_number(holding.get('balance') or 0)} tokens"
            value = float(holding.get("valueUsd") or 0)
            if value > 0:
                line += f" (${format_number(value)})"
            lines.append(line)
    return lines


def _source(data: dict[str, Any]) -> list[str]:
    source = data.get("source")
    if not isinstance(source, dict):
        recommendations = data.get("recommendations")
        if isinstance(recommendations, list) and recommendations:
            source = recommendations[0].get("source")
    if not isinstance(source, dict):
        return []

    line = f"<i>📡 <b>Data Source:</b> {escape_html(str(source.get('api') or DEFAULT_SOURCE_LABEL))}</i>"
    if source.get("endpoint"):
        line += f" <i>• {escape_html(str(source['endpoint']))}</i>"
    lines = ["", line]
    stamp = parse_timestamp(source.get("timestamp"))
    if stamp is not None:
        lines.append(f"<i>⏱️ <b>Timestamp:</b> {stamp.astimezone().strftime('%Y-%m-%d %H:%M:%S')}</i>")
    return lines


def _reduced_summary(data: dict[str, Any]) -> str:
    lines = ["<b>📊 Data Summary:</b>", ""]
    if isinstance(data.get("recommendations"), list):
        lines.append(f"• <b>Found</b>: {len(data['recommendations'])} token recommendations")
    token = data.get("token")
    if isinstance(token, dict):
        lines.append(f"• <b>Token</b>: {escape_html(str(token.get('symbol') or 'Unknown'))}")
    if data.get("wallet"):
        lines.append(f"• <b>Wallet</b>: {escape_html(str(data['wallet'])[:8])}...")
    return "\n".join(lines)


def format_structured_data_summary(data: Optional[dict[str, Any]]) -> Optional[str]:
    """HTML summary of *data*, a reduced summary if a field is malformed, or None."""
    if not data or not isinstance(data, dict):
        return None

    try:
        if isinstance(data.get("recommendations"), list):
            lines = _recommendations(data)
        elif data.get("token"):
            lines = _token(data["token"])
        elif data.get("wallet"):
            lines = _wallet(data)
        else:
            lines = []
        lines.extend(_source(data))
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        logger.warning("summary_format_failed", error=str(e))
        return _reduced_summary(data)

    return "\n".join(lines).strip() or None
