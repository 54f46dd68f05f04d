"""Tiered rendering of backend results into Telegram HTML.

Three tiers are tried in order, each a plain function of the result:

1. ``render_enhanced``: highlighted text, data visualization, source line and the
   full dynamic keyboard, capped at ``max_length``.
2. ``render_simple``: escaped text and a minimal keyboard.
3. ``render_plain``: tags stripped from the raw reply, no parse mode.

``render`` picks the first tier that succeeds and never raises. ``downgrade``
gives the simple rendering to fall back to when Telegram rejects an enhanced one.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from vigil_bot.ai.backend import BackendResult
from vigil_bot.log import get_logger
from vigil_bot.messenger.models import InlineKeyboard
from vigil_bot.render.keyboards import DEFAULT_EXPLORER_URL, build_keyboard, build_simple_keyboard
from vigil_bot.render.markup import enhance_text, escape_html, strip_tags, to_plain_text, truncate_markup
from vigil_bot.render.numbers import format_change, format_number

logger = get_logger(__name__)

PARSE_MODE_HTML = "html"

MAX_MESSAGE_LENGTH = 4000
TRUNCATION_NOTICE = "\n\n<i>⚠️ Message truncated due to length limits...</i>"
NO_RESPONSE_TEXT = "I processed your request but had trouble generating a response. Please try again."
DEFAULT_SOURCE_LABEL = "Vybe Network"


@dataclass(frozen=True)
class RenderOptions:
    max_length: int = MAX_MESSAGE_LENGTH
    default_source_label: str = DEFAULT_SOURCE_LABEL
    explorer_url: str = DEFAULT_EXPLORER_URL


@dataclass(frozen=True)
class RenderedResponse:
    text: str
    keyboard: Optional[InlineKeyboard]
    parse_mode: Optional[str] = PARSE_MODE_HTML
    tier: str = "enhanced"

    def as_plain(self) -> RenderedResponse:
        if self.parse_mode is None:
            return self
        return replace(self, text=to_plain_text(self.text), parse_mode=None, tier="plain")


@dataclass(frozen=True)
class TierFailure:
    tier: str
    error: Exception


# --- data visualization -----------------------------------------------------


def _trend_icon(change: float) -> str:
    return "📈" if change >= 0 else "📉"


def _recommendations_block(recommendations: list[Any]) -> str:
    lines = ["<b>🏆 TOP RECOMMENDATIONS</b>", ""]
    for idx, token in enumerate(recommendations[:5], start=1):
        symbol = escape_html(str(token.get("symbol") or "UNKNOWN"))
        price = format_number(token.get("price_usd") or 0)
        change = float(token.get("price_change_1d") or token.get("price_change_24h") or 0)
        lines.append(f"{idx}. <code>{symbol}</code> - ${price} {_trend_icon(change)} {format_change(change)}")
        reason = token.get("reason")
        if reason:
            reason = str(reason)
            short = reason if len(reason) <= 50 else reason[:47] + "..."
            lines.append(f"   <i>{escape_html(short)}</i>")
    return "\n".join(lines)


def _token_block(token: dict[str, Any]) -> str:
    symbol = escape_html(str(token.get("symbol") or "UNKNOWN"))
    name = escape_html(str(token.get("name") or "")) or symbol
    lines = [
        f"<b>📊 {name} ({symbol}) OVERVIEW</b>",
        "",
        f"• Price: ${format_number(token.get('price_usd') or token.get('price') or 0)}",
    ]
    if token.get("price_change_1d") is not None:
        change = float(token["price_change_1d"])
        lines.append(f"• 24h Change: {_trend_icon(change)} {format_change(change)}")
    if token.get("marketCap"):
        lines.append(f"• Market Cap: ${format_number(token['marketCap'], True)}")
    if token.get("volume_24h"):
        lines.append(f"• 24h Volume: ${format_number(token['volume_24h'], True)}")
    if token.get("holders"):
        lines.append(f"• Holders: {format_number(token['holders'])}")
    return "\n".join(lines)


def _wallet_block(data: dict[str, Any]) -> str:
    tokens_info = data.get("tokens") or {}
    holdings = tokens_info.get("data") or []
    lines = ["<b>💼 WALLET SUMMARY</b>", ""]
    if tokens_info.get("totalTokenValueUsd"):
        lines.append(f"• Total Value: ${format_number(tokens_info['totalTokenValueUsd'])}")
    if holdings:
        lines.append("• Top Holdings:")
        for idx, holding in enumerate(holdings[:3], start=1):
            symbol = escape_html(str(holding.get("symbol") or "UNKNOWN"))
            lines.append(
                f"  {idx}. <code>{symbol}</code>: {format_number(holding.get('balance') or 0)}"
                f" (${format_number(holding.get('valueUsd') or 0)})"
            )
    return "\n".join(lines)


def _alert_block(data: dict[str, Any]) -> str:
    symbol = escape_html(str(data.get("token_symbol") or "TOKEN"))
    condition = escape_html(str(data.get("condition_type") or "").replace("price_", ""))
    threshold = format_number(data.get("threshold_value"))
    detail = " ".join(part for part in (f"<code>{symbol}</code>", condition, f"${threshold}") if part)
    return f"<b>🔔 ALERT SET</b>\n\n• {detail}"


def data_visualization(data: dict[str, Any]) -> str:
    """Visual block for the first recognized payload shape, or an empty string."""
    recommendations = data.get("recommendations")
    if isinstance(recommendations, list):
        return _recommendations_block(recommendations)
    if data.get("token"):
        return _token_block(data["token"])
    if data.get("wallet"):
        return _wallet_block(data)
    if data.get("alert_created") is True and data.get("token_symbol"):
        return _alert_block(data)
    return ""


def _find_source(data: dict[str, Any]) -> Optional[dict[str, Any]]:
    source = data.get("source")
    if isinstance(source, dict):
        return source
    recommendations = data.get("recommendations")
    if isinstance(recommendations, list) and recommendations and isinstance(recommendations[0], dict):
        source = recommendations[0].get("source")
        if isinstance(source, dict):
            return source
    return None


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Epoch milliseconds or ISO-8601 string; None when absent or unparseable."""
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return None


def source_attribution(
    data: dict[str, Any],
    default_label: str = DEFAULT_SOURCE_LABEL,
    now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
) -> Optional[str]:
    source = _find_source(data)
    if source is None:
        return None

    parts = [f"<i>Data Source: <b>{escape_html(str(source.get('api') or default_label))}</b>"]
    if source.get("endpoint"):
        parts.append(escape_html(str(source["endpoint"])))
    stamp = parse_timestamp(source.get("timestamp")) or now()
    parts.append(stamp.astimezone().strftime("%H:%M:%S"))
    return " | ".join(parts) + "</i>"


# --- tiers ------------------------------------------------------------------


def _safe_keyboard(factory: Callable[[], Optional[InlineKeyboard]]) -> Optional[InlineKeyboard]:
    try:
        return factory()
    except Exception as e:
        logger.warning("keyboard_build_failed", error=str(e))
        return None


def render_enhanced(result: BackendResult, options: RenderOptions = RenderOptions()) -> RenderedResponse:
    message = enhance_text(result.text)

    data = result.structured_data
    if data:
        visualization = data_visualization(data)
        if visualization:
            message += "\n\n" + visualization
        attribution = source_attribution(data, options.default_source_label)
        if attribution:
            message += "\n\n" + attribution

    message = truncate_markup(message, options.max_length, TRUNCATION_NOTICE)
    keyboard = _safe_keyboard(lambda: build_keyboard(data, options.explorer_url))
    return RenderedResponse(text=message, keyboard=keyboard, tier="enhanced")


def render_simple(result: BackendResult, options: RenderOptions = RenderOptions()) -> RenderedResponse:
    message = truncate_markup(escape_html(result.text), options.max_length, TRUNCATION_NOTICE)
    keyboard = _safe_keyboard(lambda: build_simple_keyboard(result.structured_data))
    return RenderedResponse(text=message, keyboard=keyboard, tier="simple")


def render_plain(result: BackendResult, options: RenderOptions = RenderOptions()) -> RenderedResponse:
    # Raw reply and plain slicing; no HTML helpers.
    message = strip_tags(result.text)
    if len(message) > options.max_length:
        notice = to_plain_text(TRUNCATION_NOTICE)
        message = message[: max(options.max_length - len(notice), 0)] + notice
    keyboard = _safe_keyboard(lambda: build_simple_keyboard(result.structured_data))
    return RenderedResponse(text=message, keyboard=keyboard, parse_mode=None, tier="plain")


TIERS: tuple[tuple[str, Callable[[BackendResult, RenderOptions], RenderedResponse]], ...] = (
    ("enhanced", render_enhanced),
    ("simple", render_simple),
    ("plain", render_plain),
)


def _attempt(
    name: str,
    tier: Callable[[BackendResult, RenderOptions], RenderedResponse],
    result: BackendResult,
    options: RenderOptions,
) -> RenderedResponse | TierFailure:
    try:
        return tier(result, options)
    except Exception as e:
        return TierFailure(tier=name, error=e)


def downgrade(
    result: BackendResult, rendered: RenderedResponse, options: RenderOptions = RenderOptions()
) -> Optional[RenderedResponse]:
    """Simple-tier rendering to send when the transport rejects an enhanced one."""
    if rendered.tier != "enhanced":
        return None
    outcome = _attempt("simple", render_simple, result, options)
    if isinstance(outcome, TierFailure):
        logger.warning("render_tier_failed", tier=outcome.tier, error=str(outcome.error))
        return None
    return outcome


def render(result: Optional[BackendResult], options: RenderOptions = RenderOptions()) -> RenderedResponse:
    """Render *result* with the richest tier that succeeds."""
    if result is None or not result.text:
        return RenderedResponse(text=escape_html(NO_RESPONSE_TEXT), keyboard=None, tier="empty")

    for name, tier in TIERS:
        outcome = _attempt(name, tier, result, options)
        if isinstance(outcome, RenderedResponse):
            return outcome
        logger.warning("render_tier_failed", tier=outcome.tier, error=str(outcome.error))

    return RenderedResponse(text=escape_html(result.text), keyboard=None, tier="raw")
