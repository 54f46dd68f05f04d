"""HTML markup helpers for the restricted Telegram tag subset."""

from __future__ import annotations

import html
import re

# Tags the renderer is allowed to emit.
ALLOWED_TAGS = frozenset({"b", "i", "code", "pre", "a"})

_TAG_RE = re.compile(r"<[^>]*>?")
_TAG_NAME_RE = re.compile(r"<(/?)([a-zA-Z]+)[^>]*>")
_COMPLETE_TAG_RE = re.compile(r"</?[a-zA-Z][^<>]*>")
_PARTIAL_TAG_RE = re.compile(r"<[^>]*$")
_PARTIAL_ENTITY_RE = re.compile(r"&[#a-zA-Z0-9]*$")

_SYMBOL_RE = re.compile(r"\b([A-Z]{2,5})\b(?!</)")
_DOLLAR_RE = re.compile(r"\$(\d+(?:,\d+)*(?:\.\d+)?[KMBTkmbt]?)")
_PERCENT_RE = re.compile(r"([+-])?(\d+(?:\.\d+)?)%")
_BASE58_RE = re.compile(r"\b([A-HJ-NP-Za-km-z1-9]{32,44})\b")


def escape_html(text: str | None) -> str:
    if not text or not isinstance(text, str):
        return ""
    return html.escape(text, quote=True)


def strip_html(text: str | None) -> str:
    if not text or not isinstance(text, str):
        return ""
    return _TAG_RE.sub("", text)


def strip_tags(text: str | None) -> str:
    """Remove complete tags only, so a bare "<" in prose survives."""
    if not text or not isinstance(text, str):
        return ""
    return _COMPLETE_TAG_RE.sub("", text)


def to_plain_text(markup: str) -> str:
    """Drop tags and decode entities; the result is sent without a parse mode."""
    return html.unescape(strip_html(markup))


def _percent(match: re.Match) -> str:
    icon = "📉" if match.group(1) == "-" else "📈"
    return f"{icon} <b>{match.group(0)}</b>"


def enhance_text(text: str | None) -> str:
    """Escape *text* then highlight symbols, dollar amounts, percentages and addresses."""
    escaped = escape_html(text)
    enhanced = _SYMBOL_RE.sub(r"<code>\1</code>", escaped)
    enhanced = _DOLLAR_RE.sub(r"💰 <b>\1</b>", enhanced)
    enhanced = _PERCENT_RE.sub(_percent, enhanced)
    return _BASE58_RE.sub(r"<code>\1</code>", enhanced)


def open_tags(markup: str) -> list[str]:
    """Names of allowed tags still open at the end of *markup*, outermost first."""
    stack: list[str] = []
    for match in _TAG_NAME_RE.finditer(markup):
        closing, name = match.group(1), match.group(2).lower()
        if name not in ALLOWED_TAGS:
            continue
        if not closing:
            stack.append(name)
        elif name in stack:
            # pop up to and including the matching opener
            while stack:
                if stack.pop() == name:
                    break
    return stack


def truncate_markup(markup: str, limit: int, notice: str) -> str:
    """Cut *markup* so that it plus closing tags plus *notice* fits in *limit*."""
    if len(markup) <= limit:
        return markup

    budget = limit - len(notice)
    while budget > 0:
        body = markup[:budget]
        body = _PARTIAL_TAG_RE.sub("", body)
        body = _PARTIAL_ENTITY_RE.sub("", body)
        closers = "".join(f"</{name}>" for name in reversed(open_tags(body)))
        result = body + closers + notice
        if len(result) <= limit:
            return result
        budget -= len(result) - limit
    return notice[:limit]
