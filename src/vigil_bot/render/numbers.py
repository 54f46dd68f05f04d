"""Number formatting shared by every rendering tier and keyboard helper."""

from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Decimal, localcontext
from typing import Any

NOT_AVAILABLE = "N/A"

_SUFFIXES = (
    (1e12, "T", 2),
    (1e9, "B", 2),
    (1e6, "M", 2),
    (1e3, "K", 1),
)


def _to_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number):
        return None
    return number


def _fixed(number: float, places: int) -> str:
    """Fixed-point with half-up rounding on the decimal representation."""
    with localcontext() as ctx:
        ctx.prec = 64
        quantum = Decimal(1).scaleb(-places)
        rounded = Decimal(repr(number)).quantize(quantum, rounding=ROUND_HALF_UP)
    if rounded == 0:
        rounded = abs(rounded)
    return f"{rounded:f}"


def _exponential(number: float, places: int) -> str:
    mantissa, exponent = f"{number:.{places}e}".split("e")
    return f"{mantissa}e{int(exponent):+d}"


def _trim(text: str) -> str:
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def _significant(number: float, digits: int, trim: bool) -> str:
    """*digits* significant digits in positional notation."""
    magnitude = math.floor(math.log10(abs(number)))
    places = max(0, digits - 1 - magnitude)
    text = _fixed(number, places)
    return _trim(text) if trim else text


def _max_fraction(number: float, places: int) -> str:
    return _trim(_fixed(number, places))


def format_number(value: Any, use_suffix: bool = False) -> str:
    """Format *value* for display.

    ``use_suffix`` selects the compact form (``1.23M``); otherwise the precise
    form is used, with thousands separators from 1000 upwards. Anything that is
    not a number renders as ``N/A``.
    """
    number = _to_float(value)
    if number is None:
        return NOT_AVAILABLE
    if math.isinf(number):
        return "-∞" if number < 0 else "∞"

    magnitude = abs(number)

    if use_suffix:
        for threshold, suffix, places in _SUFFIXES:
            if magnitude >= threshold:
                return _fixed(number / threshold, places) + suffix
        if 0 < magnitude < 1:
            if magnitude < 1e-6:
                return _exponential(number, 1)
            return _significant(number, 2, trim=False)
        return _fixed(number, 0)

    if magnitude == 0:
        return "0.00"
    if magnitude < 1e-6:
        return _exponential(number, 2)
    if magnitude < 0.01:
        return _significant(number, 4, trim=True)
    if magnitude < 10:
        return _max_fraction(number, 4)
    if magnitude < 1000:
        return _max_fraction(number, 2)
    return f"{Decimal(_fixed(number, 2)):,.2f}"


def format_change(value: Any) -> str:
    """Signed percentage with two decimals, e.g. ``+1.25%`` / ``-2.50%``."""
    number = float(value or 0)
    sign = "+" if number > 0 else ""
    return f"{sign}{number:.2f}%"
