from __future__ import annotations

import pytest

from vigil_bot.render.numbers import NOT_AVAILABLE, format_change, format_number


@pytest.mark.parametrize("value", [None, "", "abc", True, float("nan"), [1]])
def test_non_numeric_is_not_available(value: object) -> None:
    assert format_number(value) == NOT_AVAILABLE
    assert format_number(value, use_suffix=True) == NOT_AVAILABLE


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (1234567, "1.23M"),
        (2.5e12, "2.50T"),
        (7_890_000_000, "7.89B"),
        (1500, "1.5K"),
        (999, "999"),
        (0.5, "0.50"),
        (0.0123, "0.012"),
        (-2_000_000, "-2.00M"),
    ],
)
def test_suffix_form(value: float, expected: str) -> None:
    assert format_number(value, use_suffix=True) == expected


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (0, "0.00"),
        (5e-8, "5.00e-8"),
        (0.00012345, "0.0001235"),
        (1.23456, "1.2346"),
        (2.5, "2.5"),
        (150.255, "150.26"),
        (1234567.891, "1,234,567.89"),
        (-1500.5, "-1,500.50"),
        ("42.5", "42.5"),
    ],
)
def test_precise_form(value: object, expected: str) -> None:
    assert format_number(value) == expected


@pytest.mark.parametrize(
    ("value", "expected"),
    [(5.2, "+5.20%"), (-2.5, "-2.50%"), (0, "0.00%"), (None, "0.00%")],
)
def test_format_change(value: object, expected: str) -> None:
    assert format_change(value) == expected
