"""Exact currency arithmetic.

All amounts are ``Decimal`` quantized to the minor unit (two places). Floats are
converted through ``str`` so binary rounding noise never enters a sum.
"""
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Iterable

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")


def to_decimal(value) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError("boolean is not a monetary amount")
    if isinstance(value, float):
        value = repr(value)
    try:
        return Decimal(value)
    except (InvalidOperation, TypeError) as exc:
        raise ValueError(f"invalid monetary amount: {value!r}") from exc


def to_money(value) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def money_sum(values: Iterable) -> Decimal:
    total = ZERO
    for value in values:
        total += to_decimal(value)
    return to_money(total)


def percentage(part: Decimal, whole: Decimal) -> Decimal:
    """Unrounded ``part / whole * 100``; zero when ``whole`` is zero."""
    if whole == 0:
        return Decimal("0")
    return to_decimal(part) / to_decimal(whole) * HUNDRED


def round_percentage(value: Decimal) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def safe_divide(numerator: Decimal, denominator: int | Decimal) -> Decimal:
    if not denominator:
        return ZERO
    return to_money(to_decimal(numerator) / to_decimal(denominator))
