from decimal import Decimal

import pytest

from app.cashclose.core.money import money_sum, percentage, round_percentage, safe_divide, to_decimal, to_money


def test_floats_are_converted_without_binary_noise():
    assert to_decimal(0.1) + to_decimal(0.2) == Decimal("0.3")
    assert money_sum([0.1, 0.2, 0.3]) == Decimal("0.60")


def test_to_money_rounds_half_up():
    assert to_money("2.345") == Decimal("2.35")
    assert to_money("-2.345") == Decimal("-2.35")
    assert to_money(None) == Decimal("0.00")


@pytest.mark.parametrize("value", [True, "abc", object()])
def test_invalid_amounts_are_rejected(value):
    with pytest.raises(ValueError):
        to_decimal(value)


def test_percentage_is_unrounded_until_asked():
    raw = percentage(Decimal("-10"), Decimal("950"))
    assert raw != round_percentage(raw)
    assert round_percentage(raw) == Decimal("-1.05")
    assert percentage(Decimal("5"), Decimal("0")) == Decimal("0")


def test_safe_divide_handles_zero_denominator():
    assert safe_divide(Decimal("950"), 0) == Decimal("0.00")
    assert safe_divide(Decimal("950"), 3) == Decimal("316.67")
