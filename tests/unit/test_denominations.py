from decimal import Decimal

import pytest

from app.cashclose.core.error_catalog import AppError, ErrorCatalog
from app.cashclose.services.denominations import DenominationCounter, DenominationKind, catalog_for


@pytest.fixture()
def counter():
    return DenominationCounter(catalog_for("GTQ"))


def test_catalog_orders_bills_before_coins():
    catalog = catalog_for("gtq")
    kinds = [line.kind for line in catalog]
    assert kinds == sorted(kinds, key=lambda kind: kind != DenominationKind.BILL)
    assert catalog[0].face_value == Decimal("200")
    assert catalog[-1].face_value == Decimal("0.05")


def test_unknown_currency_has_no_catalog():
    with pytest.raises(ValueError):
        catalog_for("USD")


def test_update_quantity_returns_line_and_running_total(counter):
    line, total = counter.update_quantity(0, 2)
    assert line.subtotal == Decimal("400.00")
    assert total == Decimal("400.00")

    _line, total = counter.set_quantity("0.25", 3)
    assert total == Decimal("400.75")
    assert counter.has_count
    assert [line.face_value for line in counter.counted_lines()] == [Decimal("200"), Decimal("0.25")]


def test_cash_total_equals_sum_of_subtotals(counter):
    for index, line in enumerate(counter.lines):
        counter.update_quantity(index, index + 1)
    assert counter.cash_total() == sum((line.subtotal for line in counter.lines), Decimal("0"))


def test_setting_quantity_back_to_zero_clears_line(counter):
    counter.set_quantity(100, 4)
    counter.set_quantity(100, 0)
    assert not counter.has_count
    assert counter.cash_total() == Decimal("0.00")


@pytest.mark.parametrize("quantity", [-1, 1.5, "3", True, None])
def test_invalid_quantities_leave_state_unchanged(counter, quantity):
    counter.set_quantity(50, 1)
    with pytest.raises(AppError) as excinfo:
        counter.set_quantity(50, quantity)
    assert excinfo.value.error.code == ErrorCatalog.INVALID_DENOMINATION_QUANTITY.code
    assert counter.cash_total() == Decimal("50.00")


def test_unknown_line_is_rejected(counter):
    with pytest.raises(AppError):
        counter.update_quantity(len(counter.lines), 1)
    with pytest.raises(AppError):
        counter.set_quantity("2", 1)
