from datetime import datetime
from decimal import Decimal
from zoneinfo import ZoneInfo

import pytest
from sqlalchemy.exc import OperationalError

from app.cashclose.core.clock import StoreClock
from app.cashclose.core.error_catalog import AppError, ErrorCatalog
from app.cashclose.core.scope import Scope
from app.cashclose.repos.ledger import LedgerPaymentMethod, LedgerReturn, LedgerSale
from app.cashclose.services.ledger import LedgerAggregator

TZ = ZoneInfo("America/Guatemala")
START = datetime(2026, 3, 10, tzinfo=TZ)
END = datetime(2026, 3, 10, 23, 59, 59, tzinfo=TZ)


class FakeLedger:
    def __init__(self, sales=(), returns=(), methods=None):
        self.sales = list(sales)
        self.returns = list(returns)
        self.methods = methods or [
            LedgerPaymentMethod(1, "Efectivo", True, True),
            LedgerPaymentMethod(2, "Tarjeta", False, True),
            LedgerPaymentMethod(4, "Cheque", False, False),
        ]
        self.calls = []

    def completed_sales(self, *, start_utc, end_utc, cashier_id):
        self.calls.append(("sales", start_utc, end_utc, cashier_id))
        return self.sales

    def completed_returns(self, *, start_utc, end_utc, cashier_id):
        self.calls.append(("returns", start_utc, end_utc, cashier_id))
        return self.returns

    def payment_methods(self):
        return self.methods


def _sale(index: int, total: str, method: int, customer: str | None = None) -> LedgerSale:
    return LedgerSale(f"sale-{index}", "cashier-1", customer, method, Decimal(total))


def _aggregator(ledger) -> LedgerAggregator:
    return LedgerAggregator(ledger, StoreClock(TZ))


def test_net_total_and_breakdown_conserve_value():
    ledger = FakeLedger(
        sales=[_sale(1, "300.10", 1, "a"), _sale(2, "199.95", 2, "b"), _sale(3, "0.05", 1, "a")],
        returns=[LedgerReturn("r-1", 2, Decimal("49.99"))],
    )

    summary = _aggregator(ledger).compute_theoretical(Scope.store_wide(), START, END)

    assert summary.total_sales == Decimal("500.10")
    assert summary.total_returns == Decimal("49.99")
    assert summary.net_total == Decimal("450.11")
    assert summary.total_transactions == 3
    assert summary.total_customers == 2
    assert summary.average_ticket == Decimal("150.04")
    assert sum((line.theoretical_amount for line in summary.breakdown), Decimal("0")) == summary.net_total
    assert summary.breakdown_for(2).theoretical_amount == Decimal("149.96")
    assert summary.breakdown_for(1).theoretical_count == 2


def test_inactive_methods_only_listed_with_activity():
    idle = _aggregator(FakeLedger()).compute_theoretical(Scope.store_wide(), START, END)
    assert [line.payment_method_id for line in idle.breakdown] == [1, 2]

    busy = _aggregator(FakeLedger(sales=[_sale(1, "10.00", 4), _sale(2, "5.00", 9)])).compute_theoretical(
        Scope.store_wide(), START, END
    )
    assert [line.payment_method_id for line in busy.breakdown] == [1, 2, 4, 9]
    assert busy.breakdown_for(9).payment_method_name == "#9"


def test_zero_transactions_is_valid():
    summary = _aggregator(FakeLedger()).compute_theoretical(Scope.cashier("cashier-1"), START, END)

    assert summary.has_transactions is False
    assert summary.net_total == Decimal("0.00")
    assert summary.average_ticket == Decimal("0.00")


def test_scope_and_bounds_reach_the_ledger_in_utc():
    ledger = FakeLedger()
    _aggregator(ledger).compute_theoretical(Scope.cashier("cashier-7"), START, END)

    _kind, start_utc, end_utc, cashier_id = ledger.calls[0]
    assert cashier_id == "cashier-7"
    assert start_utc == datetime(2026, 3, 10, 6, 0, 0)
    assert end_utc == datetime(2026, 3, 11, 5, 59, 59)

    _aggregator(ledger).compute_theoretical(Scope.store_wide(), START, END)
    assert ledger.calls[-1][3] is None


def test_empty_or_inverted_period_is_invalid():
    aggregator = _aggregator(FakeLedger())
    for start, end in ((START, START), (END, START)):
        with pytest.raises(AppError) as excinfo:
            aggregator.compute_theoretical(Scope.store_wide(), start, end)
        assert excinfo.value.error.code == ErrorCatalog.INVALID_PERIOD.code


def test_unreachable_ledger_propagates():
    class DownLedger(FakeLedger):
        def completed_sales(self, **kwargs):
            raise OperationalError("SELECT 1", {}, Exception("connection refused"))

    with pytest.raises(AppError) as excinfo:
        _aggregator(DownLedger()).compute_theoretical(Scope.store_wide(), START, END)
    assert excinfo.value.error.code == ErrorCatalog.LEDGER_UNAVAILABLE.code
