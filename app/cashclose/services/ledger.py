from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy.exc import SQLAlchemyError

from app.cashclose.core.clock import StoreClock
from app.cashclose.core.error_catalog import AppError, ErrorCatalog
from app.cashclose.core.logging import log_event
from app.cashclose.core.money import ZERO, money_sum, safe_divide, to_money
from app.cashclose.core.scope import Scope

logger = logging.getLogger("cashclose.ledger")


@dataclass(frozen=True)
class Period:
    """Half-open interval ``[start, end)`` in the store time zone."""

    start: datetime
    end: datetime


@dataclass(frozen=True)
class TheoreticalBreakdown:
    payment_method_id: int
    payment_method_name: str
    is_cash: bool
    theoretical_amount: Decimal
    theoretical_count: int


@dataclass(frozen=True)
class TheoreticalSummary:
    period: Period
    total_sales: Decimal
    total_returns: Decimal
    net_total: Decimal
    total_transactions: int
    total_customers: int
    average_ticket: Decimal
    breakdown: tuple[TheoreticalBreakdown, ...]

    @property
    def has_transactions(self) -> bool:
        return self.total_transactions > 0

    def breakdown_for(self, payment_method_id: int) -> TheoreticalBreakdown | None:
        for line in self.breakdown:
            if line.payment_method_id == payment_method_id:
                return line
        return None


def validate_period(start: datetime, end: datetime, clock: StoreClock) -> Period:
    if start is None or end is None:
        raise AppError(ErrorCatalog.INVALID_PERIOD, details={"message": "start and end are required"})
    local_start = clock.localize(start)
    local_end = clock.localize(end)
    if local_start >= local_end:
        raise AppError(
            ErrorCatalog.INVALID_PERIOD,
            details={"message": "start must be before end", "start": local_start, "end": local_end},
        )
    return Period(start=local_start, end=local_end)


class LedgerAggregator:
    def __init__(self, ledger, clock: StoreClock | None = None):
        self.ledger = ledger
        self.clock = clock or StoreClock()

    def compute_theoretical(self, scope: Scope, start: datetime, end: datetime) -> TheoreticalSummary:
        period = validate_period(start, end, self.clock)
        start_utc = self.clock.to_storage(period.start)
        end_utc = self.clock.to_storage(period.end)
        try:
            sales = self.ledger.completed_sales(start_utc=start_utc, end_utc=end_utc, cashier_id=scope.cashier_id)
            returns = self.ledger.completed_returns(start_utc=start_utc, end_utc=end_utc, cashier_id=scope.cashier_id)
            methods = self.ledger.payment_methods()
        except SQLAlchemyError as exc:
            log_event(logger, "ledger.unavailable", scope=scope.key, error_class=exc.__class__.__name__)
            raise AppError(ErrorCatalog.LEDGER_UNAVAILABLE, details={"type": exc.__class__.__name__}) from exc

        amounts: dict[int, Decimal] = defaultdict(lambda: ZERO)
        counts: dict[int, int] = defaultdict(int)
        for sale in sales:
            amounts[sale.payment_method_id] += sale.total
            counts[sale.payment_method_id] += 1
        for refund in returns:
            amounts[refund.payment_method_id] -= refund.amount

        total_sales = money_sum(sale.total for sale in sales)
        total_returns = money_sum(refund.amount for refund in returns)
        net_total = to_money(total_sales - total_returns)
        total_transactions = len(sales)
        customers = {sale.customer_id for sale in sales if sale.customer_id}

        breakdown = []
        known = set()
        for method in methods:
            known.add(method.id)
            if not method.is_active and method.id not in amounts and method.id not in counts:
                continue
            breakdown.append(
                TheoreticalBreakdown(
                    payment_method_id=method.id,
                    payment_method_name=method.name,
                    is_cash=method.is_cash,
                    theoretical_amount=to_money(amounts.get(method.id, ZERO)),
                    theoretical_count=counts.get(method.id, 0),
                )
            )
        for method_id in sorted(set(amounts) - known):
            breakdown.append(
                TheoreticalBreakdown(
                    payment_method_id=method_id,
                    payment_method_name=f"#{method_id}",
                    is_cash=False,
                    theoretical_amount=to_money(amounts[method_id]),
                    theoretical_count=counts.get(method_id, 0),
                )
            )

        summary = TheoreticalSummary(
            period=period,
            total_sales=total_sales,
            total_returns=total_returns,
            net_total=net_total,
            total_transactions=total_transactions,
            total_customers=len(customers),
            average_ticket=safe_divide(net_total, total_transactions),
            breakdown=tuple(breakdown),
        )
        log_event(
            logger,
            "ledger.theoretical_computed",
            scope=scope.key,
            start=period.start,
            end=period.end,
            net_total=net_total,
            total_transactions=total_transactions,
        )
        return summary
