from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from app.cashclose.core.error_catalog import AppError, ErrorCatalog
from app.cashclose.core.money import ZERO, money_sum, percentage, round_percentage, to_decimal, to_money
from app.cashclose.services.ledger import TheoreticalSummary


@dataclass(frozen=True)
class ReconciliationPolicy:
    """Thresholds above which a difference needs explicit acknowledgement.

    Both limits are exclusive: exactly 5.00% or exactly 100.00 is not significant.
    """

    percent_threshold: Decimal = Decimal("5")
    amount_threshold: Decimal = Decimal("100")

    @classmethod
    def from_settings(cls, settings) -> "ReconciliationPolicy":
        return cls(
            percent_threshold=to_decimal(settings.SIGNIFICANT_DIFFERENCE_PERCENT),
            amount_threshold=to_decimal(settings.SIGNIFICANT_DIFFERENCE_AMOUNT),
        )

    def is_significant(self, theoretical_total: Decimal, difference: Decimal) -> bool:
        if theoretical_total <= 0:
            return False
        difference_percentage = percentage(difference, theoretical_total)
        return abs(difference_percentage) > self.percent_threshold or abs(difference) > self.amount_threshold


@dataclass(frozen=True)
class ActualEntry:
    payment_method_id: int
    actual_amount: Decimal | None = None
    actual_count: int | None = None
    notes: str | None = None


@dataclass(frozen=True)
class PaymentActual:
    payment_method_id: int
    payment_method_name: str
    is_cash: bool
    theoretical_amount: Decimal
    theoretical_count: int
    actual_amount: Decimal = ZERO
    actual_count: int | None = None
    notes: str | None = None

    @property
    def difference(self) -> Decimal:
        return to_money(self.actual_amount - self.theoretical_amount)


@dataclass(frozen=True)
class ReconciliationResult:
    theoretical_total: Decimal
    actual_total: Decimal
    difference: Decimal
    difference_percentage: Decimal
    is_significant: bool
    payments: tuple[PaymentActual, ...]
    cash_total: Decimal | None = None


def seed_actuals(summary: TheoreticalSummary) -> list[PaymentActual]:
    return [
        PaymentActual(
            payment_method_id=line.payment_method_id,
            payment_method_name=line.payment_method_name,
            is_cash=line.is_cash,
            theoretical_amount=line.theoretical_amount,
            theoretical_count=line.theoretical_count,
        )
        for line in summary.breakdown
    ]


def _index_entries(summary: TheoreticalSummary, entries: Iterable[ActualEntry]) -> dict[int, ActualEntry]:
    indexed: dict[int, ActualEntry] = {}
    for entry in entries:
        if summary.breakdown_for(entry.payment_method_id) is None:
            raise AppError(
                ErrorCatalog.VALIDATION_ERROR,
                details={
                    "message": "payment method is not part of the theoretical breakdown",
                    "payment_method_id": entry.payment_method_id,
                },
            )
        if entry.payment_method_id in indexed:
            raise AppError(
                ErrorCatalog.VALIDATION_ERROR,
                details={"message": "duplicate payment method", "payment_method_id": entry.payment_method_id},
            )
        if entry.actual_amount is not None and to_decimal(entry.actual_amount) < 0:
            raise AppError(
                ErrorCatalog.VALIDATION_ERROR,
                details={"message": "actual_amount must not be negative", "payment_method_id": entry.payment_method_id},
            )
        if entry.actual_count is not None and entry.actual_count < 0:
            raise AppError(
                ErrorCatalog.VALIDATION_ERROR,
                details={"message": "actual_count must not be negative", "payment_method_id": entry.payment_method_id},
            )
        indexed[entry.payment_method_id] = entry
    return indexed


def reconcile(
    summary: TheoreticalSummary,
    entries: Iterable[ActualEntry],
    *,
    cash_total: Decimal | None = None,
    policy: ReconciliationPolicy | None = None,
) -> ReconciliationResult:
    policy = policy or ReconciliationPolicy()
    indexed = _index_entries(summary, entries)
    cash_method_id = next((line.payment_method_id for line in summary.breakdown if line.is_cash), None)

    payments = []
    for seeded in seed_actuals(summary):
        entry = indexed.get(seeded.payment_method_id)
        amount = to_money(entry.actual_amount) if entry and entry.actual_amount is not None else None
        if cash_total is not None and seeded.payment_method_id == cash_method_id:
            if amount is None:
                amount = to_money(cash_total)
            elif amount != to_money(cash_total):
                raise AppError(
                    ErrorCatalog.CASH_COUNT_MISMATCH,
                    details={
                        "payment_method_id": seeded.payment_method_id,
                        "actual_amount": amount,
                        "cash_total": to_money(cash_total),
                    },
                )
        payments.append(
            PaymentActual(
                payment_method_id=seeded.payment_method_id,
                payment_method_name=seeded.payment_method_name,
                is_cash=seeded.is_cash,
                theoretical_amount=seeded.theoretical_amount,
                theoretical_count=seeded.theoretical_count,
                actual_amount=amount if amount is not None else ZERO,
                actual_count=entry.actual_count if entry else None,
                notes=(entry.notes or None) if entry else None,
            )
        )

    theoretical_total = summary.net_total
    actual_total = money_sum(payment.actual_amount for payment in payments)
    difference = to_money(actual_total - theoretical_total)
    return ReconciliationResult(
        theoretical_total=theoretical_total,
        actual_total=actual_total,
        difference=difference,
        difference_percentage=round_percentage(percentage(difference, theoretical_total)),
        is_significant=policy.is_significant(theoretical_total, difference),
        payments=tuple(payments),
        cash_total=to_money(cash_total) if cash_total is not None else None,
    )
