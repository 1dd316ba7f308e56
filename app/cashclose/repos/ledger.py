from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy import select

from app.cashclose.db.models import PaymentMethod, Sale, SaleReturn

COMPLETED = "COMPLETED"


@dataclass(frozen=True)
class LedgerSale:
    id: str
    cashier_id: str
    customer_id: str | None
    payment_method_id: int
    total: Decimal


@dataclass(frozen=True)
class LedgerReturn:
    id: str
    payment_method_id: int
    amount: Decimal


@dataclass(frozen=True)
class LedgerPaymentMethod:
    id: int
    name: str
    is_cash: bool
    is_active: bool


class SqlSalesLedger:
    """Read-only view of the POS sales ledger.

    Bounds are naive UTC and half-open: ``start_utc <= ts < end_utc``.
    """

    def __init__(self, db):
        self.db = db

    def completed_sales(self, *, start_utc: datetime, end_utc: datetime, cashier_id: str | None) -> list[LedgerSale]:
        query = select(
            Sale.id,
            Sale.cashier_id,
            Sale.customer_id,
            Sale.payment_method_id,
            Sale.total,
        ).where(
            Sale.status == COMPLETED,
            Sale.completed_at.is_not(None),
            Sale.completed_at >= start_utc,
            Sale.completed_at < end_utc,
        )
        if cashier_id:
            query = query.where(Sale.cashier_id == cashier_id)
        rows = self.db.execute(query.order_by(Sale.completed_at)).all()
        return [
            LedgerSale(
                id=str(row.id),
                cashier_id=row.cashier_id,
                customer_id=row.customer_id,
                payment_method_id=row.payment_method_id,
                total=Decimal(str(row.total)),
            )
            for row in rows
        ]

    def completed_returns(
        self, *, start_utc: datetime, end_utc: datetime, cashier_id: str | None
    ) -> list[LedgerReturn]:
        # refunds leave through the payment method of the sale they reverse
        query = (
            select(SaleReturn.id, SaleReturn.amount, Sale.payment_method_id)
            .join(Sale, Sale.id == SaleReturn.sale_id)
            .where(
                SaleReturn.status == COMPLETED,
                SaleReturn.returned_at >= start_utc,
                SaleReturn.returned_at < end_utc,
            )
        )
        if cashier_id:
            query = query.where(SaleReturn.cashier_id == cashier_id)
        rows = self.db.execute(query.order_by(SaleReturn.returned_at)).all()
        return [
            LedgerReturn(id=str(row.id), payment_method_id=row.payment_method_id, amount=Decimal(str(row.amount)))
            for row in rows
        ]

    def payment_methods(self) -> list[LedgerPaymentMethod]:
        rows = self.db.execute(select(PaymentMethod).order_by(PaymentMethod.id)).scalars().all()
        return [
            LedgerPaymentMethod(id=row.id, name=row.name, is_cash=row.is_cash, is_active=row.is_active)
            for row in rows
        ]
