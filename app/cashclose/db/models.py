import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    event,
    inspect,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, relationship
from sqlalchemy.types import CHAR, TypeDecorator

from app.cashclose.core.error_catalog import AppError, ErrorCatalog

MONEY = Numeric(14, 2, asdecimal=True)


class GUID(TypeDecorator):
    impl = CHAR
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            from sqlalchemy.dialects.postgresql import UUID

            return dialect.type_descriptor(UUID(as_uuid=True))
        return dialect.type_descriptor(CHAR(36))

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, uuid.UUID):
            return str(value)
        return str(uuid.UUID(value))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, uuid.UUID):
            return value
        return uuid.UUID(value)


class Base(DeclarativeBase):
    pass


# Sales ledger and inventory tables are owned by the POS; this service only reads them.


class PaymentMethod(Base):
    __tablename__ = "payment_methods"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    is_cash: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class Sale(Base):
    __tablename__ = "sales"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    cashier_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    customer_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    payment_method_id: Mapped[int] = mapped_column(ForeignKey("payment_methods.id"), nullable=False)
    total: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="COMPLETED")
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, index=True, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


class SaleReturn(Base):
    __tablename__ = "sale_returns"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    sale_id: Mapped[uuid.UUID] = mapped_column(GUID(), ForeignKey("sales.id"), index=True, nullable=False)
    cashier_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="COMPLETED")
    returned_at: Mapped[datetime] = mapped_column(DateTime, index=True, nullable=False)


class Product(Base):
    __tablename__ = "products"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    sku: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    stock_quantity: Mapped[Decimal] = mapped_column(Numeric(14, 3, asdecimal=True), nullable=False, default=0)


class CashClosure(Base):
    __tablename__ = "cash_closures"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    closure_number: Mapped[int] = mapped_column(Integer, nullable=False, unique=True)
    scope_type: Mapped[str] = mapped_column(String(16), nullable=False)
    scope_cashier_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    scope_key: Mapped[str] = mapped_column(String(96), index=True, nullable=False)
    start_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime, index=True, nullable=False)
    cashier_name: Mapped[str] = mapped_column(String(255), nullable=False)
    cashier_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    theoretical_total: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    theoretical_sales: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    theoretical_returns: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    total_transactions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_customers: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    average_ticket: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    actual_total: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    difference: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    difference_percentage: Mapped[Decimal] = mapped_column(Numeric(12, 2, asdecimal=True), nullable=False)
    is_significant: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    discrepancy_confirmed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(16), index=True, nullable=False, default="PENDING")
    supervisor_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    supervisor_validated_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    payment_breakdowns = relationship(
        "CashClosurePayment",
        back_populates="closure",
        order_by="CashClosurePayment.id",
        lazy="selectin",
    )
    denominations = relationship(
        "CashClosureDenomination",
        back_populates="closure",
        order_by="CashClosureDenomination.id",
        lazy="selectin",
    )

    __table_args__ = (
        # at most one PENDING closure per scope
        Index(
            "uq_cash_closures_pending_scope",
            "scope_key",
            unique=True,
            sqlite_where=text("status = 'PENDING'"),
            postgresql_where=text("status = 'PENDING'"),
        ),
    )


class CashClosurePayment(Base):
    __tablename__ = "cash_closure_payments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    closure_id: Mapped[uuid.UUID] = mapped_column(GUID(), ForeignKey("cash_closures.id"), index=True, nullable=False)
    payment_method_id: Mapped[int] = mapped_column(Integer, nullable=False)
    payment_method_name: Mapped[str] = mapped_column(String(100), nullable=False)
    is_cash: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    theoretical_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    theoretical_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    actual_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    actual_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    difference: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    closure = relationship("CashClosure", back_populates="payment_breakdowns")


class CashClosureDenomination(Base):
    __tablename__ = "cash_closure_denominations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    closure_id: Mapped[uuid.UUID] = mapped_column(GUID(), ForeignKey("cash_closures.id"), index=True, nullable=False)
    face_value: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    kind: Mapped[str] = mapped_column(String(8), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    subtotal: Mapped[Decimal] = mapped_column(MONEY, nullable=False)

    closure = relationship("CashClosure", back_populates="denominations")


class ClosureSequence(Base):
    __tablename__ = "closure_sequences"

    name: Mapped[str] = mapped_column(String(64), primary_key=True)
    last_value: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class IdempotencyRecord(Base):
    __tablename__ = "idempotency_records"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    endpoint: Mapped[str] = mapped_column(String(255), nullable=False)
    method: Mapped[str] = mapped_column(String(10), nullable=False)
    idempotency_key: Mapped[str] = mapped_column(String(255), nullable=False)
    request_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    state: Mapped[str] = mapped_column(String(20), nullable=False)
    status_code: Mapped[int | None] = mapped_column(Integer, nullable=True)
    response_body: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "endpoint", "method", "idempotency_key", name="uq_idempotency_actor_key"),
    )


class AuditEvent(Base):
    __tablename__ = "audit_events"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    user_id: Mapped[str | None] = mapped_column(String(64), index=True, nullable=True)
    trace_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    actor: Mapped[str] = mapped_column(String(255), nullable=False)
    actor_role: Mapped[str | None] = mapped_column(String(50), nullable=True)
    action: Mapped[str] = mapped_column(String(255), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(100), nullable=False)
    entity_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    before_payload: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    after_payload: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    event_metadata: Mapped[dict | None] = mapped_column("metadata", JSON, nullable=True)
    result: Mapped[str] = mapped_column(String(50), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


Index("ix_sales_status_completed_at", Sale.status, Sale.completed_at)
Index("ix_cash_closures_scope_status_end", CashClosure.scope_key, CashClosure.status, CashClosure.end_date)


def _original_status(closure: CashClosure) -> str | None:
    history = inspect(closure).attrs.status.history
    if history.deleted:
        return history.deleted[0]
    return closure.status


def _parent_closure(session, child) -> CashClosure | None:
    with session.no_autoflush:
        if child.closure is not None:
            return child.closure
        if child.closure_id is None:
            return None
        return session.get(CashClosure, child.closure_id)


@event.listens_for(Session, "before_flush")
def _guard_finalized_closures(session, flush_context, instances):
    for obj in session.deleted:
        if isinstance(obj, (CashClosure, CashClosurePayment, CashClosureDenomination)):
            raise AppError(ErrorCatalog.CLOSURE_IMMUTABLE, details={"message": "closures are never deleted"})
    for obj in session.dirty:
        if not isinstance(obj, CashClosure) or not session.is_modified(obj):
            continue
        if _original_status(obj) != "PENDING":
            raise AppError(ErrorCatalog.CLOSURE_IMMUTABLE, details={"closure_id": str(obj.id)})
    # breakdown and denomination rows belong to the closure record
    children = [obj for obj in session.new if isinstance(obj, (CashClosurePayment, CashClosureDenomination))]
    children += [
        obj
        for obj in session.dirty
        if isinstance(obj, (CashClosurePayment, CashClosureDenomination)) and session.is_modified(obj)
    ]
    for obj in children:
        parent = _parent_closure(session, obj)
        if parent is not None and _original_status(parent) != "PENDING":
            raise AppError(ErrorCatalog.CLOSURE_IMMUTABLE, details={"closure_id": str(parent.id)})
