"""initial cash closure schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None

MONEY = sa.Numeric(14, 2)


class GUID(sa.TypeDecorator):
    impl = sa.CHAR
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            from sqlalchemy.dialects.postgresql import UUID

            return dialect.type_descriptor(UUID(as_uuid=True))
        return dialect.type_descriptor(sa.CHAR(36))


def upgrade() -> None:
    payment_methods = op.create_table(
        "payment_methods",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=100), nullable=False, unique=True),
        sa.Column("is_cash", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
    )
    op.create_table(
        "sales",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("cashier_id", sa.String(length=64), nullable=False),
        sa.Column("customer_id", sa.String(length=64), nullable=True),
        sa.Column("payment_method_id", sa.Integer(), sa.ForeignKey("payment_methods.id"), nullable=False),
        sa.Column("total", MONEY, nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="COMPLETED"),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_sales_cashier_id", "sales", ["cashier_id"])
    op.create_index("ix_sales_completed_at", "sales", ["completed_at"])
    op.create_index("ix_sales_status_completed_at", "sales", ["status", "completed_at"])
    op.create_table(
        "sale_returns",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("sale_id", GUID(), sa.ForeignKey("sales.id"), nullable=False),
        sa.Column("cashier_id", sa.String(length=64), nullable=False),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="COMPLETED"),
        sa.Column("returned_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_sale_returns_sale_id", "sale_returns", ["sale_id"])
    op.create_index("ix_sale_returns_cashier_id", "sale_returns", ["cashier_id"])
    op.create_index("ix_sale_returns_returned_at", "sale_returns", ["returned_at"])
    op.create_table(
        "products",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("sku", sa.String(length=64), nullable=False, unique=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("stock_quantity", sa.Numeric(14, 3), nullable=False, server_default="0"),
    )

    op.create_table(
        "cash_closures",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("closure_number", sa.Integer(), nullable=False, unique=True),
        sa.Column("scope_type", sa.String(length=16), nullable=False),
        sa.Column("scope_cashier_id", sa.String(length=64), nullable=True),
        sa.Column("scope_key", sa.String(length=96), nullable=False),
        sa.Column("start_date", sa.DateTime(), nullable=False),
        sa.Column("end_date", sa.DateTime(), nullable=False),
        sa.Column("cashier_name", sa.String(length=255), nullable=False),
        sa.Column("cashier_id", sa.String(length=64), nullable=True),
        sa.Column("theoretical_total", MONEY, nullable=False),
        sa.Column("theoretical_sales", MONEY, nullable=False),
        sa.Column("theoretical_returns", MONEY, nullable=False),
        sa.Column("total_transactions", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_customers", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("average_ticket", MONEY, nullable=False),
        sa.Column("actual_total", MONEY, nullable=False),
        sa.Column("difference", MONEY, nullable=False),
        sa.Column("difference_percentage", sa.Numeric(12, 2), nullable=False),
        sa.Column("is_significant", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("discrepancy_confirmed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="PENDING"),
        sa.Column("supervisor_name", sa.String(length=255), nullable=True),
        sa.Column("supervisor_validated_at", sa.DateTime(), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_cash_closures_scope_key", "cash_closures", ["scope_key"])
    op.create_index("ix_cash_closures_end_date", "cash_closures", ["end_date"])
    op.create_index("ix_cash_closures_status", "cash_closures", ["status"])
    op.create_index(
        "ix_cash_closures_scope_status_end",
        "cash_closures",
        ["scope_key", "status", "end_date"],
    )
    op.create_index(
        "uq_cash_closures_pending_scope",
        "cash_closures",
        ["scope_key"],
        unique=True,
        sqlite_where=sa.text("status = 'PENDING'"),
        postgresql_where=sa.text("status = 'PENDING'"),
    )
    op.create_table(
        "cash_closure_payments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("closure_id", GUID(), sa.ForeignKey("cash_closures.id"), nullable=False),
        sa.Column("payment_method_id", sa.Integer(), nullable=False),
        sa.Column("payment_method_name", sa.String(length=100), nullable=False),
        sa.Column("is_cash", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("theoretical_amount", MONEY, nullable=False),
        sa.Column("theoretical_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("actual_amount", MONEY, nullable=False),
        sa.Column("actual_count", sa.Integer(), nullable=True),
        sa.Column("difference", MONEY, nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
    )
    op.create_index("ix_cash_closure_payments_closure_id", "cash_closure_payments", ["closure_id"])
    op.create_table(
        "cash_closure_denominations",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("closure_id", GUID(), sa.ForeignKey("cash_closures.id"), nullable=False),
        sa.Column("face_value", MONEY, nullable=False),
        sa.Column("kind", sa.String(length=8), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("subtotal", MONEY, nullable=False),
    )
    op.create_index("ix_cash_closure_denominations_closure_id", "cash_closure_denominations", ["closure_id"])
    closure_sequences = op.create_table(
        "closure_sequences",
        sa.Column("name", sa.String(length=64), primary_key=True),
        sa.Column("last_value", sa.Integer(), nullable=False, server_default="0"),
    )

    op.create_table(
        "idempotency_records",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("endpoint", sa.String(length=255), nullable=False),
        sa.Column("method", sa.String(length=10), nullable=False),
        sa.Column("idempotency_key", sa.String(length=255), nullable=False),
        sa.Column("request_hash", sa.String(length=64), nullable=False),
        sa.Column("state", sa.String(length=20), nullable=False),
        sa.Column("status_code", sa.Integer(), nullable=True),
        sa.Column("response_body", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("user_id", "endpoint", "method", "idempotency_key", name="uq_idempotency_actor_key"),
    )
    op.create_table(
        "audit_events",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("user_id", sa.String(length=64), nullable=True),
        sa.Column("trace_id", sa.String(length=255), nullable=True),
        sa.Column("actor", sa.String(length=255), nullable=False),
        sa.Column("actor_role", sa.String(length=50), nullable=True),
        sa.Column("action", sa.String(length=255), nullable=False),
        sa.Column("entity_type", sa.String(length=100), nullable=False),
        sa.Column("entity_id", sa.String(length=255), nullable=True),
        sa.Column("before_payload", sa.JSON(), nullable=True),
        sa.Column("after_payload", sa.JSON(), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("result", sa.String(length=50), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_audit_events_user_id", "audit_events", ["user_id"])

    op.bulk_insert(
        payment_methods,
        [
            {"id": 1, "name": "Efectivo", "is_cash": True, "is_active": True},
            {"id": 2, "name": "Tarjeta", "is_cash": False, "is_active": True},
            {"id": 3, "name": "Transferencia", "is_cash": False, "is_active": True},
        ],
    )
    op.bulk_insert(closure_sequences, [{"name": "cash_closures", "last_value": 0}])


def downgrade() -> None:
    op.drop_index("ix_audit_events_user_id", table_name="audit_events")
    op.drop_table("audit_events")
    op.drop_table("idempotency_records")
    op.drop_table("closure_sequences")
    op.drop_index("ix_cash_closure_denominations_closure_id", table_name="cash_closure_denominations")
    op.drop_table("cash_closure_denominations")
    op.drop_index("ix_cash_closure_payments_closure_id", table_name="cash_closure_payments")
    op.drop_table("cash_closure_payments")
    op.drop_index("uq_cash_closures_pending_scope", table_name="cash_closures")
    op.drop_index("ix_cash_closures_scope_status_end", table_name="cash_closures")
    op.drop_index("ix_cash_closures_status", table_name="cash_closures")
    op.drop_index("ix_cash_closures_end_date", table_name="cash_closures")
    op.drop_index("ix_cash_closures_scope_key", table_name="cash_closures")
    op.drop_table("cash_closures")
    op.drop_table("products")
    op.drop_index("ix_sale_returns_returned_at", table_name="sale_returns")
    op.drop_index("ix_sale_returns_cashier_id", table_name="sale_returns")
    op.drop_index("ix_sale_returns_sale_id", table_name="sale_returns")
    op.drop_table("sale_returns")
    op.drop_index("ix_sales_status_completed_at", table_name="sales")
    op.drop_index("ix_sales_completed_at", table_name="sales")
    op.drop_index("ix_sales_cashier_id", table_name="sales")
    op.drop_table("sales")
    op.drop_table("payment_methods")
