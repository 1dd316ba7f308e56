from pathlib import Path

from sqlalchemy import create_engine, func, inspect, select
from sqlalchemy.orm import sessionmaker

from app.cashclose.db.models import ClosureSequence, PaymentMethod
from app.cashclose.db.seed import CLOSURE_SEQUENCE, run_seed
from tests.db_utils import migrate, sqlite_url


def test_migrations_apply(tmp_path: Path):
    database_url = sqlite_url(tmp_path, "migrations.db")
    migrate(database_url)

    engine = create_engine(database_url, future=True)
    inspector = inspect(engine)
    tables = set(inspector.get_table_names())

    assert {
        "payment_methods",
        "sales",
        "sale_returns",
        "products",
        "cash_closures",
        "cash_closure_payments",
        "cash_closure_denominations",
        "closure_sequences",
        "idempotency_records",
        "audit_events",
    } <= tables

    indexes = {index["name"]: index for index in inspector.get_indexes("cash_closures")}
    assert indexes["uq_cash_closures_pending_scope"]["unique"]
    assert "ix_cash_closures_scope_status_end" in indexes


def test_seed_is_idempotent(tmp_path: Path):
    database_url = sqlite_url(tmp_path, "seed.db")
    migrate(database_url)

    engine = create_engine(database_url, future=True)
    SessionLocal = sessionmaker(bind=engine, future=True)

    with SessionLocal() as db:
        methods_before = db.scalar(select(func.count()).select_from(PaymentMethod))
        run_seed(db)
        run_seed(db)
        methods_after = db.scalar(select(func.count()).select_from(PaymentMethod))
        sequence = db.get(ClosureSequence, CLOSURE_SEQUENCE)

        assert methods_before == methods_after == 3
        assert sequence.last_value == 0
        cash = db.execute(select(PaymentMethod).where(PaymentMethod.is_cash.is_(True))).scalars().all()
        assert [method.name for method in cash] == ["Efectivo"]
