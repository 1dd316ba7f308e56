from sqlalchemy import select

from app.cashclose.db.models import ClosureSequence, PaymentMethod

CLOSURE_SEQUENCE = "cash_closures"

DEFAULT_PAYMENT_METHODS = [
    (1, "Efectivo", True),
    (2, "Tarjeta", False),
    (3, "Transferencia", False),
]


def _get_or_create_payment_methods(db):
    existing = {method.id: method for method in db.execute(select(PaymentMethod)).scalars().all()}
    for method_id, name, is_cash in DEFAULT_PAYMENT_METHODS:
        if method_id in existing:
            continue
        db.add(PaymentMethod(id=method_id, name=name, is_cash=is_cash, is_active=True))
    db.flush()


def _get_or_create_sequence(db):
    sequence = db.get(ClosureSequence, CLOSURE_SEQUENCE)
    if sequence is None:
        db.add(ClosureSequence(name=CLOSURE_SEQUENCE, last_value=0))
        db.flush()


def run_seed(db) -> None:
    _get_or_create_payment_methods(db)
    _get_or_create_sequence(db)
    db.commit()
