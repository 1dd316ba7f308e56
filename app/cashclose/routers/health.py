from fastapi import APIRouter, Depends, Request
from sqlalchemy import func, select, text
from sqlalchemy.exc import SQLAlchemyError

from app.cashclose.core.config import settings
from app.cashclose.core.error_catalog import ErrorCatalog
from app.cashclose.core.errors import error_response
from app.cashclose.db.models import ClosureSequence, PaymentMethod
from app.cashclose.db.seed import CLOSURE_SEQUENCE
from app.cashclose.db.session import get_db

router = APIRouter()


def _readiness_checks(db) -> dict[str, bool]:
    db.execute(text("SELECT 1"))
    cash_methods = db.scalar(
        select(func.count()).select_from(PaymentMethod).where(PaymentMethod.is_cash.is_(True))
    )
    return {
        "database": True,
        "closure_sequence": db.get(ClosureSequence, CLOSURE_SEQUENCE) is not None,
        "cash_payment_method": bool(cash_methods),
    }


@router.get("/health")
async def health(request: Request):
    return {"status": "ok", "service": settings.APP_NAME, "trace_id": getattr(request.state, "trace_id", "")}


@router.get("/ready")
def ready(request: Request, db=Depends(get_db)):
    trace_id = getattr(request.state, "trace_id", "")
    try:
        checks = _readiness_checks(db)
    except SQLAlchemyError as exc:
        checks = {"database": False}
        details = {"type": exc.__class__.__name__, "checks": checks}
    else:
        details = {"checks": checks}
    if not all(checks.values()):
        return error_response(
            code=ErrorCatalog.DB_UNAVAILABLE.code,
            message=ErrorCatalog.DB_UNAVAILABLE.message,
            details=details,
            trace_id=trace_id,
            status_code=ErrorCatalog.DB_UNAVAILABLE.status_code,
        )
    return {"status": "ready", "checks": checks, "trace_id": trace_id}
