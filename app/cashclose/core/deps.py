from fastapi import Depends, Request
from jose import JWTError
from pydantic import ValidationError

from app.cashclose.core.clock import StoreClock, resolve_timezone
from app.cashclose.core.config import settings
from app.cashclose.core.context import RequestContext, build_request_context
from app.cashclose.core.error_catalog import AppError, ErrorCatalog
from app.cashclose.core.security import TokenData, decode_token, oauth2_scheme
from app.cashclose.db.session import get_db
from app.cashclose.repos.inventory import SqlInventoryGateway
from app.cashclose.repos.ledger import SqlSalesLedger
from app.cashclose.services.access_control import Actor
from app.cashclose.services.closures import CashClosureService
from app.cashclose.services.reconciliation import ReconciliationPolicy


def get_current_token_data(token: str | None = Depends(oauth2_scheme)) -> TokenData:
    if not token:
        raise AppError(ErrorCatalog.INVALID_TOKEN)
    try:
        payload = decode_token(token)
        return TokenData(**payload)
    except (JWTError, ValidationError, TypeError) as exc:
        raise AppError(ErrorCatalog.INVALID_TOKEN) from exc


def require_request_context(
    request: Request,
    token_data: TokenData = Depends(get_current_token_data),
) -> RequestContext:
    trace_id = getattr(request.state, "trace_id", "")
    context = build_request_context(user_id=token_data.sub, role=token_data.role, trace_id=trace_id)
    request.state.context = context
    return context


def get_current_actor(
    token_data: TokenData = Depends(get_current_token_data),
    context: RequestContext = Depends(require_request_context),
) -> Actor:
    return Actor.from_token(token_data)


def get_store_clock() -> StoreClock:
    return StoreClock(resolve_timezone(settings.STORE_TIMEZONE))


def get_sales_ledger(db=Depends(get_db)):
    return SqlSalesLedger(db)


def get_inventory_gateway(db=Depends(get_db)):
    return SqlInventoryGateway(db)


def get_closure_service(
    db=Depends(get_db),
    ledger=Depends(get_sales_ledger),
    inventory_gateway=Depends(get_inventory_gateway),
    clock: StoreClock = Depends(get_store_clock),
) -> CashClosureService:
    return CashClosureService(
        db,
        ledger=ledger,
        inventory_gateway=inventory_gateway,
        clock=clock,
        policy=ReconciliationPolicy.from_settings(settings),
        currency_code=settings.CURRENCY_CODE,
        require_stock_consistency=settings.REQUIRE_STOCK_CONSISTENCY,
        max_page_size=settings.CLOSURES_MAX_PAGE_SIZE,
    )


__all__ = [
    "get_current_token_data",
    "require_request_context",
    "get_current_actor",
    "get_store_clock",
    "get_sales_ledger",
    "get_inventory_gateway",
    "get_closure_service",
]
