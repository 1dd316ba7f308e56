from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from app.cashclose.core.clock import StoreClock
from app.cashclose.core.config import settings
from app.cashclose.core.deps import get_closure_service, get_current_actor, get_store_clock
from app.cashclose.core.error_catalog import ErrorCatalog
from app.cashclose.core.money import to_money
from app.cashclose.core.scope import Scope, resolve_scope
from app.cashclose.db.models import CashClosure
from app.cashclose.db.session import get_db
from app.cashclose.schemas.closures import (
    CashClosureActionRequest,
    CashClosureListResponse,
    CashClosureResponse,
    CashClosureSubmitRequest,
    DenominationCatalogResponse,
    DenominationLineResponse,
    DenominationRow,
    NegativeStockItemResponse,
    PaymentBreakdownResponse,
    PeriodSuggestionResponse,
    ReconciliationPreviewResponse,
    StockValidationResponse,
    TheoreticalBreakdownRow,
    TheoreticalSnapshot,
    TheoreticalSummaryResponse,
)
from app.cashclose.schemas.errors import ERROR_RESPONSES
from app.cashclose.services.access_control import Actor
from app.cashclose.services.closures import CashClosureService, ClosureSubmission, CountedDenomination, scope_of
from app.cashclose.services.idempotency import (
    REPLAY_HEADER,
    IdempotencyScope,
    IdempotencyService,
    StoredOutcome,
    extract_idempotency_key,
)
from app.cashclose.services.ledger import Period, TheoreticalBreakdown, TheoreticalSummary
from app.cashclose.services.reconciliation import ActualEntry, ReconciliationResult

router = APIRouter(responses=ERROR_RESPONSES)


def _scope_fields(scope: Scope) -> dict:
    return {"scope_type": scope.type.value, "cashier_id": scope.cashier_id}


def _optional_scope(scope_type: str | None, cashier_id: str | None) -> Scope | None:
    if not scope_type and not cashier_id:
        return None
    return resolve_scope(scope_type or "CASHIER", cashier_id)


def _breakdown_rows(summary: TheoreticalSummary) -> list[TheoreticalBreakdownRow]:
    return [
        TheoreticalBreakdownRow(
            payment_method_id=line.payment_method_id,
            payment_method_name=line.payment_method_name,
            is_cash=line.is_cash,
            theoretical_amount=line.theoretical_amount,
            theoretical_count=line.theoretical_count,
        )
        for line in summary.breakdown
    ]


def _snapshot_from_request(snapshot: TheoreticalSnapshot, clock: StoreClock) -> TheoreticalSummary:
    return TheoreticalSummary(
        period=Period(start=clock.localize(snapshot.start_date), end=clock.localize(snapshot.end_date)),
        total_sales=to_money(snapshot.total_sales),
        total_returns=to_money(snapshot.total_returns),
        net_total=to_money(snapshot.net_total),
        total_transactions=snapshot.total_transactions,
        total_customers=snapshot.total_customers,
        average_ticket=to_money(snapshot.average_ticket),
        breakdown=tuple(
            TheoreticalBreakdown(
                payment_method_id=row.payment_method_id,
                payment_method_name=row.payment_method_name,
                is_cash=row.is_cash,
                theoretical_amount=to_money(row.theoretical_amount),
                theoretical_count=row.theoretical_count,
            )
            for row in snapshot.breakdown
        ),
    )


def _submission_from_request(payload: CashClosureSubmitRequest, clock: StoreClock) -> ClosureSubmission:
    return ClosureSubmission(
        scope=resolve_scope(payload.scope_type, payload.cashier_id),
        start=payload.start_date,
        end=payload.end_date,
        snapshot=_snapshot_from_request(payload.theoretical, clock),
        actuals=tuple(
            ActualEntry(
                payment_method_id=row.payment_method_id,
                actual_amount=row.actual_amount,
                actual_count=row.actual_count,
                notes=row.notes,
            )
            for row in payload.payments
        ),
        denominations=tuple(
            CountedDenomination(face_value=row.face_value, quantity=row.quantity) for row in payload.denominations
        ),
        notes=payload.notes,
        cashier_name=payload.cashier_name,
        confirm_discrepancy=payload.confirm_discrepancy,
    )


def _preview_response(result: ReconciliationResult) -> ReconciliationPreviewResponse:
    return ReconciliationPreviewResponse(
        theoretical_total=result.theoretical_total,
        actual_total=result.actual_total,
        difference=result.difference,
        difference_percentage=result.difference_percentage,
        is_significant=result.is_significant,
        requires_confirmation=result.is_significant,
        cash_total=result.cash_total,
        payments=[
            PaymentBreakdownResponse(
                payment_method_id=payment.payment_method_id,
                payment_method_name=payment.payment_method_name,
                is_cash=payment.is_cash,
                theoretical_amount=payment.theoretical_amount,
                theoretical_count=payment.theoretical_count,
                actual_amount=payment.actual_amount,
                actual_count=payment.actual_count,
                difference=payment.difference,
                notes=payment.notes,
            )
            for payment in result.payments
        ],
    )


def _closure_response(closure: CashClosure, clock: StoreClock) -> CashClosureResponse:
    return CashClosureResponse(
        **_scope_fields(scope_of(closure)),
        id=str(closure.id),
        closure_number=closure.closure_number,
        start_date=clock.from_storage(closure.start_date),
        end_date=clock.from_storage(closure.end_date),
        cashier_name=closure.cashier_name,
        submitted_by=closure.cashier_id,
        theoretical_total=to_money(closure.theoretical_total),
        theoretical_sales=to_money(closure.theoretical_sales),
        theoretical_returns=to_money(closure.theoretical_returns),
        total_transactions=closure.total_transactions,
        total_customers=closure.total_customers,
        average_ticket=to_money(closure.average_ticket),
        actual_total=to_money(closure.actual_total),
        difference=to_money(closure.difference),
        difference_percentage=to_money(closure.difference_percentage),
        is_significant=closure.is_significant,
        discrepancy_confirmed=closure.discrepancy_confirmed,
        notes=closure.notes,
        status=closure.status,
        supervisor_name=closure.supervisor_name,
        supervisor_validated_at=clock.from_storage(closure.supervisor_validated_at),
        rejection_reason=closure.rejection_reason,
        created_at=clock.from_storage(closure.created_at),
        updated_at=clock.from_storage(closure.updated_at),
        payment_breakdowns=[
            PaymentBreakdownResponse(
                payment_method_id=row.payment_method_id,
                payment_method_name=row.payment_method_name,
                is_cash=row.is_cash,
                theoretical_amount=to_money(row.theoretical_amount),
                theoretical_count=row.theoretical_count,
                actual_amount=to_money(row.actual_amount),
                actual_count=row.actual_count,
                difference=to_money(row.difference),
                notes=row.notes,
            )
            for row in closure.payment_breakdowns
        ],
        denominations=[
            DenominationLineResponse(
                face_value=to_money(row.face_value),
                kind=row.kind,
                quantity=row.quantity,
                subtotal=to_money(row.subtotal),
            )
            for row in closure.denominations
        ],
    )


def _start_idempotency(request: Request, db, actor: Actor, payload) -> JSONResponse | None:
    key = extract_idempotency_key(request.headers)
    if key is None:
        return None
    scope = IdempotencyScope(user_id=actor.user_id, endpoint=request.url.path, method=request.method, key=key)
    outcome = IdempotencyService(db).begin(scope, payload.model_dump(mode="json"))
    if isinstance(outcome, StoredOutcome):
        return JSONResponse(
            status_code=outcome.status_code,
            content=outcome.response_body,
            headers={REPLAY_HEADER: ErrorCatalog.IDEMPOTENCY_REPLAY.code},
        )
    request.state.idempotency = outcome
    return None


def _finish_idempotency(request: Request, status_code: int, response) -> None:
    context = getattr(request.state, "idempotency", None)
    if context is not None:
        context.record_success(status_code=status_code, response_body=response.model_dump(mode="json"))


@router.get("/calculate-theoretical", response_model=TheoreticalSummaryResponse)
def calculate_theoretical(
    start_date: datetime,
    end_date: datetime,
    scope: str = "CASHIER",
    cashier_id: str | None = None,
    actor: Actor = Depends(get_current_actor),
    service: CashClosureService = Depends(get_closure_service),
):
    resolved = resolve_scope(scope, cashier_id)
    summary = service.get_theoretical(resolved, start_date, end_date, actor)
    return TheoreticalSummaryResponse(
        **_scope_fields(resolved),
        start_date=summary.period.start,
        end_date=summary.period.end,
        total_sales=summary.total_sales,
        total_returns=summary.total_returns,
        net_total=summary.net_total,
        total_transactions=summary.total_transactions,
        total_customers=summary.total_customers,
        average_ticket=summary.average_ticket,
        has_transactions=summary.has_transactions,
        breakdown=_breakdown_rows(summary),
    )


@router.get("/validate-stocks", response_model=StockValidationResponse)
def validate_stocks(
    scope: str = "CASHIER",
    cashier_id: str | None = None,
    actor: Actor = Depends(get_current_actor),
    service: CashClosureService = Depends(get_closure_service),
):
    resolved = resolve_scope(scope, cashier_id)
    validation = service.validate_stock_consistency(resolved, actor)
    return StockValidationResponse(
        **_scope_fields(resolved),
        valid=validation.valid,
        negative_stock_count=len(validation.negative_stock_items),
        negative_stock_items=[
            NegativeStockItemResponse(
                product_id=item.product_id,
                sku=item.sku,
                name=item.name,
                stock_quantity=item.stock_quantity,
            )
            for item in validation.negative_stock_items
        ],
    )


@router.get("/next-period", response_model=PeriodSuggestionResponse)
def next_period(
    scope: str = "CASHIER",
    cashier_id: str | None = None,
    actor: Actor = Depends(get_current_actor),
    service: CashClosureService = Depends(get_closure_service),
):
    resolved = resolve_scope(scope, cashier_id)
    period = service.suggest_next_period(resolved, actor)
    return PeriodSuggestionResponse(
        **_scope_fields(resolved),
        start_date=period.start,
        end_date=period.end,
        last_approved_end=service.periods.last_approved_end(resolved),
    )


@router.get("/denominations", response_model=DenominationCatalogResponse)
def list_denominations(
    _actor: Actor = Depends(get_current_actor),
    service: CashClosureService = Depends(get_closure_service),
):
    return DenominationCatalogResponse(
        currency_code=service.currency_code,
        denominations=[
            DenominationRow(face_value=line.face_value, kind=line.kind.value) for line in service.new_counter().lines
        ],
    )


@router.post("/preview", response_model=ReconciliationPreviewResponse)
def preview_closure(
    payload: CashClosureSubmitRequest,
    actor: Actor = Depends(get_current_actor),
    service: CashClosureService = Depends(get_closure_service),
    clock: StoreClock = Depends(get_store_clock),
):
    result = service.preview(_submission_from_request(payload, clock), actor)
    return _preview_response(result)


@router.post("", response_model=CashClosureResponse, status_code=201)
def submit_closure(
    request: Request,
    payload: CashClosureSubmitRequest,
    actor: Actor = Depends(get_current_actor),
    service: CashClosureService = Depends(get_closure_service),
    clock: StoreClock = Depends(get_store_clock),
    db=Depends(get_db),
):
    replay = _start_idempotency(request, db, actor, payload)
    if replay is not None:
        return replay
    closure = service.submit(
        _submission_from_request(payload, clock),
        actor,
        trace_id=getattr(request.state, "trace_id", None),
    )
    response = _closure_response(closure, clock)
    _finish_idempotency(request, 201, response)
    return response


@router.get("", response_model=CashClosureListResponse)
def list_closures(
    status: str | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    scope: str | None = None,
    cashier_id: str | None = None,
    page: int = Query(1, ge=1),
    page_size: int | None = Query(None, ge=1),
    actor: Actor = Depends(get_current_actor),
    service: CashClosureService = Depends(get_closure_service),
    clock: StoreClock = Depends(get_store_clock),
):
    result = service.list_closures(
        actor,
        status=status,
        start_date=start_date,
        end_date=end_date,
        scope=_optional_scope(scope, cashier_id),
        page=page,
        page_size=page_size or settings.CLOSURES_DEFAULT_PAGE_SIZE,
    )
    return CashClosureListResponse(
        items=[_closure_response(closure, clock) for closure in result.items],
        page=result.page,
        page_size=result.page_size,
        total_pages=result.total_pages,
        total_items=result.total_items,
    )


@router.get("/{closure_id}", response_model=CashClosureResponse)
def get_closure(
    closure_id: str,
    actor: Actor = Depends(get_current_actor),
    service: CashClosureService = Depends(get_closure_service),
    clock: StoreClock = Depends(get_store_clock),
):
    return _closure_response(service.get(closure_id, actor), clock)


@router.post("/{closure_id}/actions", response_model=CashClosureResponse)
def closure_action(
    request: Request,
    closure_id: str,
    payload: CashClosureActionRequest,
    actor: Actor = Depends(get_current_actor),
    service: CashClosureService = Depends(get_closure_service),
    clock: StoreClock = Depends(get_store_clock),
    db=Depends(get_db),
):
    replay = _start_idempotency(request, db, actor, payload)
    if replay is not None:
        return replay
    trace_id = getattr(request.state, "trace_id", None)
    if payload.action == "APPROVE":
        closure = service.approve(closure_id, actor, supervisor_name=payload.supervisor_name, trace_id=trace_id)
    else:
        closure = service.reject(closure_id, actor, reason=payload.rejection_reason, trace_id=trace_id)
    response = _closure_response(closure, clock)
    _finish_idempotency(request, 200, response)
    return response
