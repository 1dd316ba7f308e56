from __future__ import annotations

import logging
import math
import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy.exc import IntegrityError

from app.cashclose.core.clock import StoreClock
from app.cashclose.core.error_catalog import AppError, ErrorCatalog
from app.cashclose.core.logging import log_event
from app.cashclose.core.metrics import metrics
from app.cashclose.core.money import CENT, money_sum, to_money
from app.cashclose.core.scope import ClosureStatus, Scope, ScopeType
from app.cashclose.db.models import CashClosure, CashClosureDenomination, CashClosurePayment
from app.cashclose.repos.closures import CashClosureRepository, ClosureQueryFilters
from app.cashclose.services.access_control import AccessPolicy, Actor, Capability
from app.cashclose.services.audit import AuditService
from app.cashclose.services.denominations import DenominationCounter, catalog_for
from app.cashclose.services.inventory import StockConsistencyService, StockValidation
from app.cashclose.services.ledger import LedgerAggregator, Period, TheoreticalSummary, validate_period
from app.cashclose.services.periods import PeriodResolver
from app.cashclose.services.reconciliation import (
    ActualEntry,
    ReconciliationPolicy,
    ReconciliationResult,
    reconcile,
)

logger = logging.getLogger("cashclose.closures")


@dataclass(frozen=True)
class CountedDenomination:
    face_value: Decimal
    quantity: int


@dataclass(frozen=True)
class ClosureSubmission:
    scope: Scope
    start: datetime
    end: datetime
    snapshot: TheoreticalSummary
    actuals: tuple[ActualEntry, ...]
    denominations: tuple[CountedDenomination, ...] = ()
    notes: str | None = None
    cashier_name: str | None = None
    confirm_discrepancy: bool = False


@dataclass(frozen=True)
class PreparedClosure:
    period: Period
    summary: TheoreticalSummary
    counter: DenominationCounter
    result: ReconciliationResult


@dataclass(frozen=True)
class ClosurePage:
    items: list[CashClosure]
    page: int
    page_size: int
    total_pages: int
    total_items: int


def scope_of(closure: CashClosure) -> Scope:
    if closure.scope_type == ScopeType.STORE.value:
        return Scope.store_wide()
    return Scope.cashier(closure.scope_cashier_id)


def reconciliation_details(result: ReconciliationResult) -> dict:
    return {
        "theoretical_total": result.theoretical_total,
        "actual_total": result.actual_total,
        "difference": result.difference,
        "difference_percentage": result.difference_percentage,
        "is_significant": result.is_significant,
    }


class CashClosureService:
    def __init__(
        self,
        db,
        *,
        ledger,
        inventory_gateway,
        clock: StoreClock | None = None,
        policy: ReconciliationPolicy | None = None,
        access: AccessPolicy | None = None,
        currency_code: str = "GTQ",
        require_stock_consistency: bool = True,
        max_page_size: int = 100,
    ):
        self.db = db
        self.clock = clock or StoreClock()
        self.repo = CashClosureRepository(db)
        self.aggregator = LedgerAggregator(ledger, self.clock)
        self.stock = StockConsistencyService(inventory_gateway)
        self.periods = PeriodResolver(self.repo, self.clock)
        self.policy = policy or ReconciliationPolicy()
        self.access = access or AccessPolicy()
        self.currency_code = currency_code
        self.require_stock_consistency = require_stock_consistency
        self.max_page_size = max_page_size

    # -- queries ---------------------------------------------------------

    def validate_stock_consistency(self, scope: Scope, actor: Actor) -> StockValidation:
        self.access.ensure_can_view(scope, actor)
        return self.stock.validate(scope)

    def suggest_next_period(self, scope: Scope, actor: Actor, now: datetime | None = None) -> Period:
        self.access.ensure_can_view(scope, actor)
        return self.periods.suggest_period(scope, now=now)

    def get_theoretical(self, scope: Scope, start: datetime, end: datetime, actor: Actor) -> TheoreticalSummary:
        self.access.ensure_can_view(scope, actor)
        validate_period(start, end, self.clock)
        self._ensure_stock_consistent(scope)
        return self.aggregator.compute_theoretical(scope, start, end)

    def new_counter(self) -> DenominationCounter:
        return DenominationCounter(catalog_for(self.currency_code))

    def get(self, closure_id, actor: Actor) -> CashClosure:
        closure = self._load(closure_id)
        self.access.ensure_can_view(scope_of(closure), actor)
        return closure

    def list_closures(
        self,
        actor: Actor,
        *,
        status: str | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
        scope: Scope | None = None,
        page: int = 1,
        page_size: int = 10,
    ) -> ClosurePage:
        if not actor.has(Capability.VIEW_ALL):
            own = Scope.cashier(actor.user_id)
            if scope is not None and scope != own:
                raise AppError(ErrorCatalog.PERMISSION_DENIED, details={"capability": "VIEW", "scope": scope.key})
            scope = own
        if status is not None:
            try:
                status = ClosureStatus(status.upper()).value
            except ValueError as exc:
                raise AppError(ErrorCatalog.VALIDATION_ERROR, details={"message": "unknown status"}) from exc
        page = max(1, page)
        page_size = max(1, min(page_size, self.max_page_size))
        filters = ClosureQueryFilters(
            status=status,
            start_date=self.clock.to_storage(start_date) if start_date else None,
            end_date=self.clock.to_storage(end_date) if end_date else None,
            scope_key=scope.key if scope else None,
        )
        rows, total = self.repo.list_closures(filters, page=page, page_size=page_size)
        return ClosurePage(
            items=list(rows),
            page=page,
            page_size=page_size,
            total_pages=max(1, math.ceil(total / page_size)),
            total_items=total,
        )

    # -- submission ------------------------------------------------------

    def preview(self, submission: ClosureSubmission, actor: Actor) -> ReconciliationResult:
        self.access.ensure_can_submit(submission.scope, actor)
        return self._prepare(submission, lock=False).result

    def submit(self, submission: ClosureSubmission, actor: Actor, *, trace_id: str | None = None) -> CashClosure:
        scope = submission.scope
        self.access.ensure_can_submit(scope, actor)
        try:
            prepared = self._prepare(submission, lock=True)
            result = prepared.result
            if result.is_significant and not submission.confirm_discrepancy:
                raise AppError(ErrorCatalog.DISCREPANCY_CONFIRMATION_REQUIRED, details=reconciliation_details(result))
            closure = self._persist(submission, prepared, actor)
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            pending = self.repo.find_pending(scope.key)
            if pending is not None:
                raise AppError(
                    ErrorCatalog.CLOSURE_ALREADY_PENDING,
                    details={"closure_id": str(pending.id), "closure_number": pending.closure_number},
                ) from exc
            raise
        except AppError:
            self.db.rollback()
            raise

        metrics.record_closure_submitted(scope_type=scope.type.value, significant=result.is_significant)
        log_event(
            logger,
            "cash_closure.submitted",
            closure_id=str(closure.id),
            closure_number=closure.closure_number,
            scope=scope.key,
            difference=result.difference,
            is_significant=result.is_significant,
            trace_id=trace_id,
        )
        AuditService(self.db).record_closure_event(
            actor,
            closure,
            action="cash_closure.submit",
            before=None,
            after={
                "status": closure.status,
                "closure_number": closure.closure_number,
                "scope": scope.key,
                "theoretical_total": result.theoretical_total,
                "actual_total": result.actual_total,
                "difference": result.difference,
                "is_significant": result.is_significant,
            },
            metadata={"discrepancy_confirmed": closure.discrepancy_confirmed},
            trace_id=trace_id,
        )
        return closure

    def _prepare(self, submission: ClosureSubmission, *, lock: bool) -> PreparedClosure:
        scope = submission.scope
        period = validate_period(submission.start, submission.end, self.clock)
        self._validate_snapshot(period, submission.snapshot)
        self._ensure_stock_consistent(scope)
        summary = self.aggregator.compute_theoretical(scope, period.start, period.end)
        self._match_ledger(submission.snapshot, summary)

        pending = self.repo.find_pending(scope.key, for_update=lock)
        if pending is not None:
            raise AppError(
                ErrorCatalog.CLOSURE_ALREADY_PENDING,
                details={"closure_id": str(pending.id), "closure_number": pending.closure_number},
            )
        last_end = self.periods.last_approved_end(scope)
        if last_end is not None and period.start < last_end:
            raise AppError(
                ErrorCatalog.INVALID_PERIOD,
                details={
                    "message": "period overlaps the last approved closure",
                    "reason_code": "OVERLAPS_APPROVED_CLOSURE",
                    "last_approved_end": last_end,
                },
            )

        counter = self._count(submission.denominations)
        result = reconcile(
            summary,
            submission.actuals,
            cash_total=counter.cash_total() if counter.has_count else None,
            policy=self.policy,
        )
        return PreparedClosure(period=period, summary=summary, counter=counter, result=result)

    def _validate_snapshot(self, period: Period, snapshot: TheoreticalSummary) -> None:
        problems = []
        if snapshot.period.start != period.start or snapshot.period.end != period.end:
            problems.append("snapshot period does not match the closure period")
        if to_money(snapshot.total_sales - snapshot.total_returns) != to_money(snapshot.net_total):
            problems.append("net_total must equal total_sales - total_returns")
        breakdown_total = money_sum(line.theoretical_amount for line in snapshot.breakdown)
        if abs(breakdown_total - to_money(snapshot.net_total)) > CENT:
            problems.append("payment breakdown does not add up to net_total")
        if not snapshot.breakdown:
            problems.append("at least one payment method is required")
        if problems:
            raise AppError(ErrorCatalog.INVALID_THEORETICAL_SNAPSHOT, details={"problems": problems})

    def _match_ledger(self, snapshot: TheoreticalSummary, summary: TheoreticalSummary) -> None:
        """Reject a snapshot that no longer matches what the ledger says for the period."""
        mismatches = {}
        for field in ("total_sales", "total_returns", "net_total"):
            submitted, computed = to_money(getattr(snapshot, field)), getattr(summary, field)
            if submitted != computed:
                mismatches[field] = {"submitted": submitted, "ledger": computed}
        if snapshot.total_transactions != summary.total_transactions:
            mismatches["total_transactions"] = {
                "submitted": snapshot.total_transactions,
                "ledger": summary.total_transactions,
            }
        submitted_lines = {line.payment_method_id: to_money(line.theoretical_amount) for line in snapshot.breakdown}
        ledger_lines = {line.payment_method_id: line.theoretical_amount for line in summary.breakdown}
        for method_id in sorted(set(submitted_lines) | set(ledger_lines)):
            if submitted_lines.get(method_id) != ledger_lines.get(method_id):
                mismatches[f"breakdown.{method_id}"] = {
                    "submitted": submitted_lines.get(method_id),
                    "ledger": ledger_lines.get(method_id),
                }
        if mismatches:
            raise AppError(
                ErrorCatalog.INVALID_THEORETICAL_SNAPSHOT,
                details={"problems": ["snapshot does not match the sales ledger"], "mismatches": mismatches},
            )

    def _count(self, denominations) -> DenominationCounter:
        counter = self.new_counter()
        seen = set()
        for counted in denominations:
            index = counter.index_of(counted.face_value)
            if index in seen:
                raise AppError(
                    ErrorCatalog.INVALID_DENOMINATION_QUANTITY,
                    details={"face_value": str(counted.face_value), "message": "duplicate face value"},
                )
            seen.add(index)
            counter.update_quantity(index, counted.quantity)
        return counter

    def _persist(self, submission: ClosureSubmission, prepared: PreparedClosure, actor: Actor) -> CashClosure:
        scope = submission.scope
        summary = prepared.summary
        result = prepared.result
        now = self.clock.utcnow()
        closure = CashClosure(
            id=uuid.uuid4(),
            closure_number=self.repo.next_closure_number(),
            scope_type=scope.type.value,
            scope_cashier_id=scope.cashier_id,
            scope_key=scope.key,
            start_date=self.clock.to_storage(prepared.period.start),
            end_date=self.clock.to_storage(prepared.period.end),
            cashier_name=(submission.cashier_name or "").strip() or actor.display_name,
            cashier_id=actor.user_id,
            theoretical_total=to_money(summary.net_total),
            theoretical_sales=to_money(summary.total_sales),
            theoretical_returns=to_money(summary.total_returns),
            total_transactions=summary.total_transactions,
            total_customers=summary.total_customers,
            average_ticket=to_money(summary.average_ticket),
            actual_total=result.actual_total,
            difference=result.difference,
            difference_percentage=result.difference_percentage,
            is_significant=result.is_significant,
            discrepancy_confirmed=bool(result.is_significant and submission.confirm_discrepancy),
            notes=(submission.notes or "").strip() or None,
            status=ClosureStatus.PENDING.value,
            created_at=now,
            updated_at=now,
        )
        payments = [
            CashClosurePayment(
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
        ]
        denominations = [
            CashClosureDenomination(
                face_value=line.face_value,
                kind=line.kind.value,
                quantity=line.quantity,
                subtotal=line.subtotal,
            )
            for line in prepared.counter.counted_lines()
        ]
        self.repo.add(closure, payments=payments, denominations=denominations)
        return closure

    # -- review ----------------------------------------------------------

    def approve(
        self,
        closure_id,
        actor: Actor,
        *,
        supervisor_name: str | None = None,
        trace_id: str | None = None,
    ) -> CashClosure:
        self.access.ensure_can_review(actor)
        now = self.clock.utcnow()
        closure = self._transition(
            closure_id,
            ClosureStatus.APPROVED,
            {
                "supervisor_name": (supervisor_name or "").strip() or actor.display_name,
                "supervisor_validated_at": now,
                "updated_at": now,
            },
        )
        self._after_transition(actor, closure, action="cash_closure.approve", trace_id=trace_id)
        return closure

    def reject(self, closure_id, actor: Actor, *, reason: str | None, trace_id: str | None = None) -> CashClosure:
        self.access.ensure_can_review(actor)
        reason = (reason or "").strip()
        if not reason:
            raise AppError(ErrorCatalog.MISSING_REJECTION_REASON)
        now = self.clock.utcnow()
        closure = self._transition(
            closure_id,
            ClosureStatus.REJECTED,
            {
                "rejection_reason": reason,
                "supervisor_name": actor.display_name,
                "supervisor_validated_at": now,
                "updated_at": now,
            },
        )
        self._after_transition(actor, closure, action="cash_closure.reject", trace_id=trace_id)
        return closure

    def _transition(self, closure_id, target: ClosureStatus, values: dict) -> CashClosure:
        closure = self._load(closure_id)
        if closure.status != ClosureStatus.PENDING.value:
            raise AppError(
                ErrorCatalog.INVALID_TRANSITION,
                details={"closure_id": str(closure.id), "status": closure.status, "target": target.value},
            )
        updated = self.repo.transition_from_pending(closure.id, {"status": target.value, **values})
        if updated == 0:
            # another reviewer finished the transition first
            self.db.rollback()
            self.db.refresh(closure)
            raise AppError(
                ErrorCatalog.INVALID_TRANSITION,
                details={"closure_id": str(closure.id), "status": closure.status, "target": target.value},
            )
        self.db.commit()
        self.db.refresh(closure)
        return closure

    def _after_transition(self, actor: Actor, closure: CashClosure, *, action: str, trace_id: str | None) -> None:
        metrics.record_closure_transition(closure.status)
        log_event(
            logger,
            action,
            closure_id=str(closure.id),
            closure_number=closure.closure_number,
            status=closure.status,
            reviewer=actor.username,
            trace_id=trace_id,
        )
        AuditService(self.db).record_closure_event(
            actor,
            closure,
            action=action,
            before={"status": ClosureStatus.PENDING.value},
            after={
                "status": closure.status,
                "supervisor_name": closure.supervisor_name,
                "rejection_reason": closure.rejection_reason,
            },
            metadata={"closure_number": closure.closure_number},
            trace_id=trace_id,
        )

    # -- helpers ---------------------------------------------------------

    def _load(self, closure_id) -> CashClosure:
        try:
            parsed = closure_id if isinstance(closure_id, uuid.UUID) else uuid.UUID(str(closure_id))
        except ValueError as exc:
            raise AppError(ErrorCatalog.CLOSURE_NOT_FOUND, details={"closure_id": str(closure_id)}) from exc
        closure = self.repo.get_by_id(parsed)
        if closure is None:
            raise AppError(ErrorCatalog.CLOSURE_NOT_FOUND, details={"closure_id": str(closure_id)})
        return closure

    def _ensure_stock_consistent(self, scope: Scope) -> None:
        if self.require_stock_consistency:
            self.stock.ensure_consistent(scope)
