from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func, select, update

from app.cashclose.core.scope import ClosureStatus
from app.cashclose.db.models import CashClosure, ClosureSequence
from app.cashclose.db.seed import CLOSURE_SEQUENCE


@dataclass(frozen=True)
class ClosureQueryFilters:
    status: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    scope_key: str | None = None


class CashClosureRepository:
    def __init__(self, db):
        self.db = db

    def get_by_id(self, closure_id) -> CashClosure | None:
        return self.db.execute(select(CashClosure).where(CashClosure.id == closure_id)).scalars().first()

    def find_pending(self, scope_key: str, *, for_update: bool = False) -> CashClosure | None:
        query = select(CashClosure).where(
            CashClosure.scope_key == scope_key,
            CashClosure.status == ClosureStatus.PENDING.value,
        )
        if for_update:
            query = query.with_for_update()
        return self.db.execute(query).scalars().first()

    def last_approved(self, scope_key: str) -> CashClosure | None:
        query = (
            select(CashClosure)
            .where(
                CashClosure.scope_key == scope_key,
                CashClosure.status == ClosureStatus.APPROVED.value,
            )
            .order_by(CashClosure.end_date.desc(), CashClosure.closure_number.desc())
            .limit(1)
        )
        return self.db.execute(query).scalars().first()

    def next_closure_number(self) -> int:
        # the UPDATE holds the sequence row lock until the submission commits
        result = self.db.execute(
            update(ClosureSequence)
            .where(ClosureSequence.name == CLOSURE_SEQUENCE)
            .values(last_value=ClosureSequence.last_value + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            self.db.add(ClosureSequence(name=CLOSURE_SEQUENCE, last_value=1))
            self.db.flush()
            return 1
        return self.db.execute(
            select(ClosureSequence.last_value).where(ClosureSequence.name == CLOSURE_SEQUENCE)
        ).scalar_one()

    def add(self, closure: CashClosure, *, payments: list, denominations: list) -> CashClosure:
        self.db.add(closure)
        self.db.flush()
        for row in payments:
            row.closure_id = closure.id
            self.db.add(row)
        for row in denominations:
            row.closure_id = closure.id
            self.db.add(row)
        self.db.flush()
        return closure

    def transition_from_pending(self, closure_id, values: dict) -> int:
        result = self.db.execute(
            update(CashClosure)
            .where(
                CashClosure.id == closure_id,
                CashClosure.status == ClosureStatus.PENDING.value,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def list_closures(
        self,
        filters: ClosureQueryFilters,
        *,
        page: int,
        page_size: int,
    ) -> tuple[list[CashClosure], int]:
        query = select(CashClosure)
        count_query = select(func.count()).select_from(CashClosure)
        conditions = []
        if filters.status:
            conditions.append(CashClosure.status == filters.status)
        if filters.start_date:
            conditions.append(CashClosure.start_date >= filters.start_date)
        if filters.end_date:
            conditions.append(CashClosure.end_date <= filters.end_date)
        if filters.scope_key:
            conditions.append(CashClosure.scope_key == filters.scope_key)
        if conditions:
            query = query.where(*conditions)
            count_query = count_query.where(*conditions)

        total = self.db.execute(count_query).scalar_one()
        rows = (
            self.db.execute(
                query.order_by(CashClosure.closure_number.desc()).offset((page - 1) * page_size).limit(page_size)
            )
            .scalars()
            .all()
        )
        return rows, total
