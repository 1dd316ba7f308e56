from __future__ import annotations

from datetime import datetime

from app.cashclose.core.clock import StoreClock
from app.cashclose.core.scope import Scope
from app.cashclose.repos.closures import CashClosureRepository
from app.cashclose.services.ledger import Period


class PeriodResolver:
    """Chains successive approved closures of one scope without gap or overlap."""

    def __init__(self, repo: CashClosureRepository, clock: StoreClock | None = None):
        self.repo = repo
        self.clock = clock or StoreClock()

    def last_approved_end(self, scope: Scope) -> datetime | None:
        closure = self.repo.last_approved(scope.key)
        if closure is None:
            return None
        return self.clock.from_storage(closure.end_date)

    def suggest_period(self, scope: Scope, now: datetime | None = None) -> Period:
        reference = self.clock.localize(now) if now is not None else self.clock.now()
        end = self.clock.end_of_day(reference)
        start = self.last_approved_end(scope) or self.clock.start_of_day(reference)
        return Period(start=start, end=end)
