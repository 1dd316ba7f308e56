from datetime import datetime
from types import SimpleNamespace
from zoneinfo import ZoneInfo

from app.cashclose.core.clock import StoreClock
from app.cashclose.core.scope import Scope
from app.cashclose.services.periods import PeriodResolver

TZ = ZoneInfo("America/Guatemala")


class FakeClosureRepo:
    def __init__(self, approved=None):
        self.approved = approved or {}
        self.lookups = []

    def last_approved(self, scope_key):
        self.lookups.append(scope_key)
        return self.approved.get(scope_key)


def _clock() -> StoreClock:
    return StoreClock(TZ, now_fn=lambda: datetime(2026, 3, 12, 15, 30))


def test_first_closure_starts_at_local_midnight():
    resolver = PeriodResolver(FakeClosureRepo(), _clock())

    period = resolver.suggest_period(Scope.cashier("cashier-1"))

    assert period.start == datetime(2026, 3, 12, tzinfo=TZ)
    assert period.end == datetime(2026, 3, 12, 23, 59, 59, tzinfo=TZ)


def test_next_period_starts_where_last_approved_ended():
    # stored as naive UTC: 2026-03-11 23:59:59 local
    closure = SimpleNamespace(end_date=datetime(2026, 3, 12, 5, 59, 59))
    repo = FakeClosureRepo({"cashier:cashier-1": closure})
    resolver = PeriodResolver(repo, _clock())

    period = resolver.suggest_period(Scope.cashier("cashier-1"))

    assert period.start == datetime(2026, 3, 11, 23, 59, 59, tzinfo=TZ)
    assert period.end == datetime(2026, 3, 12, 23, 59, 59, tzinfo=TZ)
    assert repo.lookups == ["cashier:cashier-1"]


def test_scopes_chain_independently():
    closure = SimpleNamespace(end_date=datetime(2026, 3, 12, 5, 59, 59))
    resolver = PeriodResolver(FakeClosureRepo({"store": closure}), _clock())

    assert resolver.last_approved_end(Scope.cashier("cashier-1")) is None
    assert resolver.last_approved_end(Scope.store_wide()) == datetime(2026, 3, 11, 23, 59, 59, tzinfo=TZ)


def test_explicit_reference_time_is_honoured():
    resolver = PeriodResolver(FakeClosureRepo(), _clock())

    period = resolver.suggest_period(Scope.store_wide(), now=datetime(2026, 1, 5, 8, 0))

    assert period.start == datetime(2026, 1, 5, tzinfo=TZ)
