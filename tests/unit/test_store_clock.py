from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from app.cashclose.core.clock import StoreClock, resolve_timezone

TZ = ZoneInfo("America/Guatemala")


def test_naive_input_is_store_local():
    clock = StoreClock(TZ)
    assert clock.localize(datetime(2026, 3, 10, 8, 0)) == datetime(2026, 3, 10, 8, 0, tzinfo=TZ)


def test_storage_round_trip_is_utc_naive():
    clock = StoreClock(TZ)
    local = datetime(2026, 3, 10, 23, 59, 59, tzinfo=TZ)

    stored = clock.to_storage(local)

    assert stored == datetime(2026, 3, 11, 5, 59, 59)
    assert stored.tzinfo is None
    assert clock.from_storage(stored) == local
    assert clock.from_storage(None) is None


def test_day_bounds_follow_store_zone():
    clock = StoreClock(TZ, now_fn=lambda: datetime(2026, 3, 11, 2, 0, tzinfo=timezone.utc))

    assert clock.now().day == 10
    assert clock.start_of_day() == datetime(2026, 3, 10, tzinfo=TZ)
    assert clock.end_of_day() == datetime(2026, 3, 10, 23, 59, 59, tzinfo=TZ)


def test_unknown_timezone_is_rejected():
    with pytest.raises(ValueError):
        resolve_timezone("Mars/Olympus_Mons")
