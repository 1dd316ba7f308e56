from __future__ import annotations

from datetime import datetime, time, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from app.cashclose.core.config import settings

END_OF_DAY = time(23, 59, 59)


def resolve_timezone(timezone_name: str | None = None) -> ZoneInfo:
    name = timezone_name or settings.STORE_TIMEZONE
    try:
        return ZoneInfo(name)
    except ZoneInfoNotFoundError as exc:
        raise ValueError(f"unknown store timezone: {name}") from exc


class StoreClock:
    """Wall clock pinned to the store's fixed time zone.

    Persisted timestamps are naive UTC; everything handed to callers is
    aware and expressed in the store zone.
    """

    def __init__(self, tz: ZoneInfo | None = None, now_fn=None) -> None:
        self.tz = tz or resolve_timezone()
        self._now_fn = now_fn

    def now(self) -> datetime:
        if self._now_fn is not None:
            return self.localize(self._now_fn())
        return datetime.now(self.tz)

    def localize(self, value: datetime) -> datetime:
        # naive input is read as store-local wall time
        if value.tzinfo is None:
            return value.replace(tzinfo=self.tz)
        return value.astimezone(self.tz)

    def start_of_day(self, value: datetime | None = None) -> datetime:
        local = self.localize(value) if value is not None else self.now()
        return datetime.combine(local.date(), time.min, tzinfo=self.tz)

    def end_of_day(self, value: datetime | None = None) -> datetime:
        local = self.localize(value) if value is not None else self.now()
        return datetime.combine(local.date(), END_OF_DAY, tzinfo=self.tz)

    def to_storage(self, value: datetime) -> datetime:
        return self.localize(value).astimezone(timezone.utc).replace(tzinfo=None)

    def from_storage(self, value: datetime | None) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(self.tz)

    def utcnow(self) -> datetime:
        return self.to_storage(self.now())
