"""Calendar-day math for progress rollover.

Every comparison happens in one reference zone (UTC unless PROGRESS_TIMEZONE
says otherwise); a day is the 24h window starting at local midnight there.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Optional, Union
from zoneinfo import ZoneInfo


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def resolve_zone(zone: Union[str, tzinfo, None]) -> tzinfo:
    if zone is None:
        return timezone.utc
    if isinstance(zone, str):
        if zone.upper() == "UTC":
            return timezone.utc
        return ZoneInfo(zone)
    return zone


class DayCalendar:
    def __init__(self, zone: Union[str, tzinfo, None] = None):
        self.zone = resolve_zone(zone)

    def day_of(self, moment: datetime) -> date:
        aware = moment if moment.tzinfo else moment.replace(tzinfo=timezone.utc)
        return aware.astimezone(self.zone).date()

    def same_day(self, a: datetime, b: datetime) -> bool:
        return self.day_of(a) == self.day_of(b)

    def is_day_before(self, a: datetime, b: datetime) -> bool:
        """True when `a` falls on the calendar day immediately preceding `b`'s."""
        return self.day_of(a) == self.day_of(b) - timedelta(days=1)

    def days_between(self, a: datetime, b: datetime) -> int:
        """Whole calendar days from `a`'s day to `b`'s day (negative if `b` is earlier)."""
        return (self.day_of(b) - self.day_of(a)).days

    def is_earlier_day(self, a: Optional[datetime], b: datetime) -> bool:
        """True when `a` is missing or its day is strictly before `b`'s."""
        if a is None:
            return True
        return self.day_of(a) < self.day_of(b)
