from __future__ import annotations

import calendar
from datetime import date, datetime, time, timedelta
from typing import Callable

from ..core.constants import END_OF_DAY

Clock = Callable[[], datetime]


def parse_iso_date(value: str) -> date:
    """Parse YYYY-MM-DD string into date."""
    return datetime.strptime(value, "%Y-%m-%d").date()


def parse_iso_datetime(value: str) -> datetime:
    """Parse an ISO-8601 datetime into the naive local time the store uses.

    A trailing ``Z`` or an explicit offset is converted to local time first.
    """
    value = value.strip()
    if value.endswith(("Z", "z")):
        value = value[:-1] + "+00:00"
    return to_local_naive(datetime.fromisoformat(value))


def to_local_naive(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


def now_local() -> datetime:
    """Current local time.

    Note: Wrapped so services can take it as an injectable clock.
    """
    return datetime.now()


def start_of_day(day: date) -> datetime:
    return datetime.combine(day, time.min)


def end_of_day(day: date) -> datetime:
    """Inclusive upper bound for a calendar day (23:59:59.999), not next midnight."""
    return datetime.combine(day, END_OF_DAY)


def period_bounds(period: str, today: date) -> tuple[date, date]:
    """First and last calendar day of the today/week/month period containing ``today``.

    Weeks start on Sunday.
    """
    if period == "today":
        return today, today
    if period == "week":
        # Python weekday(): Monday=0 .. Sunday=6
        first = today - timedelta(days=(today.weekday() + 1) % 7)
        return first, first + timedelta(days=6)
    if period == "month":
        last_day = calendar.monthrange(today.year, today.month)[1]
        return today.replace(day=1), today.replace(day=last_day)
    raise ValueError(f"Unsupported period: {period!r}")


def seconds_between(start: datetime, end: datetime) -> int:
    """Whole seconds from ``start`` to ``end``, floored and never negative."""
    return max(0, int((end - start).total_seconds()))


def format_duration(seconds: int) -> str:
    seconds = max(0, int(seconds))
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"
