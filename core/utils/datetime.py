"""Datetime utilities for common operations."""

from datetime import datetime, date, timedelta, timezone
from typing import Optional


HOURS_PER_DAY = 24


def now() -> datetime:
    """Get current datetime in UTC."""
    return datetime.now(timezone.utc)


def ensure_aware(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Attach UTC to naive datetimes.

    Some database backends (SQLite in particular) return naive values for
    timezone-aware columns; everything stored by this service is UTC.

    Args:
        dt: Datetime that may be naive

    Returns:
        Timezone-aware datetime, or None
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def start_of_day(dt: datetime | date) -> datetime:
    """
    Get start of day (00:00:00) in UTC.

    Args:
        dt: Datetime or date

    Returns:
        Datetime at start of day
    """
    if isinstance(dt, datetime):
        dt = ensure_aware(dt).astimezone(timezone.utc).date()
    return datetime.combine(dt, datetime.min.time(), tzinfo=timezone.utc)


def start_of_week(dt: datetime | date) -> datetime:
    """Start of the week containing ``dt``, weeks starting on Sunday."""
    day = start_of_day(dt)
    # weekday(): Monday=0 .. Sunday=6
    return day - timedelta(days=(day.weekday() + 1) % 7)


def hours_between(start: datetime, end: datetime) -> float:
    """
    Calculate hours between two datetimes.

    Args:
        start: Start datetime
        end: End datetime

    Returns:
        Number of hours (can be fractional)
    """
    delta = ensure_aware(end) - ensure_aware(start)
    return delta.total_seconds() / 3600


def days_between(start: datetime, end: datetime) -> float:
    """Fractional days between two datetimes."""
    return hours_between(start, end) / HOURS_PER_DAY


def whole_days_between(start: datetime, end: datetime) -> int:
    """Whole days elapsed between two datetimes, never negative."""
    return max(0, int(days_between(start, end)))
