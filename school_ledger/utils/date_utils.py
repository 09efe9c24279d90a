"""Date manipulation utilities"""

from datetime import date, datetime, timezone


def utcnow() -> datetime:
    """Naive UTC timestamp, matching how the store persists DateTime columns"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def days_between(start: date, end: date) -> int:
    """Whole days from start to end (negative when end precedes start)"""
    return (end - start).days


def as_date(value: date | datetime) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value
