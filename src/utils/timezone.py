"""
Timestamp utilities for the learning ledger.
Every stored timestamp is UTC; week buckets start on Monday 00:00 UTC,
the same boundary PostgreSQL DATE_TRUNC('week', ...) uses.
"""
from datetime import date, datetime, timedelta, timezone
from typing import Optional


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize a datetime to aware UTC.
    Naive values are treated as UTC (SQLite drops tzinfo on round-trip).
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def week_start(value: datetime) -> date:
    """Monday of the UTC week containing value."""
    day = ensure_utc(value).date()
    return day - timedelta(days=day.weekday())


def whole_days_between(start: datetime, end: datetime) -> int:
    """Full days elapsed from start to end; never negative."""
    delta = ensure_utc(end) - ensure_utc(start)
    return max(0, delta.days)
