from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Optional


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_utc_naive(dt: datetime) -> datetime:
    """Aware datetimes are converted to UTC; naive ones are taken as UTC."""
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 datetime string and normalize to UTC-naive datetime.

    - None / "" -> None
    - "YYYY-MM-DD" is midnight UTC of that day
    - "...Z" or "...+/-HH:MM" is converted to UTC and tzinfo is stripped
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None

    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    return as_utc_naive(datetime.fromisoformat(s))


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")


def window_start(days: int, now: Optional[datetime] = None) -> datetime:
    """Earliest timestamp still inside a trailing window of `days` days."""
    return (now or utcnow()) - timedelta(days=days)


def is_within_window(created_at: datetime, days: int, now: Optional[datetime] = None) -> bool:
    """
    True when created_at is strictly less than `days` days before now.

    An invoice created exactly `days` days ago is outside the window.
    """
    return as_utc_naive(created_at) > window_start(days, now)


def day_bounds(day: date) -> tuple[datetime, datetime]:
    """Half-open [start, end) UTC bounds of a calendar day."""
    start = datetime(day.year, day.month, day.day)
    return start, start + timedelta(days=1)
