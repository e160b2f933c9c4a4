from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Optional


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


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


# Business dates are fixed-width "YYYY-MM-DD" strings, so plain string
# comparison orders them chronologically.

def parse_business_date(value: Optional[str]) -> Optional[str]:
    """
    Validate a "YYYY-MM-DD" business date and return it normalized.

    Raises ValueError for anything that is not a real calendar date.
    """
    if value is None:
        return None
    s = str(value).strip()
    if not s:
        return None
    if len(s) != 10:
        raise ValueError(f"Invalid date (expected YYYY-MM-DD): {s}")
    return date.fromisoformat(s).isoformat()


def as_utc_naive(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Canonical UTC-naive form of a timestamp read back from the database.

    Timezone-aware columns come back aware on PostgreSQL and naive on SQLite.
    """
    if dt is None or dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def business_date(dt: Optional[datetime]) -> Optional[str]:
    """UTC calendar day of a timestamp as "YYYY-MM-DD"."""
    if dt is None:
        return None
    return as_utc_naive(dt).strftime("%Y-%m-%d")


def today_iso(now: Optional[datetime] = None) -> str:
    return business_date(now or utcnow())


def current_month_iso(now: Optional[datetime] = None) -> str:
    return (now or utcnow()).strftime("%Y-%m")


def last_n_days(n: int, now: Optional[datetime] = None) -> list[str]:
    """The last n calendar days as "YYYY-MM-DD", oldest first, ending today."""
    today = (now or utcnow()).date()
    return [(today - timedelta(days=i)).isoformat() for i in range(n - 1, -1, -1)]


def in_date_range(value: Optional[str], start: Optional[str], end: Optional[str]) -> bool:
    """
    Inclusive [start, end] check on the "YYYY-MM-DD" prefix of value.

    Missing bounds are open. A missing value only matches an unbounded range.
    """
    if not start and not end:
        return True
    if not value:
        return False
    day = value[:10]
    if start and day < start:
        return False
    if end and day > end:
        return False
    return True
