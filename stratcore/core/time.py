"""stratcore.core.time

This module is the *only* time helper surface in the codebase.

Business days are Monday to Friday. Exchange holidays are not modelled.
"""

from __future__ import annotations

from collections.abc import Iterator
from datetime import UTC, date, datetime, time, timedelta


def utc_now() -> datetime:
    """Return an aware UTC datetime."""

    return datetime.now(tz=UTC)


def parse_dt(value: str) -> datetime:
    """Parse an ISO-8601 datetime string into an aware UTC datetime.

    Accepts:
    - `Z` suffix
    - explicit offsets
    - naive timestamps (assumed UTC)

    Raises:
        ValueError: if parsing fails.
    """

    v = value.strip()
    if v.endswith("Z"):
        v = v[:-1] + "+00:00"

    dt = datetime.fromisoformat(v)
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def ensure_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def start_of_day(d: date | datetime) -> datetime:
    day = d.date() if isinstance(d, datetime) else d
    return datetime.combine(day, time.min, tzinfo=UTC)


def is_business_day(d: date) -> bool:
    return d.weekday() < 5


def business_days(start: date, end: date) -> Iterator[date]:
    """Yield business days in ``[start, end]``, inclusive."""

    cur = start
    while cur <= end:
        if is_business_day(cur):
            yield cur
        cur += timedelta(days=1)


def business_days_ago(days: int, *, now: datetime | None = None) -> datetime:
    """Midnight (UTC) of the date ``days`` business days before ``now``."""

    d = ensure_utc(now or utc_now()).date()
    counted = 0
    while counted < days:
        d -= timedelta(days=1)
        if is_business_day(d):
            counted += 1
    return start_of_day(d)


def add_business_days(d: date, days: int) -> date:
    out = d
    counted = 0
    while counted < days:
        out += timedelta(days=1)
        if is_business_day(out):
            counted += 1
    return out
