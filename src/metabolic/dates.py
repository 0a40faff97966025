"""Calendar-day normalization.

Every event entry point accepts a date key ("2026-01-15"), an ISO
timestamp ("2026-01-15T18:30:00Z") or a date/datetime object. All of them
are reduced to the user's local calendar day before anything else runs.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, tzinfo
from typing import Iterator, Union
from zoneinfo import ZoneInfo

DateLike = Union[str, date, datetime]


def get_zone(name: str) -> tzinfo:
    """Return the tzinfo for an IANA zone name."""
    return ZoneInfo(name)


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO 8601 timestamp, accepting a trailing 'Z' for UTC."""
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


def to_local_date(value: DateLike, tz: tzinfo) -> date:
    """
    Normalize a date-ish value to a calendar date in ``tz``.

    Naive datetimes are taken to already be local; aware ones are
    converted. Date-only strings and date objects pass through unchanged.

    Raises:
        ValueError: if a string cannot be parsed
        TypeError: for unsupported input types
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.date()
        return value.astimezone(tz).date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if len(text) == 10:
            return date.fromisoformat(text)
        return to_local_date(parse_timestamp(text), tz)
    raise TypeError(f"Expected str, date or datetime, got {type(value).__name__}")


def to_aware(value: datetime, tz: tzinfo) -> datetime:
    """Attach ``tz`` to naive datetimes; leave aware ones alone."""
    if value.tzinfo is None:
        return value.replace(tzinfo=tz)
    return value


def day_bounds(day: date, tz: tzinfo) -> tuple[datetime, datetime]:
    """Return the first and last instant of ``day`` in ``tz`` (both inclusive)."""
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz) - timedelta(
        microseconds=1
    )
    return start, end


def range_bounds(start_day: date, end_day: date, tz: tzinfo) -> tuple[datetime, datetime]:
    """Return the inclusive instant bounds covering ``start_day`` .. ``end_day``."""
    return day_bounds(start_day, tz)[0], day_bounds(end_day, tz)[1]


def date_range(start: date, end: date) -> Iterator[date]:
    """Yield every date from ``start`` to ``end`` inclusive."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def format_date_key(day: date) -> str:
    """Format a date as YYYY-MM-DD."""
    return day.isoformat()
