"""
Local Calendar Module

Every due date and collection date in the ledger is a plain calendar date in
the cooperative's configured timezone. Timestamps are converted to that zone
once, here at the boundary, and truncated to a date; the rest of the code
compares ``datetime.date`` values only.
"""

from datetime import date, datetime, timezone
from functools import lru_cache
from typing import Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
import calendar

from .config import get_config
from .errors import ValidationError

DateLike = Union[date, datetime, str]


@lru_cache(maxsize=8)
def _zone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except ZoneInfoNotFoundError:
        raise ValueError(f"Unknown timezone: {name}")


def local_zone() -> ZoneInfo:
    """The configured cooperative timezone"""
    return _zone(get_config().timezone)


def to_local_date(value: DateLike, tz: Optional[ZoneInfo] = None) -> date:
    """
    Resolve a date, datetime or ISO string to a local calendar date.

    Aware datetimes are converted to the local zone before truncation, so
    ``2024-01-01T20:00:00Z`` is ``2024-01-02`` in Asia/Dhaka (UTC+6). Naive
    datetimes are taken as local wall-clock time. Strings may be a bare
    ``YYYY-MM-DD`` or a full ISO 8601 timestamp (a trailing ``Z`` is UTC).
    """
    tz = tz or local_zone()
    if isinstance(value, str):
        value = parse_iso(value)
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.date()
        return value.astimezone(tz).date()
    if isinstance(value, date):
        return value
    raise ValidationError(f"Expected a date, got {value!r}")


def parse_iso(text: str) -> Union[date, datetime]:
    text = text.strip()
    try:
        if len(text) == 10:
            return date.fromisoformat(text)
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        return datetime.fromisoformat(text)
    except ValueError:
        raise ValidationError(f"Invalid date {text!r}, expected YYYY-MM-DD")


def parse_date(value: Optional[DateLike], default_today: bool = True) -> Optional[date]:
    """Parse an optional boundary date, falling back to today's local date"""
    if value is None or value == "":
        return today_local() if default_today else None
    return to_local_date(value)


def today_local(now: Optional[datetime] = None) -> date:
    """Today's calendar date in the cooperative's timezone"""
    now = now or datetime.now(timezone.utc)
    return to_local_date(now)


def add_months(start_date: date, months: int) -> date:
    """Add calendar months, clamping to the last day of shorter months"""
    month = start_date.month - 1 + months
    year = start_date.year + month // 12
    month = month % 12 + 1
    day = min(start_date.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def months_between(start_date: date, end_date: date) -> int:
    """Whole calendar-month difference, ignoring the day of month"""
    return (end_date.year - start_date.year) * 12 + (end_date.month - start_date.month)
