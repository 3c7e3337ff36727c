"""Time utilities (UTC, millisecond epoch)."""

import time
from datetime import date, datetime, timedelta, timezone
from typing import Optional

from app.domain.errors import ValidationError

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_DAY_MS = 86_400_000


def now_ms() -> int:
    """Current time as integer milliseconds since epoch."""
    return time.time_ns() // 1_000_000


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def ms_to_datetime(ms: int) -> datetime:
    """
    Convert epoch milliseconds to an aware UTC datetime.

    Integer arithmetic keeps the millisecond part exact.
    """
    return _EPOCH + timedelta(milliseconds=ms)


def ms_to_iso(ms: int) -> str:
    """Epoch milliseconds as ISO-8601 with millisecond precision and trailing Z."""
    return ms_to_datetime(ms).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def ms_to_date_str(ms: int) -> str:
    return ms_to_datetime(ms).date().isoformat()


def datetime_to_iso(dt: datetime) -> str:
    """Aware or naive-UTC datetime as ISO string with trailing Z."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def parse_date_bounds(
    start_date: Optional[str],
    end_date: Optional[str],
) -> tuple[Optional[int], Optional[int]]:
    """
    Convert YYYY-MM-DD bounds into inclusive epoch-millisecond bounds.

    The end bound covers the whole day (through 23:59:59.999 UTC).
    """
    start_ms = _parse_day(start_date, "startDate")
    end_ms = _parse_day(end_date, "endDate")
    if end_ms is not None:
        end_ms += _DAY_MS - 1
    return start_ms, end_ms


def _parse_day(value: Optional[str], field: str) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        day = date.fromisoformat(value)
    except ValueError:
        raise ValidationError(f"{field} must be a date in YYYY-MM-DD format")
    start = datetime(day.year, day.month, day.day, tzinfo=timezone.utc)
    return (start - _EPOCH) // timedelta(milliseconds=1)
