"""Time helpers with timezone-aware UTC defaults."""

from __future__ import annotations

import calendar
import time
from datetime import UTC, datetime

from dateutil import parser as date_parser


def utc_now() -> datetime:
    """Return timezone-aware current UTC datetime."""
    return datetime.now(UTC)


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def from_struct_time(value: time.struct_time) -> datetime:
    """Convert a UTC struct_time (as produced by feedparser) to a datetime."""
    return datetime.fromtimestamp(calendar.timegm(value), tz=UTC)


def parse_timestamp(raw: str | None) -> datetime | None:
    """Parse a loosely formatted timestamp string, returning None when unparseable."""
    if not raw or not raw.strip():
        return None
    try:
        return ensure_utc(date_parser.parse(raw.strip()))
    except (ValueError, OverflowError):
        return None


def isoformat_utc(value: datetime) -> str:
    """Render a datetime as an ISO-8601 UTC string with a trailing Z."""
    return ensure_utc(value).isoformat().replace("+00:00", "Z")
