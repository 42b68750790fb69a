"""UTC datetime utilities."""

from datetime import date, datetime, time, timezone
from typing import Union

from dateutil import parser as date_parser

Instant = Union[str, date, datetime]


def utc_now() -> datetime:
    """
    Return current UTC time as timezone-aware datetime.

    This function should be used instead of datetime.now() or datetime.utcnow()
    to ensure all timestamps are timezone-aware and stored in UTC.

    Returns:
        Timezone-aware datetime in UTC

    Example:
        >>> now = utc_now()
        >>> now.tzinfo
        datetime.timezone.utc
    """
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """
    Normalize a datetime to timezone-aware UTC.

    Naive values are taken to already be in UTC. SQLite hands stored
    timestamps back without tzinfo, so every row read goes through here.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_instant(value: Instant) -> datetime:
    """
    Parse an ISO-8601 date or datetime into an aware UTC datetime.

    Args:
        value: "2025-03-10", "2025-03-10T14:00:00+02:00", a date or a datetime

    Returns:
        Timezone-aware datetime in UTC. Plain dates map to midnight UTC.

    Raises:
        ValueError: If a string is not valid ISO-8601
    """
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    if isinstance(value, str):
        return ensure_utc(date_parser.isoparse(value.strip()))
    raise ValueError(f"Unsupported date value: {value!r}")
