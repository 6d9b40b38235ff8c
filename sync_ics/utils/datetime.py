"""UTC datetime utilities."""

from datetime import date, datetime, time, timezone, tzinfo


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


def as_utc(value: datetime) -> datetime:
    """
    Convert a datetime to timezone-aware UTC.

    Naive values are taken to already be UTC. Some database backends (SQLite)
    drop tzinfo on the way back, so values read from the store go through
    this before being compared with feed values.

    Args:
        value: Aware or naive datetime

    Returns:
        Timezone-aware datetime in UTC
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def start_of_day(value: date, tz: tzinfo) -> datetime:
    """
    Midnight at the start of a calendar date in the given zone.

    Example:
        >>> start_of_day(date(2025, 7, 1), timezone.utc).isoformat()
        '2025-07-01T00:00:00+00:00'
    """
    return datetime.combine(value, time.min, tzinfo=tz)
