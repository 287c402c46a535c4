"""
Datetime utilities.

Provides timezone-aware datetime functions.
"""

from datetime import UTC, datetime, timedelta


def utc_now() -> datetime:
    """
    Get current UTC datetime with timezone info.

    Returns:
        Current datetime in UTC with timezone awareness
    """
    return datetime.now(UTC)


def ensure_utc(value: datetime) -> datetime:
    """
    Attach or convert to UTC.

    Naive datetimes are assumed to already be UTC (SQLite drops tzinfo).

    Args:
        value: Datetime to normalize

    Returns:
        Timezone-aware datetime in UTC
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def parse_iso_datetime(value: str | datetime) -> datetime:
    """
    Parse an ISO-8601 timestamp (accepts a trailing "Z").

    Args:
        value: ISO string or datetime

    Returns:
        Timezone-aware datetime in UTC
    """
    if isinstance(value, datetime):
        return ensure_utc(value)
    return ensure_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))


def start_of_week(moment: datetime) -> datetime:
    """Monday 00:00 UTC of the week containing moment."""
    moment = ensure_utc(moment)
    day_start = moment.replace(hour=0, minute=0, second=0, microsecond=0)
    return day_start - timedelta(days=moment.weekday())


def start_of_month(moment: datetime) -> datetime:
    """First day of the month containing moment, 00:00 UTC."""
    moment = ensure_utc(moment)
    return moment.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def start_of_next_month(moment: datetime) -> datetime:
    """First day of the month after moment, 00:00 UTC."""
    first = start_of_month(moment)
    if first.month == 12:
        return first.replace(year=first.year + 1, month=1)
    return first.replace(month=first.month + 1)
