"""
Scheduled reset calculations.

Pure functions computing when a scheduled period next rolls over.
"""

import calendar
from collections.abc import Mapping
from datetime import datetime, timedelta
from typing import Any

from app.models.enums import ScheduleFrequency
from app.services.referral.config import FALLBACK_RESET_DAYS
from app.utils.datetime_utils import ensure_utc, parse_iso_datetime


def _parse_time(time_utc: str | None) -> tuple[int, int]:
    hours, _, minutes = (time_utc or "00:00").partition(":")
    return int(hours or 0), int(minutes or 0)


def _clamped_day(year: int, month: int, day: int) -> int:
    return min(day, calendar.monthrange(year, month)[1])


def calculate_next_reset_time(
    schedule: Mapping[str, Any], now: datetime
) -> datetime:
    """
    Compute the next occurrence of a reset schedule strictly after now.

    Weekly schedules use dayOfWeek 0-6 with 0 = Sunday. Monthly schedules
    clamp dayOfMonth to the last day of shorter months. An unrecognized
    frequency falls back to now + 7 days.

    Args:
        schedule: {"frequency", "dayOfWeek"?, "dayOfMonth"?, "timeUtc"}
        now: Current time

    Returns:
        Next reset time (UTC)
    """
    now = ensure_utc(now)
    hours, minutes = _parse_time(schedule.get("timeUtc"))
    at_time = now.replace(hour=hours, minute=minutes, second=0, microsecond=0)
    frequency = schedule.get("frequency")

    if frequency == ScheduleFrequency.DAILY:
        if at_time <= now:
            at_time += timedelta(days=1)
        return at_time

    if frequency == ScheduleFrequency.WEEKLY:
        target_day = schedule.get("dayOfWeek")
        if target_day is None:
            target_day = 1
        current_day = (now.weekday() + 1) % 7
        days_until = (target_day - current_day) % 7
        candidate = at_time + timedelta(days=days_until)
        if candidate <= now:
            candidate += timedelta(days=7)
        return candidate

    if frequency == ScheduleFrequency.MONTHLY:
        target_date = schedule.get("dayOfMonth") or 1
        candidate = at_time.replace(
            day=_clamped_day(now.year, now.month, target_date)
        )
        if candidate <= now:
            year, month = (now.year + 1, 1) if now.month == 12 else (now.year, now.month + 1)
            candidate = candidate.replace(
                year=year,
                month=month,
                day=_clamped_day(year, month, target_date),
            )
        return candidate

    return now + timedelta(days=FALLBACK_RESET_DAYS)


def get_next_reset_at(reset_config: Mapping[str, Any] | None) -> datetime | None:
    """Read schedule.nextResetAt from a stored reset config."""
    schedule = (reset_config or {}).get("schedule") or {}
    next_reset_at = schedule.get("nextResetAt")
    if not next_reset_at:
        return None
    return parse_iso_datetime(next_reset_at)


def with_next_reset_at(
    reset_config: Mapping[str, Any], next_reset_at: datetime
) -> dict[str, Any]:
    """Copy of reset_config with schedule.nextResetAt replaced."""
    schedule = dict(reset_config.get("schedule") or {})
    schedule["nextResetAt"] = ensure_utc(next_reset_at).isoformat()
    return {**reset_config, "schedule": schedule}
