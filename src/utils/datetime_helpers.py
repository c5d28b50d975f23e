"""
Standardized Date/Time Handling Utilities

This module provides centralized functions for date/time operations to ensure:
1. All stored timestamps are timezone-aware UTC
2. Calendar-day logic (streaks, late-night meals) runs in one configured timezone
3. Naive datetimes never leak into comparisons

CRITICAL RULES:
- Always stamp with now_utc(), never datetime.now()
- Compare days with calendar_days_between(), never with day-of-month arithmetic
"""

import logging
from datetime import datetime, date
from typing import Optional, Union
from zoneinfo import ZoneInfo

from src.config import ACHIEVEMENT_TIMEZONE

logger = logging.getLogger(__name__)

UTC = ZoneInfo("UTC")


def get_timezone(tz_name: Optional[str] = None) -> ZoneInfo:
    """Resolve a timezone name, defaulting to ACHIEVEMENT_TIMEZONE"""
    return ZoneInfo(tz_name or ACHIEVEMENT_TIMEZONE)


def now_utc() -> datetime:
    """
    Get current datetime in UTC (timezone-aware)

    Returns:
        Current datetime in UTC with timezone info
    """
    return datetime.now(UTC)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Ensure datetime is timezone-aware UTC

    Naive datetimes are assumed to already be UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        logger.debug(f"Received naive datetime, assuming UTC: {dt}")
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def to_local_date(value: Union[datetime, date], tz_name: Optional[str] = None) -> date:
    """
    Calendar date of a moment in the given timezone

    Plain dates are returned unchanged.
    """
    if isinstance(value, datetime):
        return ensure_utc(value).astimezone(get_timezone(tz_name)).date()
    return value


def local_hour(dt: datetime, tz_name: Optional[str] = None) -> int:
    """Hour of day (0-23) of a moment in the given timezone"""
    return ensure_utc(dt).astimezone(get_timezone(tz_name)).hour


def calendar_days_between(
    earlier: Union[datetime, date],
    later: Union[datetime, date],
    tz_name: Optional[str] = None
) -> int:
    """
    Number of calendar days from earlier to later

    Works across month and year boundaries: Jan 31 -> Feb 1 is 1,
    Dec 31 -> Jan 1 is 1. Same calendar day is 0.
    """
    return (to_local_date(later, tz_name) - to_local_date(earlier, tz_name)).days
