"""
Datetime utilities for consistent timezone handling across the application.

This module provides utilities to ensure all datetime operations use timezone-aware
datetimes consistently. All times are in Japan Standard Time (UTC+9) for business
logic; in particular the clinic day boundary for "one check-in per day" is always
the JST calendar day, never the client's locale or UTC.
"""

import logging
from datetime import datetime, timezone, timedelta, date
from typing import Optional

logger = logging.getLogger(__name__)

# Japan Standard Time constant (UTC+9, no daylight saving)
JST_TZ = timezone(timedelta(hours=9))


def jst_now() -> datetime:
    """
    Get current JST datetime (UTC+9).

    Returns:
        Current datetime with JST timezone
    """
    return datetime.now(JST_TZ)


def clinic_today() -> date:
    """
    Get the current clinic calendar day.

    Returns:
        Today's date in JST
    """
    return jst_now().date()


def ensure_jst(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Ensure a datetime is timezone-aware with JST timezone.

    Naive datetimes (e.g. read back from SQLite) are assumed to already be JST.

    Args:
        dt: Datetime to ensure is JST-aware

    Returns:
        Timezone-aware datetime in JST, or None if input is None
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=JST_TZ)
    return dt.astimezone(JST_TZ)


def minutes_between(start: datetime, end: datetime) -> float:
    """
    Elapsed minutes from start to end, tolerating naive/aware mixes.

    Args:
        start: Earlier timestamp
        end: Later timestamp

    Returns:
        Elapsed time in (fractional) minutes
    """
    start_jst = ensure_jst(start)
    end_jst = ensure_jst(end)
    assert start_jst is not None and end_jst is not None
    return (end_jst - start_jst).total_seconds() / 60


def format_clock(dt: Optional[datetime]) -> str:
    """
    Format a timestamp as HH:MM in JST for queue displays.

    Args:
        dt: Timestamp (naive or aware) or None

    Returns:
        "HH:MM", or an empty string when no timestamp is set
    """
    local_dt = ensure_jst(dt)
    if local_dt is None:
        return ""
    return local_dt.strftime("%H:%M")


def parse_date_string(date_str: str) -> date:
    """
    Parse a date string in YYYY-MM-DD or YYYY/MM/DD format.

    Accepts both formats:
    - YYYY-MM-DD (e.g., "2022-01-01", "2022-1-1")
    - YYYY/MM/DD (e.g., "2022/01/01", "2022/1/1")

    Automatically normalizes single-digit months/days.

    Args:
        date_str: Date string in YYYY-MM-DD or YYYY/MM/DD format

    Returns:
        Date object

    Raises:
        ValueError: If date string cannot be parsed
    """
    if not date_str or not date_str.strip():
        raise ValueError("Date string cannot be empty")

    date_str = date_str.strip()

    if '/' in date_str:
        parts = date_str.split('/')
    elif '-' in date_str:
        parts = date_str.split('-')
    else:
        raise ValueError(f"Invalid date format (expected YYYY-MM-DD or YYYY/MM/DD): {date_str}")

    if len(parts) != 3:
        raise ValueError(f"Invalid date format (expected YYYY-MM-DD or YYYY/MM/DD): {date_str}")

    normalized = f"{parts[0].zfill(4)}-{parts[1].zfill(2)}-{parts[2].zfill(2)}"

    try:
        return datetime.strptime(normalized, '%Y-%m-%d').date()
    except ValueError as e:
        raise ValueError(f"Invalid date format (expected YYYY-MM-DD or YYYY/MM/DD): {date_str}") from e
