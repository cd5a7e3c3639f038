"""
Timezone utilities for converting between UTC and local times.

All database timestamps are stored as naive UTC. These utilities help
convert to/from the venue timezone for display and input.
"""

from datetime import datetime
from typing import Optional

import pytz

from hauntq.config import get_settings

UTC_TZ = pytz.UTC


def venue_tz():
    """The configured venue timezone."""
    return pytz.timezone(get_settings().venue_timezone)


def utc_now() -> datetime:
    """Get current time in UTC (naive, for database storage and comparison)."""
    return datetime.now(UTC_TZ).replace(tzinfo=None)


def to_utc(local_dt: datetime, timezone: Optional[str] = None) -> datetime:
    """
    Convert a local datetime to UTC.

    Args:
        local_dt: Datetime in local timezone (can be naive or aware)
        timezone: Timezone name (default: the venue timezone)

    Returns:
        Timezone-naive datetime in UTC (for database storage)
    """
    tz = pytz.timezone(timezone) if timezone else venue_tz()

    if local_dt.tzinfo is None:
        # Naive datetime - assume it's in the specified timezone
        local_dt = tz.localize(local_dt)

    # Convert to UTC and remove timezone info for database storage
    utc_dt = local_dt.astimezone(UTC_TZ)
    return utc_dt.replace(tzinfo=None)


def from_utc(utc_dt: datetime, timezone: Optional[str] = None) -> datetime:
    """
    Convert a UTC datetime to local timezone.

    Args:
        utc_dt: Datetime in UTC (can be naive or aware)
        timezone: Target timezone name (default: the venue timezone)

    Returns:
        Timezone-aware datetime in local timezone
    """
    tz = pytz.timezone(timezone) if timezone else venue_tz()

    if utc_dt.tzinfo is None:
        # Naive datetime - assume it's UTC
        utc_dt = UTC_TZ.localize(utc_dt)

    return utc_dt.astimezone(tz)


def normalize_input_time(value: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize a schedule time coming from the API.

    Aware datetimes are converted to UTC; naive ones are read as venue
    local time.
    """
    if value is None:
        return None
    return to_utc(value)


def format_local_time(
    utc_dt: datetime,
    timezone: Optional[str] = None,
    fmt: str = "%Y-%m-%d %H:%M",
) -> str:
    """Format a UTC datetime as a local time string."""
    local_dt = from_utc(utc_dt, timezone)
    return local_dt.strftime(fmt)
