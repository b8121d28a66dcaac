"""Date and time utilities for the occurrence engine."""

from datetime import date, datetime, timedelta
from typing import Union

import pytz
from dateutil.parser import isoparse

from .exceptions import InvalidRangeError

GRID_DAYS = 42


def ensure_utc(dt: datetime) -> datetime:
    """
    Ensure datetime is in UTC.

    Naive datetimes are assumed to already be UTC (the relational store
    hands back naive values on backends without timezone support).

    Args:
        dt: Datetime to convert

    Returns:
        UTC datetime
    """
    if dt.tzinfo is None:
        return pytz.utc.localize(dt)
    return dt.astimezone(pytz.utc)


def canonical_instant(dt: datetime) -> datetime:
    """
    Normalize an instant to UTC with whole-second precision.

    Exceptions and overrides are matched against generated occurrence
    starts by exact equality, so both sides go through this first.
    """
    return ensure_utc(dt).replace(microsecond=0)


def format_instant(dt: datetime) -> str:
    """Format an instant as ``YYYY-MM-DDTHH:MM:SSZ``."""
    return canonical_instant(dt).strftime("%Y-%m-%dT%H:%M:%SZ")


def parse_instant(value: Union[str, datetime]) -> datetime:
    """
    Parse an ISO-8601 string (or pass through a datetime) into a canonical instant.

    Raises:
        InvalidRangeError: If the value is empty or not ISO-8601
    """
    if isinstance(value, datetime):
        return canonical_instant(value)
    if not value or not value.strip():
        raise InvalidRangeError("Empty timestamp")
    try:
        return canonical_instant(isoparse(value.strip()))
    except (ValueError, OverflowError) as e:
        raise InvalidRangeError(f"Invalid timestamp '{value}': {e}") from e


def month_grid_window(
    year: int,
    month: int,
    week_starts_on: int = 6,
) -> tuple[datetime, datetime]:
    """
    Get the 6-week grid range shown by a month view, in UTC.

    Args:
        year: Calendar year
        month: Calendar month (1-12)
        week_starts_on: First weekday of the grid (0=Monday ... 6=Sunday)

    Returns:
        Tuple of (grid_start, grid_end); grid_end is the last second of the grid
    """
    first = date(year, month, 1)
    offset = (first.weekday() - week_starts_on) % 7
    grid_first_day = first - timedelta(days=offset)
    start = pytz.utc.localize(datetime.combine(grid_first_day, datetime.min.time()))
    end = start + timedelta(days=GRID_DAYS) - timedelta(seconds=1)
    return start, end
