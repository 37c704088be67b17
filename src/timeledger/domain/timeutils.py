"""
Time Utilities Module

Date-key parsing and duration formatting shared by the engine and the
report writers.
"""

import math
from datetime import date
from typing import Optional, Union

from .entities import MS_PER_HOUR

DateKey = Union[date, str]


def parse_date_key(key: DateKey) -> Optional[date]:
    """Parse a ``YYYY-MM-DD`` key (or pass a date through). Returns None when unparseable."""
    if isinstance(key, date):
        return key
    try:
        parts = str(key).strip().split('-')
        return date(int(parts[0]), int(parts[1]), int(parts[2]))
    except (ValueError, IndexError):
        return None


def format_date_key(day: date) -> str:
    """Format a date as the ``YYYY-MM-DD`` key used by stored records."""
    return f"{day.year:04d}-{day.month:02d}-{day.day:02d}"


def format_hours_decimal(hours: float) -> str:
    """
    Format decimal hours as ``HH:MM``, keeping the sign.

    e.g. 18.5 -> "18:30", -2.25 -> "-02:15"
    """
    if hours is None or not math.isfinite(hours):
        hours = 0.0
    sign = "-" if hours < 0 else ""
    absolute = abs(hours)
    whole = int(absolute)
    minutes = int(round((absolute - whole) * 60))
    if minutes == 60:
        whole, minutes = whole + 1, 0
    return f"{sign}{whole:02d}:{minutes:02d}"


def ms_to_hours(ms: int) -> float:
    return ms / MS_PER_HOUR
