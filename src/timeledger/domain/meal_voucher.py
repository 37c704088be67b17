"""
Meal Voucher Module

Decides whether a day's punches earn a meal voucher.

Rules:
- A single continuous work interval of at least 7 hours, or
- At least 6 worked hours in total with no more than 2 hours of breaks
  between consecutive intervals
- At most one voucher per day

A second clock-in while one is open is ignored, so the session runs from
the first clock-in.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import List, Mapping, Optional, Sequence, Tuple

from .entities import MealVoucherRecord, MS_PER_HOUR, TimeEntry, to_ms
from .intervals import closed_intervals
from .timeutils import DateKey, parse_date_key


CONTINUOUS_MS = 7 * MS_PER_HOUR
MIN_TOTAL_MS = 6 * MS_PER_HOUR
MAX_BREAK_MS = 2 * MS_PER_HOUR


@dataclass(frozen=True)
class WorkSession:
    """A closed work interval as shown in the voucher details."""
    start: datetime
    end: datetime
    hours: float
    break_after_hours: Optional[float] = None


@dataclass(frozen=True)
class VoucherReport:
    """Sessions, total hours and eligibility of one day."""
    sessions: Tuple[WorkSession, ...]
    total_hours: float
    break_hours: float
    eligible: bool


def _totals(entries: Sequence[TimeEntry]) -> Tuple[List, int, int, int]:
    intervals = closed_intervals(entries, keep_first=True)
    worked = sum(i.duration_ms for i in intervals)
    longest = max((i.duration_ms for i in intervals), default=0)
    breaks = sum(
        max(to_ms(nxt.start - prev.end), 0)
        for prev, nxt in zip(intervals, intervals[1:])
    )
    return intervals, worked, longest, breaks


def is_voucher_earned(entries: Sequence[TimeEntry]) -> bool:
    """
    Check whether a day's punches earn a meal voucher.

    Args:
        entries: The day's punches in any order

    Returns:
        True for one continuous interval of 7h or more, or 6h or more in
        total with breaks summing to 2h or less.
    """
    if len(entries) < 2:
        return False
    intervals, worked, longest, breaks = _totals(entries)
    if not intervals:
        return False
    if longest >= CONTINUOUS_MS:
        return True
    return worked >= MIN_TOTAL_MS and breaks <= MAX_BREAK_MS


def worked_hours(entries: Sequence[TimeEntry]) -> float:
    """Total hours of the closed intervals."""
    _, worked, _, _ = _totals(entries)
    return worked / MS_PER_HOUR


def describe_sessions(entries: Sequence[TimeEntry]) -> VoucherReport:
    """Detail of the day's work sessions with the break following each one."""
    intervals, worked, _, breaks = _totals(entries)
    sessions = []
    for index, interval in enumerate(intervals):
        break_after = None
        if index + 1 < len(intervals):
            gap = to_ms(intervals[index + 1].start - interval.end)
            break_after = round(max(gap, 0) / MS_PER_HOUR, 2)
        sessions.append(WorkSession(
            start=interval.start,
            end=interval.end,
            hours=round(interval.duration_ms / MS_PER_HOUR, 2),
            break_after_hours=break_after,
        ))
    return VoucherReport(
        sessions=tuple(sessions),
        total_hours=worked / MS_PER_HOUR,
        break_hours=breaks / MS_PER_HOUR,
        eligible=is_voucher_earned(entries),
    )


def voucher_for_day(
    entries: Sequence[TimeEntry],
    record: Optional[MealVoucherRecord] = None,
) -> bool:
    """Voucher of a day: a manual record overrides the punch-based rule."""
    if record is not None and record.manual:
        return record.earned
    return is_voucher_earned(entries)


def count_vouchers(
    entries_by_date: Mapping[DateKey, Sequence[TimeEntry]],
    records_by_date: Mapping[DateKey, MealVoucherRecord],
    year: int,
    month: Optional[int] = None,
) -> int:
    """
    Count earned vouchers in a year (or one month of it).

    Days with a manual record use the record; other days use the punches.
    """
    entries_by_day = {}
    for key, entries in entries_by_date.items():
        day = parse_date_key(key)
        if day is not None:
            entries_by_day[day] = entries

    records_by_day = {}
    for key, record in records_by_date.items():
        day = parse_date_key(key)
        if day is not None:
            records_by_day[day] = record

    count = 0
    for day in set(entries_by_day) | set(records_by_day):
        if not _in_period(day, year, month):
            continue
        if voucher_for_day(entries_by_day.get(day, ()), records_by_day.get(day)):
            count += 1
    return count


def _in_period(day: date, year: int, month: Optional[int]) -> bool:
    return day.year == year and (month is None or day.month == month)
