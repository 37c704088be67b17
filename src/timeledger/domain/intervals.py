"""
Work Interval Module

Pairs raw clock punches into work intervals and splits intervals at
night-window and midnight boundaries.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Iterable, List, Optional, Sequence, Set, Tuple

from .entities import PunchType, TimeEntry, WorkInterval, to_ms

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Segment:
    """
    A slice of a work interval that is entirely diurnal or entirely
    nocturnal and lies on a single calendar day.
    """
    start: datetime
    end: datetime
    nocturnal: bool

    @property
    def day(self) -> date:
        return self.start.date()

    @property
    def duration_ms(self) -> int:
        return to_ms(self.end - self.start)


def local_timestamp(value: datetime) -> datetime:
    """Drop timezone info, keeping the wall-clock reading, truncated to the millisecond."""
    return value.replace(tzinfo=None, microsecond=(value.microsecond // 1000) * 1000)


def day_bounds(day: date) -> Tuple[datetime, datetime]:
    """Accepted punch range for ``day``: the day itself plus one day either side."""
    midnight = datetime.combine(day, time(0, 0))
    return midnight - timedelta(days=1), midnight + timedelta(days=2)


def sort_entries(entries: Iterable[TimeEntry]) -> List[TimeEntry]:
    """Return punches ordered by timestamp. Equal timestamps keep their input order."""
    return sorted(entries, key=lambda e: local_timestamp(e.timestamp))


def pair_entries(
    entries: Sequence[TimeEntry],
    day: Optional[date] = None,
    excluded_ids: Iterable[str] = (),
    keep_first: bool = False,
) -> Tuple[List[WorkInterval], bool]:
    """
    Pair punches into work intervals.

    Args:
        entries: The day's punches in any order
        day: When given, punches outside the day +/- 1 day are skipped
        excluded_ids: Punch ids to leave out (already justified manually)
        keep_first: On a second clock-in while one is open, keep the earlier
            one and ignore the later; by default the later one replaces it

    Returns:
        Tuple of (intervals, missing_punch). Closed intervals come in
        chronological order; a trailing clock-in without a clock-out adds
        an open interval and sets ``missing_punch``.
    """
    excluded: Set[str] = set(excluded_ids)
    lower = upper = None
    if day is not None:
        lower, upper = day_bounds(day)

    intervals: List[WorkInterval] = []
    open_entry: Optional[TimeEntry] = None
    open_ts: Optional[datetime] = None
    missing_punch = False

    for entry in sort_entries(entries):
        if entry.id in excluded:
            continue

        ts = local_timestamp(entry.timestamp)
        if lower is not None and not (lower <= ts < upper):
            logger.debug(f"Skipping punch {entry.id} outside {day}: {ts}")
            continue

        if entry.type == PunchType.IN:
            if open_entry is not None:
                missing_punch = True
                if keep_first:
                    logger.debug(f"Ignoring clock-in {entry.id} while {open_entry.id} is open")
                    continue
                logger.debug(f"Punch {open_entry.id} superseded by {entry.id} without clock-out")
            open_entry, open_ts = entry, ts
        elif entry.type == PunchType.OUT:
            if open_entry is None:
                logger.debug(f"Skipping clock-out {entry.id} without clock-in")
                continue
            if ts > open_ts:
                intervals.append(WorkInterval(
                    start=open_ts,
                    end=ts,
                    opening_entry_id=open_entry.id,
                    closing_entry_id=entry.id,
                ))
            open_entry, open_ts = None, None
        else:
            logger.debug(f"Skipping punch {entry.id} with unknown type {entry.type!r}")

    if open_entry is not None:
        intervals.append(WorkInterval(start=open_ts, end=None, opening_entry_id=open_entry.id))
        missing_punch = True

    return intervals, missing_punch


def closed_intervals(entries: Sequence[TimeEntry], keep_first: bool = False) -> List[WorkInterval]:
    """Closed intervals only, in chronological order."""
    intervals, _ = pair_entries(entries, keep_first=keep_first)
    return [i for i in intervals if not i.is_open]


def needs_review(entries: Sequence[TimeEntry]) -> bool:
    """
    Check whether a day's punches fail to alternate in -> out.

    True for an odd punch count, a clock-out before any clock-in or two
    consecutive punches of the same type.
    """
    if not entries:
        return False
    if len(entries) % 2 != 0:
        return True

    expected = PunchType.IN
    for entry in sort_entries(entries):
        if entry.type != expected:
            return True
        expected = PunchType.OUT if expected == PunchType.IN else PunchType.IN
    return False


def night_window_active(start_hour: int, end_hour: int) -> bool:
    """A window with equal or out-of-range bounds applies no night differential."""
    try:
        start_hour, end_hour = int(start_hour), int(end_hour)
    except (TypeError, ValueError):
        return False
    return 0 <= start_hour < 24 and 0 <= end_hour < 24 and start_hour != end_hour


def is_night_hour(hour: int, start_hour: int, end_hour: int) -> bool:
    """Whether clock ``hour`` lies in ``[start_hour, end_hour)``, wrapping midnight."""
    if not night_window_active(start_hour, end_hour):
        return False
    if start_hour > end_hour:
        return hour >= start_hour or hour < end_hour
    return start_hour <= hour < end_hour


def split_interval(
    start: datetime,
    end: datetime,
    night_start_hour: int,
    night_end_hour: int,
) -> List[Segment]:
    """
    Cut ``[start, end)`` at every midnight and night-window boundary.

    Window bounds are whole hours, so every instant of a chunk shares the
    night status of the chunk's first instant. A boundary instant belongs
    to the window that begins there.
    """
    if end <= start:
        return []

    active = night_window_active(night_start_hour, night_end_hour)
    cut_hours = {0}
    if active:
        cut_hours.update((int(night_start_hour), int(night_end_hour)))

    cuts = set()
    day = start.date()
    while day <= end.date():
        for hour in cut_hours:
            instant = datetime.combine(day, time(hour, 0))
            if start < instant < end:
                cuts.add(instant)
        day += timedelta(days=1)

    points = [start] + sorted(cuts) + [end]
    segments = []
    for chunk_start, chunk_end in zip(points, points[1:]):
        nocturnal = active and is_night_hour(chunk_start.hour, night_start_hour, night_end_hour)
        segments.append(Segment(start=chunk_start, end=chunk_end, nocturnal=nocturnal))
    return segments


def split_durations(
    interval: WorkInterval,
    night_start_hour: int,
    night_end_hour: int,
) -> Tuple[int, int]:
    """Return (diurnal_ms, nocturnal_ms) of a closed interval."""
    if interval.is_open:
        return 0, 0
    diurnal = nocturnal = 0
    for segment in split_interval(interval.start, interval.end, night_start_hour, night_end_hour):
        if segment.nocturnal:
            nocturnal += segment.duration_ms
        else:
            diurnal += segment.duration_ms
    return diurnal, nocturnal
