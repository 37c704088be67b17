"""
Work Classifier Module

Turns one day's clock punches, declarations and manual overtime into a
categorized breakdown of worked time (WorkDaySummary).

Allocation of worked time uses a Strategy per calendar day: regular days
fill the standard quota and spill into excess hours, holidays treated as
overtime route everything into the holiday buckets.
"""

import logging
import math
from abc import ABC, abstractmethod
from datetime import date, datetime, time, timedelta
from typing import Dict, List, Optional, Sequence, Tuple

from .entities import (
    BreakDeductionOrder, DayBreakdown, DayInfo, IntervalSummary,
    ManualOvertimeEntry, MS_PER_HOUR, MS_PER_MINUTE, TimeEntry,
    WorkDaySummary, WorkSettings
)
from .intervals import Segment, pair_entries, split_interval

logger = logging.getLogger(__name__)


# On-call availability runs 22:00 -> 07:00 of the following day.
ON_CALL_START = time(22, 0)
ON_CALL_END = time(7, 0)
ON_CALL_SPAN_MS = 9 * MS_PER_HOUR

# Legacy manual overtime tags naming their bucket directly.
LEGACY_OVERTIME_BUCKETS = {
    "diurnal": "overtime_diurnal_ms",
    "nocturnal": "overtime_nocturnal_ms",
    "holiday": "overtime_holiday_ms",
    "nocturnal-holiday": "overtime_nocturnal_holiday_ms",
}


class _Buckets:
    """Mutable millisecond accumulator, frozen into a WorkDaySummary at the end."""

    FIELDS = (
        "standard_work_ms", "excess_hours_ms",
        "overtime_diurnal_ms", "overtime_nocturnal_ms",
        "overtime_holiday_ms", "overtime_nocturnal_holiday_ms",
    )

    def __init__(self):
        self.values: Dict[str, int] = {name: 0 for name in self.FIELDS}

    def add(self, name: str, ms: int) -> None:
        self.values[name] += ms

    def move(self, source: str, target: str, ms: int) -> None:
        self.values[source] -= ms
        self.values[target] += ms

    def to_summary(self, null_hours_ms: int = 0) -> WorkDaySummary:
        return WorkDaySummary(
            total_work_ms=sum(self.values.values()),
            null_hours_ms=null_hours_ms,
            **self.values
        )


class _Piece:
    """Working copy of a segment; ``ms`` shrinks as breaks are deducted."""

    __slots__ = ("segment", "interval_index", "ms")

    def __init__(self, segment: Segment, interval_index: int):
        self.segment = segment
        self.interval_index = interval_index
        self.ms = segment.duration_ms

    @property
    def nocturnal(self) -> bool:
        return self.segment.nocturnal


class _AllocationState:
    """Running state shared by the allocation strategies during one day."""

    def __init__(self, quota_ms: int):
        self.remaining_quota_ms = quota_ms
        # (interval_index, nocturnal, excess_ms) in chronological order
        self.excess_slices: List[List] = []


class AllocationStrategy(ABC):
    """Abstract base class for placing a piece of worked time into buckets."""

    @abstractmethod
    def allocate(self, piece: _Piece, buckets: _Buckets, state: _AllocationState) -> None:
        """
        Add ``piece.ms`` to ``buckets``.

        Args:
            piece: Worked time on a single calendar day, all diurnal or all nocturnal
            buckets: Accumulator of the interval the piece belongs to
            state: Day-wide quota and excess bookkeeping
        """
        pass


class RegularDayAllocation(AllocationStrategy):
    """
    Regular day rule.

    - The first ``standard_day_hours`` worked fill the standard bucket
    - Anything beyond the quota is excess hours
    """

    def allocate(self, piece: _Piece, buckets: _Buckets, state: _AllocationState) -> None:
        standard = min(piece.ms, state.remaining_quota_ms)
        excess = piece.ms - standard
        state.remaining_quota_ms -= standard

        if standard:
            buckets.add("standard_work_ms", standard)
        if excess:
            buckets.add("excess_hours_ms", excess)
            state.excess_slices.append([piece.interval_index, piece.nocturnal, excess])


class HolidayOvertimeAllocation(AllocationStrategy):
    """Holiday treated as overtime: all worked time goes to the holiday buckets."""

    def allocate(self, piece: _Piece, buckets: _Buckets, state: _AllocationState) -> None:
        if piece.nocturnal:
            buckets.add("overtime_nocturnal_holiday_ms", piece.ms)
        else:
            buckets.add("overtime_holiday_ms", piece.ms)


class AllocationFactory:
    """Factory for the allocation strategy of a calendar day."""

    _strategies = {
        False: RegularDayAllocation(),
        True: HolidayOvertimeAllocation(),
    }

    @classmethod
    def get_strategy(cls, holiday_overtime: bool) -> AllocationStrategy:
        """Get the strategy for a day, given whether it is a holiday paid as overtime."""
        return cls._strategies[bool(holiday_overtime)]


def _scaled_ms(value, unit_ms: int) -> int:
    """Convert a settings value to ms; non-finite or negative values count as 0."""
    try:
        value = float(value)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(value) or value <= 0:
        return 0
    return int(round(value * unit_ms))


def _hours_to_ms(hours) -> int:
    return _scaled_ms(hours, MS_PER_HOUR)


def _valid_duration(entry: ManualOvertimeEntry) -> int:
    try:
        value = float(entry.duration_ms)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(value) or value <= 0:
        return 0
    return int(round(value))


def standard_quota_ms(day_info: DayInfo, settings: WorkSettings) -> int:
    """
    Standard work expected on a day: ``standard_day_hours`` reduced by
    any hourly leave declared for the day, never below zero.
    """
    quota = _hours_to_ms(settings.standard_day_hours)
    for leave in day_info.leaves:
        quota -= _hours_to_ms(leave.hours)
    return max(quota, 0)


def shift_window(day: date, day_info: DayInfo, settings: WorkSettings) -> Optional[Tuple[datetime, datetime]]:
    """Scheduled start/end of the day's first timed shift; overnight shifts end the next day."""
    for shift_id in day_info.shift_ids:
        shift = settings.find_shift(shift_id)
        if shift is None or shift.is_rest:
            continue
        start_hour, end_hour = int(shift.start_hour), int(shift.end_hour)
        if not (0 <= start_hour < 24 and 0 <= end_hour < 24):
            continue
        start = datetime.combine(day, time(start_hour, 0))
        end_day = day + timedelta(days=1) if shift.crosses_midnight else day
        return start, datetime.combine(end_day, time(end_hour, 0))
    return None


def _deduct_break(pieces: List[_Piece], break_ms: int, order: BreakDeductionOrder) -> int:
    """Remove ``break_ms`` from the pieces, preferred kind first, earliest first."""
    nocturnal_first = order == BreakDeductionOrder.NOCTURNAL_FIRST
    remaining = break_ms
    for take_nocturnal in (nocturnal_first, not nocturnal_first):
        for piece in pieces:
            if remaining <= 0:
                break
            if piece.nocturnal != take_nocturnal:
                continue
            taken = min(piece.ms, remaining)
            piece.ms -= taken
            remaining -= taken
    return break_ms - remaining


def _retag_excess(
    needed_ms: int,
    state: _AllocationState,
    interval_buckets: List[_Buckets],
) -> int:
    """Move up to ``needed_ms`` of the latest excess into overtime; return the amount moved."""
    moved = 0
    for excess_slice in reversed(state.excess_slices):
        if moved >= needed_ms:
            break
        interval_index, nocturnal, available = excess_slice
        if available <= 0:
            continue
        taken = min(available, needed_ms - moved)
        target = "overtime_nocturnal_ms" if nocturnal else "overtime_diurnal_ms"
        interval_buckets[interval_index].move("excess_hours_ms", target, taken)
        excess_slice[2] -= taken
        moved += taken
    return moved


def _declared_bucket(tag: str, holiday_overtime: bool) -> str:
    bucket = LEGACY_OVERTIME_BUCKETS.get((tag or "").strip())
    if bucket:
        return bucket
    return "overtime_holiday_ms" if holiday_overtime else "overtime_diurnal_ms"


def classify_day_detailed(
    day: date,
    entries: Sequence[TimeEntry],
    day_info: Optional[DayInfo] = None,
    next_day_info: Optional[DayInfo] = None,
    manual_overtime: Sequence[ManualOvertimeEntry] = (),
    settings: Optional[WorkSettings] = None,
) -> DayBreakdown:
    """
    Classify a day's worked time and keep the per-interval detail.

    Args:
        day: Calendar day being evaluated
        entries: The day's punches, in any order
        day_info: Declarations of the day (holiday flag set by the caller)
        next_day_info: Declarations of the following day. Work past
            midnight is still classified with ``day_info``, so the next
            day's holiday flag does not change the buckets
        manual_overtime: Operator-declared overtime for the day
        settings: Work rules

    Returns:
        DayBreakdown whose summary satisfies the partition invariant.
        Malformed punches are skipped; this function does not raise on bad input.
    """
    settings = settings or WorkSettings()
    day_info = day_info or DayInfo()

    manual = [(entry, _valid_duration(entry)) for entry in manual_overtime]
    for entry, duration in manual:
        if duration == 0:
            logger.debug(f"Ignoring manual overtime {entry.id} with duration {entry.duration_ms!r}")
    manual = [(entry, duration) for entry, duration in manual if duration > 0]

    justified_ids = [pid for entry, _ in manual for pid in entry.used_entry_ids]
    intervals, missing_punch = pair_entries(entries, day, justified_ids)
    closed = [interval for interval in intervals if not interval.is_open]

    # 1. Split each closed interval into diurnal/nocturnal single-day pieces
    pieces: List[_Piece] = []
    for index, interval in enumerate(closed):
        for segment in split_interval(
            interval.start, interval.end,
            settings.night_start_hour, settings.night_end_hour
        ):
            pieces.append(_Piece(segment, index))

    # 2. Automatic break
    worked_ms = sum(piece.ms for piece in pieces)
    auto_break_ms = 0
    if settings.deduct_auto_break and worked_ms > _hours_to_ms(settings.auto_break_threshold_hours):
        break_ms = min(_scaled_ms(settings.auto_break_minutes, MS_PER_MINUTE), worked_ms)
        auto_break_ms = _deduct_break(pieces, break_ms, settings.auto_break_order)

    # 3. Allocate chronologically
    state = _AllocationState(standard_quota_ms(day_info, settings))
    interval_buckets = [_Buckets() for _ in closed]
    # The day's holiday flag covers post-midnight work too
    holiday_overtime = bool(settings.treat_holiday_as_overtime) and day_info.is_holiday
    strategy = AllocationFactory.get_strategy(holiday_overtime)
    for piece in pieces:
        if piece.ms <= 0:
            continue
        strategy.allocate(piece, interval_buckets[piece.interval_index], state)

    # 4. Manual overtime re-tags punched excess, the rest is declared time
    declared = _Buckets()
    for entry, duration in manual:
        moved = _retag_excess(duration, state, interval_buckets)
        if duration > moved:
            declared.add(_declared_bucket(entry.type, holiday_overtime), duration - moved)

    # 5. On-call with nothing worked
    null_hours_ms = ON_CALL_SPAN_MS if day_info.is_on_call and not closed else 0

    interval_summaries = []
    for index, interval in enumerate(closed):
        diurnal = sum(p.ms for p in pieces if p.interval_index == index and not p.nocturnal)
        nocturnal = sum(p.ms for p in pieces if p.interval_index == index and p.nocturnal)
        interval_summaries.append(IntervalSummary(
            interval=interval,
            diurnal_ms=diurnal,
            nocturnal_ms=nocturnal,
            summary=interval_buckets[index].to_summary(),
        ))

    summary = declared.to_summary(null_hours_ms=null_hours_ms)
    for item in interval_summaries:
        summary = summary + item.summary

    return DayBreakdown(
        summary=summary,
        intervals=tuple(interval_summaries),
        missing_punch=missing_punch,
        shift_window=shift_window(day, day_info, settings),
        auto_break_ms=auto_break_ms,
    )


def classify_day(
    day: date,
    entries: Sequence[TimeEntry],
    day_info: Optional[DayInfo] = None,
    next_day_info: Optional[DayInfo] = None,
    manual_overtime: Sequence[ManualOvertimeEntry] = (),
    settings: Optional[WorkSettings] = None,
) -> WorkDaySummary:
    """Classify a day's worked time into a WorkDaySummary."""
    return classify_day_detailed(
        day, entries, day_info, next_day_info, manual_overtime, settings
    ).summary
