"""
Domain Entities Module

Core value objects for the time and leave accounting engine.
Every entity is a frozen dataclass: the engine never mutates its inputs
and always returns new objects, so equal inputs give equal outputs.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import List, Optional, Tuple


MS_PER_MINUTE = 60 * 1000
MS_PER_HOUR = 60 * MS_PER_MINUTE
MS_PER_DAY = 24 * MS_PER_HOUR


class PunchType(str, Enum):
    """Direction of a clock punch."""
    IN = "in"
    OUT = "out"


class EventType(str, Enum):
    """Kind of declaration carried by a calendar event."""
    SHIFT = "shift"
    LEAVE = "leave"
    ON_CALL = "onCall"


class StatusClass(str, Enum):
    """Balance convention of a benefit code."""
    ACC = "ACC"  # accrual: usage adds to the entitlement
    GPO = "GPO"  # consumption: usage is taken from the entitlement


class StatusCategory(str, Enum):
    """What a benefit code counts."""
    LEAVE_DAY = "leave-day"
    LEAVE_HOURS = "leave-hours"
    OVERTIME = "overtime"
    BALANCE = "balance"
    INFO = "info"


class BreakDeductionOrder(Enum):
    """Which portion of the worked time absorbs the automatic break first."""
    DIURNAL_FIRST = "diurnal-first"
    NOCTURNAL_FIRST = "nocturnal-first"


@dataclass(frozen=True)
class TimeEntry:
    """
    A single clock punch.

    Attributes:
        id: Stable identifier of the punch
        timestamp: Local wall-clock time of the punch
        type: PunchType.IN or PunchType.OUT
    """
    id: str
    timestamp: datetime
    type: PunchType


@dataclass(frozen=True)
class WorkInterval:
    """
    An in -> out pairing. ``end`` is None for an interval left open
    by a missing clock-out.
    """
    start: datetime
    end: Optional[datetime]
    opening_entry_id: str = ""
    closing_entry_id: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return self.end is None

    @property
    def duration_ms(self) -> int:
        if self.end is None:
            return 0
        return to_ms(self.end - self.start)


@dataclass(frozen=True)
class Shift:
    """
    A configured shift. ``start_hour``/``end_hour`` are None for rest days;
    an ``end_hour`` lower than ``start_hour`` means the shift ends the next day.
    """
    id: str
    name: str
    start_hour: Optional[int] = None
    end_hour: Optional[int] = None

    @property
    def is_rest(self) -> bool:
        return self.start_hour is None or self.end_hour is None

    @property
    def crosses_midnight(self) -> bool:
        return not self.is_rest and self.end_hour < self.start_hour


@dataclass(frozen=True)
class LeaveDeclaration:
    """A declared absence: benefit reference (``code-15`` or legacy name) and optional hours."""
    type: str
    hours: Optional[float] = None


@dataclass(frozen=True)
class CalendarEvent:
    """One typed declaration on a day (tagged variant on ``type``)."""
    type: EventType
    id: str = ""
    shift: Optional[str] = None
    leave: Optional[LeaveDeclaration] = None
    on_call: bool = False


@dataclass(frozen=True)
class DayInfo:
    """
    Declared context of a calendar day.

    The single-valued ``shift``/``leave``/``on_call`` fields are kept for
    older records. When ``events`` is non-empty it is authoritative and the
    single-valued fields are ignored.

    Attributes:
        shift: Shift id (legacy field)
        leave: Leave declaration (legacy field)
        on_call: On-call flag (legacy field)
        events: Typed declarations for the day
        is_holiday: Set by the caller's holiday calendar, trusted verbatim
    """
    shift: Optional[str] = None
    leave: Optional[LeaveDeclaration] = None
    on_call: bool = False
    events: Tuple[CalendarEvent, ...] = ()
    is_holiday: bool = False

    def __post_init__(self):
        # Lists read from JSON would make the record unhashable
        object.__setattr__(self, "events", tuple(self.events or ()))

    def normalized_events(self) -> Tuple[CalendarEvent, ...]:
        """Return the day's declarations as a single list of typed events."""
        if self.events:
            return tuple(self.events)

        events: List[CalendarEvent] = []
        if self.shift:
            events.append(CalendarEvent(type=EventType.SHIFT, shift=self.shift))
        if self.leave is not None and self.leave.type:
            events.append(CalendarEvent(type=EventType.LEAVE, leave=self.leave))
        if self.on_call:
            events.append(CalendarEvent(type=EventType.ON_CALL, on_call=True))
        return tuple(events)

    @property
    def shift_ids(self) -> Tuple[str, ...]:
        return tuple(
            e.shift for e in self.normalized_events()
            if e.type == EventType.SHIFT and e.shift
        )

    @property
    def leaves(self) -> Tuple[LeaveDeclaration, ...]:
        return tuple(
            e.leave for e in self.normalized_events()
            if e.type == EventType.LEAVE and e.leave is not None and e.leave.type
        )

    @property
    def is_on_call(self) -> bool:
        return any(
            e.type == EventType.ON_CALL and e.on_call
            for e in self.normalized_events()
        )


@dataclass(frozen=True)
class ManualOvertimeEntry:
    """
    Operator-declared extra time.

    Attributes:
        id: Entry identifier
        duration_ms: Declared duration in milliseconds
        type: Tag used for ledger attribution (``code-2041`` or a description)
        note: Free text
        used_entry_ids: Punches this entry justifies; they are left out of
            the punch-derived intervals
    """
    id: str
    duration_ms: float
    type: str
    note: str = ""
    used_entry_ids: Tuple[str, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "used_entry_ids", tuple(self.used_entry_ids or ()))


@dataclass(frozen=True)
class WorkSettings:
    """
    Rules used by the classifier.

    The night window is ``[night_start_hour, night_end_hour)`` and wraps
    midnight when the end is lower than the start (22 -> 6).
    """
    standard_day_hours: float = 6
    night_start_hour: int = 22
    night_end_hour: int = 6
    treat_holiday_as_overtime: bool = True
    deduct_auto_break: bool = False
    auto_break_threshold_hours: float = 6
    auto_break_minutes: float = 30
    shifts: Tuple[Shift, ...] = ()
    auto_break_order: BreakDeductionOrder = BreakDeductionOrder.DIURNAL_FIRST

    def find_shift(self, shift_id: str) -> Optional[Shift]:
        for shift in self.shifts:
            if shift.id == shift_id:
                return shift
        return None


@dataclass(frozen=True)
class WorkDaySummary:
    """
    Categorized worked time for one day, in milliseconds.

    The six worked buckets partition ``total_work_ms``;
    ``null_hours_ms`` is declared-but-unworked time kept apart.
    """
    total_work_ms: int = 0
    standard_work_ms: int = 0
    excess_hours_ms: int = 0
    overtime_diurnal_ms: int = 0
    overtime_nocturnal_ms: int = 0
    overtime_holiday_ms: int = 0
    overtime_nocturnal_holiday_ms: int = 0
    null_hours_ms: int = 0

    @property
    def bucket_sum_ms(self) -> int:
        return (
            self.standard_work_ms + self.excess_hours_ms
            + self.overtime_diurnal_ms + self.overtime_nocturnal_ms
            + self.overtime_holiday_ms + self.overtime_nocturnal_holiday_ms
        )

    @property
    def overtime_ms(self) -> int:
        return (
            self.overtime_diurnal_ms + self.overtime_nocturnal_ms
            + self.overtime_holiday_ms + self.overtime_nocturnal_holiday_ms
        )

    def __add__(self, other: "WorkDaySummary") -> "WorkDaySummary":
        if not isinstance(other, WorkDaySummary):
            return NotImplemented
        return WorkDaySummary(
            total_work_ms=self.total_work_ms + other.total_work_ms,
            standard_work_ms=self.standard_work_ms + other.standard_work_ms,
            excess_hours_ms=self.excess_hours_ms + other.excess_hours_ms,
            overtime_diurnal_ms=self.overtime_diurnal_ms + other.overtime_diurnal_ms,
            overtime_nocturnal_ms=self.overtime_nocturnal_ms + other.overtime_nocturnal_ms,
            overtime_holiday_ms=self.overtime_holiday_ms + other.overtime_holiday_ms,
            overtime_nocturnal_holiday_ms=(
                self.overtime_nocturnal_holiday_ms + other.overtime_nocturnal_holiday_ms
            ),
            null_hours_ms=self.null_hours_ms + other.null_hours_ms,
        )


@dataclass(frozen=True)
class IntervalSummary:
    """Bucket breakdown of one closed work interval."""
    interval: WorkInterval
    diurnal_ms: int
    nocturnal_ms: int
    summary: WorkDaySummary


@dataclass(frozen=True)
class DayBreakdown:
    """
    Detailed classifier result.

    Attributes:
        summary: The day's WorkDaySummary
        intervals: Per-interval breakdown, in chronological order
        missing_punch: True when a clock-in has no matching clock-out
        shift_window: Scheduled (start, end) of the day's shift, if any
        auto_break_ms: Break actually deducted
    """
    summary: WorkDaySummary
    intervals: Tuple[IntervalSummary, ...] = ()
    missing_punch: bool = False
    shift_window: Optional[Tuple[datetime, datetime]] = None
    auto_break_ms: int = 0


@dataclass(frozen=True)
class StatusItem:
    """
    A benefit code with its yearly entitlement.

    Attributes:
        code: Numeric benefit code (e.g. 15 for vacation)
        description: Human label, also the join key of legacy overtime tags
        year: Entitlement year
        status_class: ACC (accrual) or GPO (consumption)
        entitlement: Days or hours granted for the year
        category: What the code counts
    """
    code: int
    description: str
    year: int
    status_class: StatusClass
    entitlement: float
    category: StatusCategory

    @property
    def reference(self) -> str:
        """The ``code-<n>`` string used by leave and overtime declarations."""
        return f"code-{self.code}"

    @property
    def is_hourly(self) -> bool:
        return self.category in (StatusCategory.LEAVE_HOURS, StatusCategory.OVERTIME)


@dataclass(frozen=True)
class UsageEntry:
    """One dated movement of a benefit code."""
    date: date
    amount: float
    source: str = "leave"  # 'leave' or 'overtime'


@dataclass(frozen=True)
class MealVoucherRecord:
    """Operator override of the computed meal voucher for a day."""
    date: date
    earned: bool
    manual: bool = True
    note: str = ""


def to_ms(delta) -> int:
    """Convert a timedelta to whole milliseconds."""
    return (delta.days * MS_PER_DAY) + (delta.seconds * 1000) + (delta.microseconds // 1000)


# ==============================================================================
# Report aggregates
# ==============================================================================
@dataclass(frozen=True)
class DayRow:
    """
    One day of a monthly timesheet.

    Attributes:
        day: Calendar day
        day_info: Declarations of the day, holiday flag applied
        breakdown: Classifier result
        voucher: Meal voucher earned (manual override applied)
        needs_review: Punches are incomplete or out of alternation
    """
    day: date
    day_info: DayInfo
    breakdown: DayBreakdown
    voucher: bool = False
    needs_review: bool = False

    @property
    def summary(self) -> WorkDaySummary:
        return self.breakdown.summary


@dataclass
class MonthlyTimesheet:
    """Container for a month of classified days and its totals."""
    year: int
    month: int
    rows: List[DayRow] = field(default_factory=list)
    totals: WorkDaySummary = field(default_factory=WorkDaySummary)
    voucher_count: int = 0

    @property
    def review_days(self) -> List[date]:
        return [row.day for row in self.rows if row.needs_review]


@dataclass(frozen=True)
class BalanceRow:
    """
    Yearly position of one benefit code.

    Attributes:
        item: The benefit code
        used: Unsigned usage of the year
        balance: Entitlement with usage applied by the ACC/GPO rule
        monthly: Signed movement per month, January first
    """
    item: StatusItem
    used: float
    balance: float
    monthly: Tuple[float, ...] = (0.0,) * 12
