"""
Timesheet Service Module

Application layer service that feeds stored punches and declarations to
the engine. It applies the holiday calendar, memoizes day classification
and assembles monthly timesheets and yearly balances for the writers.
"""

from calendar import monthrange
from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum
from functools import lru_cache
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from timeledger.config.config_manager import ConfigManager
from timeledger.domain.entities import (
    BalanceRow, DayBreakdown, DayInfo, DayRow, ManualOvertimeEntry,
    MealVoucherRecord, MonthlyTimesheet, StatusCategory, StatusClass,
    StatusItem, TimeEntry, UsageEntry, WorkDaySummary, WorkSettings
)
from timeledger.domain.intervals import needs_review
from timeledger.domain.ledger import UsageLedger, compute_balance
from timeledger.domain.meal_voucher import voucher_for_day
from timeledger.domain.timeutils import DateKey, parse_date_key
from timeledger.domain.work_classifier import classify_day_detailed
from timeledger.application.holidays import HolidayCalendar
from timeledger.infrastructure.logger import get_logger

logger = get_logger("TimesheetService")

LOW_BALANCE_DAYS = 2


class ConsumptionWarning(Enum):
    """Outcome of checking a leave request against a consumption balance."""
    NONE = "none"
    LOW_BALANCE = "low-balance"
    EXHAUSTED = "exhausted"
    OVERDRAFT = "overdraft"


def check_consumption(
    item: StatusItem,
    usage,
    requested: float = 0.0
) -> ConsumptionWarning:
    """
    Check a request against the balance of a benefit code.

    Only GPO codes can run out. The request is in the code's unit
    (days or hours).

    Args:
        item: Benefit code being consumed
        usage: Usage mapping from ``compute_usage`` or the code's usage total
        requested: Amount about to be consumed

    Returns:
        EXHAUSTED when nothing is left, OVERDRAFT when the request exceeds
        the balance, LOW_BALANCE when a day-based code has at most two
        days left, NONE otherwise.
    """
    if item.status_class != StatusClass.GPO:
        return ConsumptionWarning.NONE

    balance = compute_balance(item, usage)
    if balance <= 0:
        return ConsumptionWarning.EXHAUSTED
    if requested > balance:
        return ConsumptionWarning.OVERDRAFT
    if item.category == StatusCategory.LEAVE_DAY and balance <= LOW_BALANCE_DAYS:
        return ConsumptionWarning.LOW_BALANCE
    return ConsumptionWarning.NONE


@dataclass
class TimesheetData:
    """
    Stored records of one worker, keyed by date or ``YYYY-MM-DD``.

    Punches are filed under the day they are attributed to.
    """
    entries_by_date: Dict[DateKey, Sequence[TimeEntry]] = field(default_factory=dict)
    day_info_by_date: Dict[DateKey, DayInfo] = field(default_factory=dict)
    manual_overtime_by_date: Dict[DateKey, Sequence[ManualOvertimeEntry]] = field(default_factory=dict)
    voucher_records_by_date: Dict[DateKey, MealVoucherRecord] = field(default_factory=dict)


def _by_day(mapping: Mapping, label: str) -> dict:
    result = {}
    for key, value in mapping.items():
        day = parse_date_key(key)
        if day is None:
            logger.warning(f"Ignoring {label} with unparseable date {key!r}")
            continue
        result[day] = value
    return result


@lru_cache(maxsize=2048)
def _classify_cached(
    day: date,
    entries: Tuple[TimeEntry, ...],
    day_info: DayInfo,
    next_day_info: DayInfo,
    manual_overtime: Tuple[ManualOvertimeEntry, ...],
    settings: WorkSettings,
) -> DayBreakdown:
    return classify_day_detailed(day, entries, day_info, next_day_info, manual_overtime, settings)


class TimesheetService:
    """
    Application service over one worker's records.

    This service:
    - Stamps the holiday flag from the HolidayCalendar
    - Memoizes classification on the frozen inputs
    - Builds monthly timesheets and yearly balance rows
    """

    def __init__(
        self,
        data: TimesheetData,
        settings: Optional[WorkSettings] = None,
        calendar: Optional[HolidayCalendar] = None,
        status_items: Sequence[StatusItem] = ()
    ):
        self.settings = settings or WorkSettings()
        self.calendar = calendar or HolidayCalendar()
        self.status_items = list(status_items)
        self._entries = _by_day(data.entries_by_date, "punches")
        self._day_info = _by_day(data.day_info_by_date, "day info")
        self._manual = _by_day(data.manual_overtime_by_date, "manual overtime")
        self._vouchers = _by_day(data.voucher_records_by_date, "meal voucher record")

    @classmethod
    def from_config(cls, config_manager: ConfigManager, data: TimesheetData) -> "TimesheetService":
        """Build a service from the loaded configuration."""
        config = config_manager.config
        return cls(
            data,
            settings=config_manager.work_settings(),
            calendar=HolidayCalendar.from_config(config.holidays),
            status_items=config_manager.status_items(),
        )

    def day_info(self, day: date) -> DayInfo:
        return self.calendar.apply(day, self._day_info.get(day))

    def entries(self, day: date) -> Tuple[TimeEntry, ...]:
        return tuple(self._entries.get(day) or ())

    def classify(self, day: date) -> DayBreakdown:
        """Classify one day with the holiday flags of the day and the next."""
        return _classify_cached(
            day,
            self.entries(day),
            self.day_info(day),
            self.day_info(day + timedelta(days=1)),
            tuple(self._manual.get(day) or ()),
            self.settings,
        )

    def summarize_day(self, day: date) -> WorkDaySummary:
        return self.classify(day).summary

    def voucher(self, day: date) -> bool:
        return voucher_for_day(self.entries(day), self._vouchers.get(day))

    def build_day(self, day: date) -> DayRow:
        breakdown = self.classify(day)
        return DayRow(
            day=day,
            day_info=self.day_info(day),
            breakdown=breakdown,
            voucher=self.voucher(day),
            needs_review=needs_review(self.entries(day)) or breakdown.missing_punch,
        )

    def build_month(self, year: int, month: int) -> MonthlyTimesheet:
        """Classify every day of a month and total the buckets."""
        _, num_days = monthrange(year, month)
        rows = [self.build_day(date(year, month, d)) for d in range(1, num_days + 1)]

        totals = WorkDaySummary()
        for row in rows:
            totals = totals + row.summary

        timesheet = MonthlyTimesheet(
            year=year,
            month=month,
            rows=rows,
            totals=totals,
            voucher_count=sum(1 for row in rows if row.voucher),
        )
        if timesheet.review_days:
            logger.info(f"{year}-{month:02d}: {len(timesheet.review_days)} days need review")
        return timesheet

    def ledger(self, year: int) -> UsageLedger:
        return UsageLedger(year, self.status_items)

    def usage(self, year: int) -> Dict[int, float]:
        return self.ledger(year).compute_usage(self._day_info, self._manual)

    def build_year_balances(self, year: int) -> List[BalanceRow]:
        """Balance row of every benefit code of ``year``."""
        ledger = self.ledger(year)
        usage = ledger.compute_usage(self._day_info, self._manual)
        rows = []
        for item in self.status_items:
            if item.year != year:
                continue
            rows.append(BalanceRow(
                item=item,
                used=usage.get(item.code, 0.0),
                balance=compute_balance(item, usage),
                monthly=tuple(ledger.monthly_usage(item.code, self._day_info, self._manual)),
            ))
        return sorted(rows, key=lambda r: r.item.code)

    def check_consumption(self, code: int, year: int, requested: float = 0.0) -> ConsumptionWarning:
        """Check a request against the current balance of ``code`` in ``year``."""
        item = self.ledger(year).item_for(code)
        if item is None:
            logger.warning(f"Unknown benefit code {code} for {year}")
            return ConsumptionWarning.NONE
        return check_consumption(item, self.usage(year), requested)

    def usage_details(self, year: int) -> Dict[int, List[UsageEntry]]:
        """Dated movements of every benefit code of ``year``."""
        ledger = self.ledger(year)
        return {
            item.code: ledger.usage_details(item.code, self._day_info, self._manual)
            for item in self.status_items
            if item.year == year
        }
