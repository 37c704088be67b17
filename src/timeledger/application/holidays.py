"""
Holiday Calendar Module

Decides which days are holidays and stamps the flag on DayInfo before
the classifier sees it.
"""

import dataclasses
from datetime import date
from typing import Iterable, Optional, Set

from timeledger.config.config_manager import Holidays
from timeledger.domain.entities import DayInfo
from timeledger.domain.ledger import parse_code_reference
from timeledger.domain.timeutils import parse_date_key
from timeledger.infrastructure.logger import get_logger

logger = get_logger("HolidayCalendar")

SUNDAY = 6

# Benefit code of a declared public holiday
HOLIDAY_LEAVE_CODE = 10


class HolidayCalendar:
    """Custom holiday dates plus an optional Sunday rule."""

    def __init__(self, custom_dates: Iterable = (), sundays_are_holidays: bool = True):
        self.sundays_are_holidays = sundays_are_holidays
        self.custom_dates: Set[date] = set()
        for value in custom_dates:
            day = parse_date_key(value)
            if day is None:
                logger.warning(f"Ignoring unparseable holiday date {value!r}")
                continue
            self.custom_dates.add(day)

    @classmethod
    def from_config(cls, holidays: Holidays) -> "HolidayCalendar":
        return cls(holidays.custom_dates, holidays.sundays_are_holidays)

    def is_holiday(self, day: date) -> bool:
        if day in self.custom_dates:
            return True
        return self.sundays_are_holidays and day.weekday() == SUNDAY

    @staticmethod
    def declares_holiday(day_info: DayInfo) -> bool:
        return any(
            parse_code_reference(leave.type) == HOLIDAY_LEAVE_CODE
            for leave in day_info.leaves
        )

    def apply(self, day: date, day_info: Optional[DayInfo] = None) -> DayInfo:
        """
        Return ``day_info`` flagged as a holiday when the calendar says so
        or the day declares a holiday leave (``code-10`` or ``holiday``).

        A flag already set on the stored record is kept.
        """
        day_info = day_info or DayInfo()
        if day_info.is_holiday:
            return day_info
        if not (self.is_holiday(day) or self.declares_holiday(day_info)):
            return day_info
        return dataclasses.replace(day_info, is_holiday=True)
