"""
Ledger Module

Aggregates per-benefit-code usage for a year from declared leave and
manual overtime, and derives balances under the ACC (accrual) and GPO
(consumption) conventions.
"""

import logging
import math
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from .entities import (
    DayInfo, ManualOvertimeEntry, MS_PER_HOUR, StatusCategory, StatusClass,
    StatusItem, UsageEntry
)
from .timeutils import DateKey, parse_date_key

logger = logging.getLogger(__name__)

# Leave names used before benefit codes were introduced.
LEGACY_LEAVE_CODES = {
    "vacation": 15,
    "comp-time": 8,
    "holiday": 10,
    "medical": 32,
}

CODE_PREFIX = "code-"


def parse_code_reference(reference: str) -> Optional[int]:
    """
    Resolve a leave/overtime reference to a benefit code.

    Accepts ``code-<n>`` and the legacy leave names; returns None otherwise.
    """
    reference = (reference or "").strip()
    if reference.startswith(CODE_PREFIX):
        try:
            return int(reference[len(CODE_PREFIX):])
        except ValueError:
            return None
    return LEGACY_LEAVE_CODES.get(reference)


def _amount(value) -> float:
    try:
        value = float(value or 0)
    except (TypeError, ValueError):
        return 0.0
    return value if math.isfinite(value) else 0.0


class UsageLedger:
    """
    Per-year usage ledger over a master list of benefit codes.

    Usage totals are always the unsigned sum of movements; the ACC/GPO
    sign rule is applied only when a balance or a monthly breakdown is
    presented.
    """

    def __init__(self, year: int, status_items: Sequence[StatusItem]):
        """
        Initialize the ledger.

        Args:
            year: Target year
            status_items: Master list of benefit codes. When a code appears
                for several years the item of the target year is used.
        """
        self.year = year
        self.status_items = list(status_items)
        self._by_code: Dict[int, StatusItem] = {}
        for item in sorted(self.status_items, key=lambda i: i.year == year):
            self._by_code[item.code] = item

    def item_for(self, code: int) -> Optional[StatusItem]:
        return self._by_code.get(code)

    def _leave_amount(self, item: StatusItem, hours) -> Optional[float]:
        """
        Amount a leave declaration adds to ``item``; None when the category is not tracked.

        Hourly and overtime codes count the declared hours, day-based and
        balance codes count one per day. ``info`` codes are never counted,
        although older records counted them as one per day like leave days.
        Legacy leave names (``vacation``, ``medical``...) resolve to their
        codes here, where older records ignored them.
        """
        if item.category in (StatusCategory.LEAVE_HOURS, StatusCategory.OVERTIME):
            return _amount(hours)
        if item.category in (StatusCategory.LEAVE_DAY, StatusCategory.BALANCE):
            return 1.0
        return None

    def match_overtime(self, tag: str) -> Optional[StatusItem]:
        """
        Find the benefit code a manual overtime entry is attributed to.

        ``code-<n>`` tags are matched by code. Any other tag is matched by
        exact, trimmed equality against the description of overtime codes;
        when several codes share the description the first one wins.
        """
        tag = (tag or "").strip()
        if not tag:
            return None

        if tag.startswith(CODE_PREFIX):
            code = parse_code_reference(tag)
            return self.item_for(code) if code is not None else None

        matches = [
            item for item in self.status_items
            if item.category == StatusCategory.OVERTIME
            and item.description.strip() == tag
            and self._by_code.get(item.code) is item
        ]
        if len(matches) > 1:
            logger.warning(
                f"Overtime tag {tag!r} matches codes {[m.code for m in matches]}, "
                f"attributing to {matches[0].code}"
            )
        return matches[0] if matches else None

    def iter_movements(
        self,
        day_info_by_date: Mapping[DateKey, DayInfo],
        manual_overtime_by_date: Optional[Mapping[DateKey, Sequence[ManualOvertimeEntry]]] = None,
    ) -> Iterable[Tuple[StatusItem, UsageEntry]]:
        """Yield every (item, movement) of the target year, leave first then overtime."""
        for key, day_info in day_info_by_date.items():
            day = parse_date_key(key)
            if day is None or day.year != self.year or day_info is None:
                continue
            for leave in day_info.leaves:
                code = parse_code_reference(leave.type)
                item = self.item_for(code) if code is not None else None
                if item is None:
                    continue
                amount = self._leave_amount(item, leave.hours)
                if amount is None:
                    continue
                yield item, UsageEntry(date=day, amount=amount, source="leave")

        for key, entries in (manual_overtime_by_date or {}).items():
            day = parse_date_key(key)
            if day is None or day.year != self.year:
                continue
            for entry in entries or ():
                item = self.match_overtime(entry.type)
                if item is None:
                    logger.debug(f"Manual overtime {entry.id} on {day} has no benefit code")
                    continue
                hours = _amount(entry.duration_ms) / MS_PER_HOUR
                if hours <= 0:
                    continue
                yield item, UsageEntry(date=day, amount=hours, source="overtime")

    def compute_usage(
        self,
        day_info_by_date: Mapping[DateKey, DayInfo],
        manual_overtime_by_date: Optional[Mapping[DateKey, Sequence[ManualOvertimeEntry]]] = None,
    ) -> Dict[int, float]:
        """Sum usage per code: days for day-based codes, hours for hourly ones."""
        usage: Dict[int, float] = {}
        for item, movement in self.iter_movements(day_info_by_date, manual_overtime_by_date):
            usage[item.code] = usage.get(item.code, 0.0) + movement.amount
        return usage

    def monthly_usage(
        self,
        code: int,
        day_info_by_date: Mapping[DateKey, DayInfo],
        manual_overtime_by_date: Optional[Mapping[DateKey, Sequence[ManualOvertimeEntry]]] = None,
    ) -> List[float]:
        """
        Per-month movement of one code (index 0 = January).

        GPO movements are negative so consumption reads as a decrease.
        """
        months = [0.0] * 12
        item = self.item_for(code)
        if item is None:
            return months
        sign = -1 if item.status_class == StatusClass.GPO else 1
        for moved_item, movement in self.iter_movements(day_info_by_date, manual_overtime_by_date):
            if moved_item.code == code:
                months[movement.date.month - 1] += sign * movement.amount
        return months

    def usage_details(
        self,
        code: int,
        day_info_by_date: Mapping[DateKey, DayInfo],
        manual_overtime_by_date: Optional[Mapping[DateKey, Sequence[ManualOvertimeEntry]]] = None,
    ) -> List[UsageEntry]:
        """Dated movements of one code, oldest first."""
        entries = [
            movement
            for item, movement in self.iter_movements(day_info_by_date, manual_overtime_by_date)
            if item.code == code
        ]
        return sorted(entries, key=lambda e: e.date)


def compute_usage(
    year: int,
    day_info_by_date: Mapping[DateKey, DayInfo],
    status_items: Sequence[StatusItem],
    manual_overtime_by_date: Optional[Mapping[DateKey, Sequence[ManualOvertimeEntry]]] = None,
) -> Dict[int, float]:
    """
    Calculate usage of every benefit code for ``year``.

    Args:
        year: Target year
        day_info_by_date: Day declarations keyed by date or ``YYYY-MM-DD``
        status_items: Master list of benefit codes
        manual_overtime_by_date: Manual overtime keyed the same way

    Returns:
        Mapping of code to usage (days or hours). Codes without usage are absent.
    """
    return UsageLedger(year, status_items).compute_usage(day_info_by_date, manual_overtime_by_date)


def compute_balance(item: StatusItem, usage: Union[Mapping[int, float], float]) -> float:
    """
    Balance of a code: ``entitlement + usage`` for ACC, ``entitlement - usage`` for GPO.

    ``usage`` is either the usage mapping from ``compute_usage`` or the
    code's own usage total. A negative result is a valid balance.
    """
    if isinstance(usage, Mapping):
        used = usage.get(item.code, 0.0)
    else:
        used = usage
    used = _amount(used)
    if item.status_class == StatusClass.ACC:
        return item.entitlement + used
    return item.entitlement - used
