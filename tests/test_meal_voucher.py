"""
Unit tests for meal voucher eligibility.
"""

from datetime import date, datetime
from pathlib import Path

import pytest

import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from timeledger.domain.entities import MealVoucherRecord, PunchType, TimeEntry
from timeledger.domain.meal_voucher import (
    count_vouchers, describe_sessions, is_voucher_earned, voucher_for_day, worked_hours
)


def at(hour: int, minute: int = 0, day: int = 4) -> datetime:
    return datetime(2025, 3, day, hour, minute)


def worked(*spans):
    entries = []
    for index, (start, end) in enumerate(spans):
        entries.append(TimeEntry(f"in{index}", start, PunchType.IN))
        entries.append(TimeEntry(f"out{index}", end, PunchType.OUT))
    return entries


class TestIsVoucherEarned:
    """Tests for the voucher rule."""

    def test_single_seven_hour_interval(self):
        assert is_voucher_earned(worked((at(8), at(15)))) is True

    def test_six_hours_with_short_break(self):
        entries = worked((at(8), at(11)), (at(12, 30), at(15, 30)))
        assert is_voucher_earned(entries) is True

    def test_six_hours_with_long_break(self):
        entries = worked((at(8), at(11)), (at(14), at(17)))
        assert is_voucher_earned(entries) is False

    def test_break_of_exactly_two_hours(self):
        entries = worked((at(8), at(11)), (at(13), at(16)))
        assert is_voucher_earned(entries) is True

    def test_continuous_seven_hours_ignores_breaks(self):
        entries = worked((at(6), at(13)), (at(18), at(19)))
        assert is_voucher_earned(entries) is True

    def test_single_six_hour_interval(self):
        assert is_voucher_earned(worked((at(8), at(14)))) is True

    def test_under_six_hours(self):
        assert is_voucher_earned(worked((at(8), at(13, 59)))) is False

    def test_double_clock_in_keeps_first(self):
        entries = [
            TimeEntry("a", at(8), PunchType.IN),
            TimeEntry("b", at(12), PunchType.IN),
            TimeEntry("c", at(16), PunchType.OUT),
        ]
        assert is_voucher_earned(entries) is True
        assert worked_hours(entries) == 8

    @pytest.mark.parametrize("entries", [
        [],
        [TimeEntry("a", at(8), PunchType.IN)],
        [TimeEntry("a", at(8), PunchType.OUT), TimeEntry("b", at(17), PunchType.OUT)],
    ])
    def test_incomplete_days(self, entries):
        assert is_voucher_earned(entries) is False


class TestSessions:
    """Tests for the session detail."""

    def test_describe_sessions(self):
        report = describe_sessions(worked((at(8), at(11)), (at(12, 30), at(15, 30))))

        assert len(report.sessions) == 2
        assert report.sessions[0].hours == 3.0
        assert report.sessions[0].break_after_hours == 1.5
        assert report.sessions[1].break_after_hours is None
        assert report.total_hours == 6.0
        assert report.break_hours == 1.5
        assert report.eligible is True

    def test_worked_hours(self):
        assert worked_hours(worked((at(8), at(12, 30)))) == 4.5


class TestManualOverride:
    """Tests for manual voucher records."""

    def test_manual_record_overrides_rule(self):
        record = MealVoucherRecord(date(2025, 3, 4), earned=True)
        assert voucher_for_day([], record) is True

    def test_manual_record_can_revoke(self):
        record = MealVoucherRecord(date(2025, 3, 4), earned=False)
        assert voucher_for_day(worked((at(8), at(16))), record) is False

    def test_non_manual_record_uses_punches(self):
        record = MealVoucherRecord(date(2025, 3, 4), earned=True, manual=False)
        assert voucher_for_day([], record) is False

    def test_count_vouchers(self):
        entries_by_date = {
            "2025-03-03": worked((at(8, day=3), at(16, day=3))),
            "2025-03-04": worked((at(8), at(10))),
            "2025-04-01": worked((at(8, day=1).replace(month=4), at(16, day=1).replace(month=4))),
            "bad-key": worked((at(8), at(16))),
        }
        records = {"2025-03-05": MealVoucherRecord(date(2025, 3, 5), earned=True)}

        assert count_vouchers(entries_by_date, records, 2025, 3) == 2
        assert count_vouchers(entries_by_date, records, 2025) == 3
        assert count_vouchers(entries_by_date, records, 2024) == 0
