"""
Unit tests for the application layer: holiday calendar, timesheet
assembly, consumption warnings and report generation.
"""

import pytest
from unittest.mock import patch
from datetime import date, datetime, timedelta
from pathlib import Path
import tempfile

from openpyxl import load_workbook

import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from timeledger.application.holidays import HolidayCalendar
from timeledger.application.report_service import (
    ReportGenerationParams, TimesheetReportService
)
from timeledger.application.timesheet_service import (
    ConsumptionWarning, TimesheetData, TimesheetService, check_consumption
)
from timeledger.config.config_manager import AppConfig, ConfigManager, Holidays, status_item_to_dict
from timeledger.domain.entities import (
    CalendarEvent, DayInfo, EventType, LeaveDeclaration, ManualOvertimeEntry, MealVoucherRecord,
    MS_PER_HOUR, PunchType, StatusCategory, StatusClass, StatusItem, TimeEntry,
    WorkSettings
)
from timeledger.infrastructure.excel_writer import ReportError
from timeledger.infrastructure.pdf_writer import PdfWriter

H = MS_PER_HOUR

VACATION = StatusItem(15, "Ferie", 2025, StatusClass.GPO, 3, StatusCategory.LEAVE_DAY)
PERMIT = StatusItem(40, "Permesso", 2025, StatusClass.GPO, 10, StatusCategory.LEAVE_HOURS)
OVERTIME = StatusItem(2041, "Straordinario", 2025, StatusClass.ACC, 0, StatusCategory.OVERTIME)
ITEMS = [VACATION, PERMIT, OVERTIME]


def worked(day: date, *spans):
    entries = []
    for index, (start_h, end_h) in enumerate(spans):
        start = datetime.combine(day, datetime.min.time()) + timedelta(hours=start_h)
        end = datetime.combine(day, datetime.min.time()) + timedelta(hours=end_h)
        entries.append(TimeEntry(f"{day}-in{index}", start, PunchType.IN))
        entries.append(TimeEntry(f"{day}-out{index}", end, PunchType.OUT))
    return entries


def _data() -> TimesheetData:
    return TimesheetData(
        entries_by_date={
            "2025-03-03": worked(date(2025, 3, 3), (8, 12), (13, 17)),
            "2025-03-04": worked(date(2025, 3, 4), (8, 12))[:1],
            "2025-03-09": worked(date(2025, 3, 9), (9, 13)),
            "2025-03-10": worked(date(2025, 3, 10), (8, 15)),
        },
        day_info_by_date={
            "2025-03-05": DayInfo(leave=LeaveDeclaration("code-15")),
            "2025-03-06": DayInfo(leave=LeaveDeclaration("code-40", 4)),
        },
        manual_overtime_by_date={
            "2025-03-03": [ManualOvertimeEntry("m1", 2 * H, "Straordinario")],
        },
        voucher_records_by_date={
            "2025-03-11": MealVoucherRecord(date(2025, 3, 11), earned=True),
            "2025-03-10": MealVoucherRecord(date(2025, 3, 10), earned=False),
        },
    )


def _service(**kwargs) -> TimesheetService:
    return TimesheetService(_data(), WorkSettings(), HolidayCalendar(), ITEMS, **kwargs)


class TestHolidayCalendar:
    """Tests for HolidayCalendar."""

    def test_sunday_rule(self):
        calendar = HolidayCalendar()
        assert calendar.is_holiday(date(2025, 3, 9)) is True
        assert calendar.is_holiday(date(2025, 3, 10)) is False

    def test_sunday_rule_disabled(self):
        assert HolidayCalendar(sundays_are_holidays=False).is_holiday(date(2025, 3, 9)) is False

    def test_custom_dates(self):
        calendar = HolidayCalendar(["2025-12-25", date(2025, 12, 26), "garbage"], False)
        assert calendar.is_holiday(date(2025, 12, 25)) is True
        assert calendar.is_holiday(date(2025, 12, 26)) is True
        assert len(calendar.custom_dates) == 2

    def test_apply_sets_flag_without_mutating(self):
        info = DayInfo(shift="morning")
        flagged = HolidayCalendar().apply(date(2025, 3, 9), info)

        assert flagged.is_holiday is True
        assert flagged.shift == "morning"
        assert info.is_holiday is False

    def test_apply_keeps_stored_flag(self):
        info = DayInfo(is_holiday=True)
        assert HolidayCalendar().apply(date(2025, 3, 10), info) is info

    @pytest.mark.parametrize("reference", ["code-10", " code-10 ", "holiday"])
    def test_holiday_leave_sets_flag(self, reference):
        info = DayInfo(leave=LeaveDeclaration(reference))
        assert HolidayCalendar(sundays_are_holidays=False).apply(date(2025, 3, 10), info).is_holiday is True

    def test_holiday_leave_in_event_list(self):
        info = DayInfo(events=(
            CalendarEvent(EventType.SHIFT, shift="morning"),
            CalendarEvent(EventType.LEAVE, leave=LeaveDeclaration("code-10")),
        ))
        assert HolidayCalendar().apply(date(2025, 3, 10), info).is_holiday is True

    def test_other_leave_is_not_a_holiday(self):
        info = DayInfo(leave=LeaveDeclaration("code-15"))
        assert HolidayCalendar().apply(date(2025, 3, 10), info).is_holiday is False

    def test_from_config(self):
        calendar = HolidayCalendar.from_config(Holidays(["2025-08-15"], False))
        assert calendar.is_holiday(date(2025, 8, 15)) is True
        assert calendar.sundays_are_holidays is False


class TestTimesheetService:
    """Tests for day classification and monthly assembly."""

    def test_summarize_day_with_manual_overtime(self):
        summary = _service().summarize_day(date(2025, 3, 3))

        assert summary.total_work_ms == 8 * H
        assert summary.standard_work_ms == 6 * H
        assert summary.overtime_diurnal_ms == 2 * H

    def test_sunday_is_holiday_overtime(self):
        summary = _service().summarize_day(date(2025, 3, 9))
        assert summary.overtime_holiday_ms == 4 * H

    def test_classification_is_memoized(self):
        service = _service()
        assert service.classify(date(2025, 3, 3)) is service.classify(date(2025, 3, 3))

    def test_build_month(self):
        month = _service().build_month(2025, 3)

        assert len(month.rows) == 31
        assert month.totals.total_work_ms == (8 + 4 + 7) * H
        assert month.totals.bucket_sum_ms == month.totals.total_work_ms
        assert month.review_days == [date(2025, 3, 4)]

    def test_vouchers_with_overrides(self):
        month = _service().build_month(2025, 3)
        vouchers = [row.day for row in month.rows if row.voucher]

        # 03-10 earned by punches but revoked, 03-11 granted manually
        assert vouchers == [date(2025, 3, 3), date(2025, 3, 11)]
        assert month.voucher_count == 2

    def test_holiday_leave_routes_work_to_holiday_overtime(self):
        data = TimesheetData(
            entries_by_date={"2025-03-12": worked(date(2025, 3, 12), (8, 12))},
            day_info_by_date={"2025-03-12": DayInfo(leave=LeaveDeclaration("code-10"))},
        )
        summary = TimesheetService(data).summarize_day(date(2025, 3, 12))

        assert summary.overtime_holiday_ms == 4 * H
        assert summary.standard_work_ms == 0

    def test_list_fields_from_json_are_hashable(self):
        info = DayInfo(events=[CalendarEvent(EventType.SHIFT, shift="morning")])
        manual = ManualOvertimeEntry("m1", 2 * H, "Straordinario", used_entry_ids=["x"])
        data = TimesheetData(
            entries_by_date={"2025-03-12": worked(date(2025, 3, 12), (8, 16))},
            day_info_by_date={"2025-03-12": info},
            manual_overtime_by_date={"2025-03-12": [manual]},
        )

        summary = TimesheetService(data).summarize_day(date(2025, 3, 12))

        assert info.events == (CalendarEvent(EventType.SHIFT, shift="morning"),)
        assert manual.used_entry_ids == ("x",)
        assert summary.overtime_diurnal_ms == 2 * H

    def test_unparseable_keys_are_dropped(self):
        data = TimesheetData(entries_by_date={"31/03/2025": worked(date(2025, 3, 31), (8, 9))})
        service = TimesheetService(data)
        assert service.summarize_day(date(2025, 3, 31)).total_work_ms == 0

    def test_year_balances(self):
        rows = {row.item.code: row for row in _service().build_year_balances(2025)}

        assert rows[15].used == 1
        assert rows[15].balance == 2
        assert rows[40].balance == 6
        assert rows[40].monthly[2] == -4
        assert rows[2041].used == 2
        assert rows[2041].balance == 2

    def test_usage_details(self):
        details = _service().usage_details(2025)
        assert [d.date for d in details[40]] == [date(2025, 3, 6)]
        assert details[2041][0].source == "overtime"

    def test_from_config(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            manager = ConfigManager(Path(tmpdir) / "config.json")
            manager.config.status_items = [status_item_to_dict(PERMIT)]
            manager.config.work_rules.standard_day_hours = 8

            service = TimesheetService.from_config(manager, _data())

            assert service.settings.standard_day_hours == 8
            assert service.status_items == [PERMIT]
            assert service.summarize_day(date(2025, 3, 3)).excess_hours_ms == 0


class TestCheckConsumption:
    """Tests for consumption warnings."""

    def test_plenty_left(self):
        assert check_consumption(PERMIT, {40: 2}, 4) == ConsumptionWarning.NONE

    def test_exhausted(self):
        assert check_consumption(PERMIT, {40: 10}, 1) == ConsumptionWarning.EXHAUSTED

    def test_overdraft(self):
        assert check_consumption(PERMIT, 8, 4) == ConsumptionWarning.OVERDRAFT

    def test_low_day_balance(self):
        assert check_consumption(VACATION, {15: 1}, 1) == ConsumptionWarning.LOW_BALANCE

    def test_hourly_code_has_no_low_threshold(self):
        assert check_consumption(PERMIT, {40: 9}, 0.5) == ConsumptionWarning.NONE

    def test_accrual_codes_never_warn(self):
        assert check_consumption(OVERTIME, {2041: -50}, 100) == ConsumptionWarning.NONE

    def test_service_wrapper(self):
        service = _service()
        assert service.check_consumption(15, 2025, 1) == ConsumptionWarning.LOW_BALANCE
        assert service.check_consumption(40, 2025, 8) == ConsumptionWarning.OVERDRAFT
        assert service.check_consumption(999, 2025, 1) == ConsumptionWarning.NONE


class TestReportService:
    """Tests for report generation."""

    def test_generates_workbook_and_pdf(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            params = ReportGenerationParams(year=2025, month=3, output_dir=Path(tmpdir))
            result = TimesheetReportService(_service()).generate_report(params)

            assert result.success is True
            assert result.timesheet_path == Path(tmpdir) / "Timesheet_2025_03.xlsx"
            assert result.pdf_path == Path(tmpdir) / "Balances_2025.pdf"
            assert result.timesheet_path.exists()
            assert result.pdf_path.exists()
            assert result.worked_hours == 19
            assert result.voucher_count == 2
            assert result.review_days == 1
            assert load_workbook(result.timesheet_path).sheetnames == ["Timesheet", "Balances"]

    def test_pdf_failure_keeps_workbook(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            params = ReportGenerationParams(year=2025, month=3, output_dir=Path(tmpdir))
            error = ReportError(Path(tmpdir) / "Balances_2025.pdf", "disk full")
            with patch.object(PdfWriter, "create_balance_statement", side_effect=error):
                result = TimesheetReportService(_service()).generate_report(params)

            assert result.success is True
            assert result.timesheet_path.exists()
            assert result.pdf_path is None
            assert result.error_message == "disk full"

    def test_pdf_disabled(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            params = ReportGenerationParams(
                year=2025, month=3, output_dir=Path(tmpdir), generate_pdf=False
            )
            result = TimesheetReportService(_service()).generate_report(params)
            assert result.pdf_path is None
            assert not (Path(tmpdir) / "Balances_2025.pdf").exists()

    def test_build_params_from_config(self):
        config = AppConfig()
        config.output_settings.output_dir = "/tmp/reports"
        config.output_settings.generate_pdf = False

        params = TimesheetReportService.build_params_from_config(config, 2025, 4)

        assert params.output_dir == Path("/tmp/reports")
        assert params.generate_pdf is False
        assert params.timesheet_pattern == "Timesheet_{year}_{month}.xlsx"
        assert TimesheetReportService.build_params_from_config(
            config, 2025, 4, generate_pdf=True
        ).generate_pdf is True
