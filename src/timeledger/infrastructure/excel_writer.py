"""
Excel Writer Module

Generates the monthly timesheet workbook with styling.
One sheet lists the classified days, a second one the yearly balances.
"""

from pathlib import Path
from typing import Optional, Sequence

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from timeledger.domain.entities import BalanceRow, DayRow, MonthlyTimesheet, WorkDaySummary
from timeledger.domain.timeutils import format_date_key, format_hours_decimal, ms_to_hours
from timeledger.infrastructure.logger import get_logger

logger = get_logger("ExcelWriter")


# ==============================================================================
# Custom Exceptions
# ==============================================================================
class TimeledgerError(Exception):
    """Base exception for timeledger errors."""
    pass


class ReportError(TimeledgerError):
    """Raised when a report cannot be written."""
    def __init__(self, path: Path, message: str = None):
        self.path = path
        self.message = message or f"Cannot write report '{path}'"
        super().__init__(self.message)


WEEKDAY_NAMES = ['Mon', 'Tue', 'Wed', 'Thu', 'Fri', 'Sat', 'Sun']
MONTH_NAMES = ['Jan', 'Feb', 'Mar', 'Apr', 'May', 'Jun',
               'Jul', 'Aug', 'Sep', 'Oct', 'Nov', 'Dec']

# (header, WorkDaySummary attribute)
BUCKET_COLUMNS = [
    ("Worked", "total_work_ms"),
    ("Standard", "standard_work_ms"),
    ("Excess", "excess_hours_ms"),
    ("OT Diurnal", "overtime_diurnal_ms"),
    ("OT Nocturnal", "overtime_nocturnal_ms"),
    ("OT Holiday", "overtime_holiday_ms"),
    ("OT Noct. Holiday", "overtime_nocturnal_holiday_ms"),
    ("Null Hours", "null_hours_ms"),
]


def _hours_text(ms: int) -> str:
    return format_hours_decimal(ms_to_hours(ms)) if ms else ""


class ExcelWriter:
    """
    Generates the monthly timesheet workbook.

    Output format:
    - Sheet "Timesheet": one row per day (date, shift, leave, buckets,
      meal voucher, review flag) and a totals row
    - Sheet "Balances": one row per benefit code with the monthly movements

    Styling:
    - Gray rows for holidays
    - Yellow review cell for days with incomplete punches
    - Green/Red balance cells for positive/negative balances
    """

    COLORS = {
        'green': PatternFill(start_color='90EE90', end_color='90EE90', fill_type='solid'),
        'red': PatternFill(start_color='FF6B6B', end_color='FF6B6B', fill_type='solid'),
        'yellow': PatternFill(start_color='FFD700', end_color='FFD700', fill_type='solid'),
        'gray': PatternFill(start_color='D3D3D3', end_color='D3D3D3', fill_type='solid'),
        'header': PatternFill(start_color='4472C4', end_color='4472C4', fill_type='solid'),
    }

    BORDER = Border(
        left=Side(style='thin'),
        right=Side(style='thin'),
        top=Side(style='thin'),
        bottom=Side(style='thin')
    )

    THICK_SIDE = Side(style='medium')

    def __init__(self):
        self.wb: Optional[Workbook] = None

    def create_report(
        self,
        timesheet: MonthlyTimesheet,
        output_path: Path,
        balances: Sequence[BalanceRow] = ()
    ) -> Path:
        """
        Create the timesheet workbook.

        Args:
            timesheet: Classified month
            output_path: Path to save the Excel file
            balances: Yearly balance rows; the sheet is omitted when empty

        Returns:
            Path to the created file

        Raises:
            ReportError: If the file cannot be written
        """
        self.wb = Workbook()

        # Remove default sheet
        default_sheet = self.wb.active
        self.wb.remove(default_sheet)

        self._write_timesheet(self.wb.create_sheet("Timesheet"), timesheet)
        if balances:
            self._write_balances(self.wb.create_sheet("Balances"), balances, timesheet.year)

        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            self.wb.save(output_path)
        except OSError as e:
            raise ReportError(output_path, f"Cannot write timesheet '{output_path}': {e}") from e
        logger.info(f"Timesheet saved: {output_path}")
        return output_path

    def _header_cell(self, ws, row: int, col: int, text: str):
        cell = ws.cell(row, col, text)
        cell.font = Font(bold=True, color='FFFFFF')
        cell.fill = self.COLORS['header']
        cell.alignment = Alignment(horizontal='center', vertical='center', wrap_text=True)
        cell.border = self.BORDER
        return cell

    def _write_timesheet(self, ws, timesheet: MonthlyTimesheet):
        """Write one row per day followed by the totals row."""
        headers = (
            ["Date", "Day", "Shift", "Leave"]
            + [header for header, _ in BUCKET_COLUMNS]
            + ["Meal Voucher", "Review"]
        )
        for col, text in enumerate(headers, start=1):
            self._header_cell(ws, 1, col, text)

        voucher_col = 5 + len(BUCKET_COLUMNS)
        review_col = voucher_col + 1

        current_row = 2
        for row in timesheet.rows:
            self._write_day_row(ws, current_row, row, voucher_col, review_col)
            current_row += 1

        # Totals row
        ws.cell(current_row, 1, "Total").font = Font(bold=True)
        self._write_buckets(ws, current_row, timesheet.totals, bold=True)
        total_voucher = ws.cell(current_row, voucher_col, timesheet.voucher_count)
        total_voucher.font = Font(bold=True)
        for col in range(1, review_col + 1):
            cell = ws.cell(current_row, col)
            cell.border = Border(
                top=self.THICK_SIDE,
                bottom=self.THICK_SIDE,
                left=self.BORDER.left,
                right=self.BORDER.right
            )
            cell.alignment = Alignment(horizontal='center')

        # Adjust column widths
        ws.column_dimensions['A'].width = 12
        ws.column_dimensions['B'].width = 6
        ws.column_dimensions['C'].width = 14
        ws.column_dimensions['D'].width = 16
        for col in range(5, voucher_col):
            ws.column_dimensions[get_column_letter(col)].width = 11
        ws.column_dimensions[get_column_letter(voucher_col)].width = 13
        ws.column_dimensions[get_column_letter(review_col)].width = 9
        ws.row_dimensions[1].height = 32
        ws.freeze_panes = 'B2'

    def _write_day_row(self, ws, r: int, row: DayRow, voucher_col: int, review_col: int):
        info = row.day_info
        leaves = ", ".join(
            f"{leave.type} ({leave.hours:g}h)" if leave.hours else leave.type
            for leave in info.leaves
        )
        ws.cell(r, 1, format_date_key(row.day))
        ws.cell(r, 2, WEEKDAY_NAMES[row.day.weekday()])
        ws.cell(r, 3, ", ".join(info.shift_ids) + (" on-call" if info.is_on_call else ""))
        ws.cell(r, 4, leaves)
        self._write_buckets(ws, r, row.summary)

        voucher_cell = ws.cell(r, voucher_col, "Yes" if row.voucher else "")
        if row.voucher:
            voucher_cell.fill = self.COLORS['green']
        review_cell = ws.cell(r, review_col, "Check" if row.needs_review else "")
        if row.needs_review:
            review_cell.fill = self.COLORS['yellow']

        for col in range(1, review_col + 1):
            cell = ws.cell(r, col)
            cell.border = self.BORDER
            if col > 4:
                cell.alignment = Alignment(horizontal='center')
            if info.is_holiday and col < voucher_col:
                cell.fill = self.COLORS['gray']

    def _write_buckets(self, ws, r: int, summary: WorkDaySummary, bold: bool = False):
        for offset, (_, attr) in enumerate(BUCKET_COLUMNS):
            cell = ws.cell(r, 5 + offset, _hours_text(getattr(summary, attr)))
            if bold:
                cell.font = Font(bold=True)

    def _write_balances(self, ws, balances: Sequence[BalanceRow], year: int):
        """Write one row per benefit code with entitlement, usage and balance."""
        headers = (
            ["Code", "Description", "Class", "Unit", "Entitlement", "Used", "Balance"]
            + MONTH_NAMES
        )
        for col, text in enumerate(headers, start=1):
            self._header_cell(ws, 1, col, text)
        ws.cell(1, len(headers) + 1, f"Year {year}").font = Font(italic=True)

        for r, row in enumerate(balances, start=2):
            item = row.item
            values = [
                item.code,
                item.description,
                item.status_class.value,
                "hours" if item.is_hourly else "days",
                self._amount(item.entitlement, item.is_hourly),
                self._amount(row.used, item.is_hourly),
                self._amount(row.balance, item.is_hourly),
            ] + [self._amount(m, item.is_hourly) if m else "" for m in row.monthly]

            for col, value in enumerate(values, start=1):
                cell = ws.cell(r, col, value)
                cell.border = self.BORDER
                if col != 2:
                    cell.alignment = Alignment(horizontal='center')

            balance_cell = ws.cell(r, 7)
            balance_cell.font = Font(bold=True)
            balance_cell.fill = self.COLORS['red'] if row.balance < 0 else self.COLORS['green']

        ws.column_dimensions['A'].width = 8
        ws.column_dimensions['B'].width = 28
        for col in range(3, len(headers) + 1):
            ws.column_dimensions[get_column_letter(col)].width = 11

    @staticmethod
    def _amount(value: float, hourly: bool):
        """Hours as signed HH:MM text, days as a number."""
        if hourly:
            return format_hours_decimal(value)
        return round(value, 2)
