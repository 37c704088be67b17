"""
Report Service Module

Application layer service that orchestrates report generation:
the monthly timesheet workbook and the annual balance statement.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from timeledger.application.timesheet_service import TimesheetService
from timeledger.config.config_manager import AppConfig
from timeledger.domain.timeutils import ms_to_hours
from timeledger.infrastructure.excel_writer import ExcelWriter, ReportError
from timeledger.infrastructure.logger import get_logger
from timeledger.infrastructure.pdf_writer import PdfWriter, format_filename

logger = get_logger("ReportService")

PROJECT_ROOT = Path(__file__).parent.parent.parent.parent


@dataclass
class ReportGenerationParams:
    """
    Parameters for report generation.

    Decouples the service from AppConfig so callers can build it directly.
    """
    year: int
    month: int
    output_dir: Path
    timesheet_pattern: str = "Timesheet_{year}_{month}.xlsx"
    balances_pdf_pattern: str = "Balances_{year}.pdf"
    generate_pdf: bool = True
    include_balances_sheet: bool = True
    custom_font_path: Optional[str] = None


@dataclass
class ReportResult:
    """Result of report generation."""
    success: bool
    timesheet_path: Path
    pdf_path: Optional[Path] = None
    year: int = 0
    month: int = 0
    worked_hours: float = 0.0
    voucher_count: int = 0
    review_days: int = 0
    error_message: str = ""


class TimesheetReportService:
    """
    Application service for writing reports.

    Depends only on the timesheet service and the writers.
    """

    def __init__(self, timesheet_service: TimesheetService):
        self.timesheet_service = timesheet_service

    def generate_report(self, params: ReportGenerationParams) -> ReportResult:
        """
        Generate the monthly workbook and, when enabled, the balance statement.

        A failing PDF does not fail the workbook; its error is reported in
        ``error_message``.

        Raises:
            ReportError: If the workbook cannot be written
        """
        logger.info(f"Building timesheet {params.year}-{params.month:02d}")
        timesheet = self.timesheet_service.build_month(params.year, params.month)
        balances = self.timesheet_service.build_year_balances(params.year)

        output_dir = Path(params.output_dir)
        timesheet_path = output_dir / format_filename(params.timesheet_pattern, params.year, params.month)
        ExcelWriter().create_report(
            timesheet,
            timesheet_path,
            balances=balances if params.include_balances_sheet else ()
        )

        result = ReportResult(
            success=True,
            timesheet_path=timesheet_path,
            year=params.year,
            month=params.month,
            worked_hours=ms_to_hours(timesheet.totals.total_work_ms),
            voucher_count=timesheet.voucher_count,
            review_days=len(timesheet.review_days),
        )

        if params.generate_pdf:
            pdf_path = output_dir / format_filename(params.balances_pdf_pattern, params.year, params.month)
            details = self.timesheet_service.usage_details(params.year)
            try:
                PdfWriter(custom_font_path=params.custom_font_path).create_balance_statement(
                    balances, params.year, pdf_path, details=details
                )
                result.pdf_path = pdf_path
            except ReportError as e:
                logger.error(f"PDF generation failed: {e}")
                result.error_message = str(e)

        return result

    @staticmethod
    def build_params_from_config(
        config: AppConfig,
        year: int,
        month: int,
        generate_pdf: Optional[bool] = None
    ) -> ReportGenerationParams:
        """
        Build ReportGenerationParams from AppConfig.

        An empty output dir means the project root.
        """
        output = config.output_settings
        return ReportGenerationParams(
            year=year,
            month=month,
            output_dir=Path(output.output_dir) if output.output_dir else PROJECT_ROOT,
            timesheet_pattern=output.timesheet_pattern,
            balances_pdf_pattern=output.balances_pdf_pattern,
            generate_pdf=output.generate_pdf if generate_pdf is None else generate_pdf,
            custom_font_path=output.custom_font_path or None,
        )
