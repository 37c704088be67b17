"""
PDF Writer Module

Generates the annual balance statement using fpdf2.
Mirrors the balances sheet of the workbook: one row per benefit code with
the monthly movements, followed by the dated movements of each code.
"""

import sys
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from fpdf import FPDF

from timeledger.domain.entities import BalanceRow, UsageEntry
from timeledger.domain.timeutils import format_hours_decimal
from timeledger.infrastructure.excel_writer import MONTH_NAMES, ReportError
from timeledger.infrastructure.logger import get_logger

logger = get_logger("PdfWriter")


# ==============================================================================
# Font Configuration
# ==============================================================================
WINDOWS_FONT_PATHS: List[Path] = [
    Path("C:/Windows/Fonts/arial.ttf"),
    Path("C:/Windows/Fonts/segoeui.ttf"),
]

MACOS_FONT_PATHS: List[Path] = [
    Path("/Library/Fonts/Arial Unicode.ttf"),
    Path("/System/Library/Fonts/Supplemental/Arial.ttf"),
]

LINUX_FONT_PATHS: List[Path] = [
    Path("/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf"),
    Path("/usr/share/fonts/TTF/DejaVuSans.ttf"),
    Path("/usr/share/fonts/truetype/liberation/LiberationSans-Regular.ttf"),
]

FALLBACK_FONT = "Helvetica"


def find_unicode_font(custom_font_path: Optional[str] = None) -> Optional[Path]:
    """Search for a TrueType font able to render accented descriptions."""
    if custom_font_path:
        custom_path = Path(custom_font_path)
        if custom_path.exists():
            logger.info(f"Using custom font: {custom_path}")
            return custom_path
        logger.warning(f"Custom font not found: {custom_path}")

    for font_path in _get_platform_fonts():
        if font_path.exists():
            logger.debug(f"Found system font: {font_path}")
            return font_path
    return None


def _get_platform_fonts() -> List[Path]:
    """Get the font search list for the current platform."""
    if sys.platform == 'win32':
        return WINDOWS_FONT_PATHS
    elif sys.platform == 'darwin':
        return MACOS_FONT_PATHS
    else:
        return LINUX_FONT_PATHS


# ==============================================================================
# BalancePdf Class (A4 Landscape)
# ==============================================================================
class BalancePdf(FPDF):
    """FPDF page template with title header and page-number footer."""

    _font_family: str = FALLBACK_FONT
    _font_loaded: bool = False

    def __init__(self, title: str = "", custom_font_path: Optional[str] = None):
        super().__init__(orientation='L', unit='mm', format='A4')
        self.title_text = title
        self._setup_font(custom_font_path)

    def _setup_font(self, custom_font_path: Optional[str] = None) -> None:
        font_path = find_unicode_font(custom_font_path)
        if font_path is None:
            logger.debug("No TrueType font found, using core Helvetica")
            return
        try:
            self.add_font("BodyFont", "", str(font_path))
        except (OSError, RuntimeError) as e:
            logger.warning(f"Cannot load font {font_path}: {e}")
            return
        self._font_family = "BodyFont"
        self._font_loaded = True

    @property
    def font_family_name(self) -> str:
        return self._font_family

    def safe_text(self, value: str) -> str:
        """Core fonts only cover latin-1; replace anything else."""
        if self._font_loaded:
            return value
        return value.encode('latin-1', 'replace').decode('latin-1')

    def header(self) -> None:
        self.set_font(self._font_family, '', 14)
        self.cell(0, 10, self.safe_text(self.title_text), align='C', new_x='LMARGIN', new_y='NEXT')
        self.ln(2)

    def footer(self) -> None:
        self.set_y(-12)
        self.set_font(self._font_family, '', 8)
        self.cell(0, 10, f'Page {self.page_no()}/{{nb}}', align='C')


# ==============================================================================
# PdfWriter Class
# ==============================================================================
class PdfWriter:
    """
    Generates the annual balance statement.

    Features:
    - A4 Landscape with the twelve monthly columns
    - Balance cell colored green (positive) or red (negative)
    - Optional per-code movement detail on the following pages
    """

    COLORS: Dict[str, Tuple[int, int, int]] = {
        'green': (144, 238, 144),
        'red': (255, 107, 107),
        'gray': (211, 211, 211),
        'header': (68, 114, 196),
        'white': (255, 255, 255),
    }

    PAGE_HEIGHT = 210

    CODE_COL_WIDTH = 14
    DESCRIPTION_COL_WIDTH = 50
    CLASS_COL_WIDTH = 12
    AMOUNT_COL_WIDTH = 20
    MONTH_COL_WIDTH = 11.5

    HEADER_ROW_HEIGHT = 8
    DATA_ROW_HEIGHT = 7

    def __init__(self, custom_font_path: Optional[str] = None):
        self._custom_font_path = custom_font_path

    def create_balance_statement(
        self,
        balances: Sequence[BalanceRow],
        year: int,
        output_path: Path,
        details: Optional[Mapping[int, Sequence[UsageEntry]]] = None
    ) -> Path:
        """
        Create the annual balance statement.

        Args:
            balances: Balance rows, one per benefit code
            year: Statement year
            output_path: Path to save the PDF
            details: Dated movements keyed by code

        Returns:
            Path to the created file

        Raises:
            ReportError: If the file cannot be written
        """
        pdf = BalancePdf(title=f"Balance statement {year}", custom_font_path=self._custom_font_path)
        pdf.alias_nb_pages()
        pdf.set_auto_page_break(auto=False)
        pdf.add_page()

        self._draw_balance_table(pdf, balances)

        if details:
            self._draw_details(pdf, balances, details)

        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            pdf.output(str(output_path))
        except OSError as e:
            raise ReportError(output_path, f"Cannot write balance statement '{output_path}': {e}") from e
        logger.info(f"Balance statement saved: {output_path}")
        return output_path

    def _columns(self) -> List[Tuple[str, float]]:
        return (
            [
                ("Code", self.CODE_COL_WIDTH),
                ("Description", self.DESCRIPTION_COL_WIDTH),
                ("Class", self.CLASS_COL_WIDTH),
                ("Entitled", self.AMOUNT_COL_WIDTH),
                ("Used", self.AMOUNT_COL_WIDTH),
                ("Balance", self.AMOUNT_COL_WIDTH),
            ]
            + [(name, self.MONTH_COL_WIDTH) for name in MONTH_NAMES]
        )

    def _draw_header_row(self, pdf: BalancePdf, columns: List[Tuple[str, float]]) -> None:
        pdf.set_font(pdf.font_family_name, '', 8)
        pdf.set_fill_color(*self.COLORS['header'])
        pdf.set_text_color(*self.COLORS['white'])
        for title, width in columns:
            pdf.cell(width, self.HEADER_ROW_HEIGHT, title, border=1, align='C', fill=True)
        pdf.ln(self.HEADER_ROW_HEIGHT)
        pdf.set_text_color(0, 0, 0)

    def _draw_balance_table(self, pdf: BalancePdf, balances: Sequence[BalanceRow]) -> None:
        columns = self._columns()
        self._draw_header_row(pdf, columns)

        if not balances:
            pdf.set_font(pdf.font_family_name, '', 9)
            pdf.cell(0, self.DATA_ROW_HEIGHT, "No benefit codes for this year.", align='L')
            pdf.ln(self.DATA_ROW_HEIGHT)
            return

        for row in balances:
            if pdf.get_y() + self.DATA_ROW_HEIGHT > self.PAGE_HEIGHT - 15:
                pdf.add_page()
                self._draw_header_row(pdf, columns)

            item = row.item
            hourly = item.is_hourly
            values = [
                str(item.code),
                pdf.safe_text(item.description),
                item.status_class.value,
                format_amount(item.entitlement, hourly),
                format_amount(row.used, hourly),
                format_amount(row.balance, hourly),
            ] + [format_amount(m, hourly) if m else "" for m in row.monthly]

            pdf.set_font(pdf.font_family_name, '', 8)
            for index, ((_, width), value) in enumerate(zip(columns, values)):
                fill = False
                if index == 5:
                    pdf.set_fill_color(*(self.COLORS['red'] if row.balance < 0 else self.COLORS['green']))
                    fill = True
                align = 'L' if index == 1 else 'C'
                pdf.cell(width, self.DATA_ROW_HEIGHT, value, border=1, align=align, fill=fill)
            pdf.ln(self.DATA_ROW_HEIGHT)

    def _draw_details(
        self,
        pdf: BalancePdf,
        balances: Sequence[BalanceRow],
        details: Mapping[int, Sequence[UsageEntry]]
    ) -> None:
        """Dated movements per code, each block under its own title."""
        pdf.add_page()
        for row in balances:
            movements = details.get(row.item.code) or ()
            if not movements:
                continue
            if pdf.get_y() + 3 * self.DATA_ROW_HEIGHT > self.PAGE_HEIGHT - 15:
                pdf.add_page()

            pdf.set_font(pdf.font_family_name, '', 10)
            pdf.cell(0, self.HEADER_ROW_HEIGHT, pdf.safe_text(f"{row.item.code} - {row.item.description}"),
                     new_x='LMARGIN', new_y='NEXT')
            pdf.set_font(pdf.font_family_name, '', 8)
            pdf.set_fill_color(*self.COLORS['gray'])
            for title, width in (("Date", 30), ("Amount", 25), ("Source", 25)):
                pdf.cell(width, self.DATA_ROW_HEIGHT, title, border=1, align='C', fill=True)
            pdf.ln(self.DATA_ROW_HEIGHT)

            for movement in movements:
                if pdf.get_y() + self.DATA_ROW_HEIGHT > self.PAGE_HEIGHT - 15:
                    pdf.add_page()
                pdf.cell(30, self.DATA_ROW_HEIGHT, movement.date.isoformat(), border=1, align='C')
                pdf.cell(25, self.DATA_ROW_HEIGHT,
                         format_amount(movement.amount, row.item.is_hourly), border=1, align='C')
                pdf.cell(25, self.DATA_ROW_HEIGHT, movement.source, border=1, align='C')
                pdf.ln(self.DATA_ROW_HEIGHT)
            pdf.ln(3)


# ==============================================================================
# Utility Functions
# ==============================================================================
def format_amount(value: float, hourly: bool) -> str:
    """Hours as signed HH:MM, days with up to two decimals."""
    if hourly:
        return format_hours_decimal(value)
    return f"{value:.2f}".rstrip('0').rstrip('.')


def format_filename(pattern: str, year: int, month: int = 1) -> str:
    """Format filename pattern with placeholders."""
    return pattern.format(
        year=year,
        month=f"{month:02d}"
    )
