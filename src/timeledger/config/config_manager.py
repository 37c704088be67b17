"""
Configuration Manager Module

Handles loading, saving, and managing application configuration.
Provides bi-directional mapping between the JSON file and the settings
objects consumed by the engine.
"""

import json
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from timeledger.domain.entities import (
    BreakDeductionOrder, Shift, StatusCategory, StatusClass, StatusItem,
    WorkSettings
)
from timeledger.infrastructure.logger import get_logger

logger = get_logger("ConfigManager")


@dataclass
class ShiftConfig:
    """A shift as stored in the config file. Null hours mean a rest day."""
    id: str
    name: str
    start_hour: Optional[int] = None
    end_hour: Optional[int] = None


def _default_shifts() -> List[ShiftConfig]:
    return [
        ShiftConfig("morning", "Morning", 8, 14),
        ShiftConfig("afternoon", "Afternoon", 14, 20),
        ShiftConfig("evening", "Evening", 16, 22),
        ShiftConfig("night", "Night", 21, 3),
        ShiftConfig("rest", "Rest", None, None),
    ]


@dataclass
class WorkRules:
    """Work rules: standard day, night window, holidays and automatic break."""
    standard_day_hours: float = 6
    night_start_hour: int = 22
    night_end_hour: int = 6
    treat_holiday_as_overtime: bool = True
    deduct_auto_break: bool = False
    auto_break_threshold_hours: float = 6
    auto_break_minutes: float = 30
    auto_break_order: str = BreakDeductionOrder.DIURNAL_FIRST.value
    shifts: List[ShiftConfig] = field(default_factory=_default_shifts)


@dataclass
class Holidays:
    """Holiday settings used to flag days before classification."""
    custom_dates: list = field(default_factory=list)
    sundays_are_holidays: bool = True


@dataclass
class OutputSettings:
    """Output settings for generated reports."""
    output_dir: str = ""  # Default empty = project root
    timesheet_pattern: str = "Timesheet_{year}_{month}.xlsx"
    balances_pdf_pattern: str = "Balances_{year}.pdf"
    generate_pdf: bool = True
    custom_font_path: str = ""


@dataclass
class AppConfig:
    """Main application configuration container."""
    work_rules: WorkRules = field(default_factory=WorkRules)
    holidays: Holidays = field(default_factory=Holidays)
    status_items: list = field(default_factory=list)  # list of dicts, see status_item_to_dict
    output_settings: OutputSettings = field(default_factory=OutputSettings)


class ConfigManager:
    """
    Manages application configuration with JSON persistence.

    Responsibilities:
    - Load configuration from JSON file
    - Save configuration to JSON file
    - Provide default configuration
    - Convert between dataclass and dict representations
    - Build validated WorkSettings and StatusItem lists for the engine
    """

    DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "config.json"

    def __init__(self, config_path: Optional[Path] = None):
        self.config_path = config_path or self.DEFAULT_CONFIG_PATH
        self._config: AppConfig = AppConfig()

    @property
    def config(self) -> AppConfig:
        """Get current configuration."""
        return self._config

    def load(self) -> AppConfig:
        """Load configuration from JSON file."""
        if self.config_path.exists():
            try:
                with open(self.config_path, 'r', encoding='utf-8') as f:
                    data = json.load(f)
                self._config = self._dict_to_config(data)
            except (json.JSONDecodeError, KeyError, TypeError, AttributeError) as e:
                logger.warning(f"Failed to load config {self.config_path}, using defaults: {e}")
                self._config = AppConfig()
        else:
            self._config = AppConfig()
        return self._config

    def save(self) -> None:
        """Save current configuration to JSON file."""
        data = self._config_to_dict(self._config)
        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.config_path, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2, ensure_ascii=False)

    def update(self, **kwargs) -> None:
        """Update specific configuration values."""
        for key, value in kwargs.items():
            if hasattr(self._config, key):
                setattr(self._config, key, value)
        self.save()

    def work_settings(self) -> WorkSettings:
        """Build validated WorkSettings from the current configuration."""
        return build_work_settings(self._config.work_rules)

    def status_items(self) -> List[StatusItem]:
        """Build the benefit-code master list from the current configuration."""
        return build_status_items(self._config.status_items)

    def _config_to_dict(self, config: AppConfig) -> dict:
        """Convert AppConfig dataclass to dictionary."""
        return {
            "work_rules": {
                "standard_day_hours": config.work_rules.standard_day_hours,
                "night_start_hour": config.work_rules.night_start_hour,
                "night_end_hour": config.work_rules.night_end_hour,
                "treat_holiday_as_overtime": config.work_rules.treat_holiday_as_overtime,
                "deduct_auto_break": config.work_rules.deduct_auto_break,
                "auto_break_threshold_hours": config.work_rules.auto_break_threshold_hours,
                "auto_break_minutes": config.work_rules.auto_break_minutes,
                "auto_break_order": config.work_rules.auto_break_order,
                "shifts": [
                    {
                        "id": s.id,
                        "name": s.name,
                        "start_hour": s.start_hour,
                        "end_hour": s.end_hour
                    }
                    for s in config.work_rules.shifts
                ]
            },
            "holidays": {
                "custom_dates": config.holidays.custom_dates,
                "sundays_are_holidays": config.holidays.sundays_are_holidays
            },
            "status_items": list(config.status_items),
            "output_settings": {
                "output_dir": config.output_settings.output_dir,
                "timesheet_pattern": config.output_settings.timesheet_pattern,
                "balances_pdf_pattern": config.output_settings.balances_pdf_pattern,
                "generate_pdf": config.output_settings.generate_pdf,
                "custom_font_path": config.output_settings.custom_font_path
            }
        }

    def _dict_to_config(self, data: dict) -> AppConfig:
        """Convert dictionary to AppConfig dataclass."""
        rules_data = data.get("work_rules", {})
        holidays_data = data.get("holidays", {})
        output_data = data.get("output_settings", {})

        # Build WorkRules
        defaults = WorkRules()
        shifts_data = rules_data.get("shifts")
        shifts = (
            [
                ShiftConfig(
                    id=str(s.get("id", "")),
                    name=s.get("name", ""),
                    start_hour=s.get("start_hour"),
                    end_hour=s.get("end_hour")
                )
                for s in shifts_data
            ]
            if shifts_data is not None else _default_shifts()
        )
        work_rules = WorkRules(
            standard_day_hours=rules_data.get("standard_day_hours", defaults.standard_day_hours),
            night_start_hour=rules_data.get("night_start_hour", defaults.night_start_hour),
            night_end_hour=rules_data.get("night_end_hour", defaults.night_end_hour),
            treat_holiday_as_overtime=rules_data.get(
                "treat_holiday_as_overtime", defaults.treat_holiday_as_overtime
            ),
            deduct_auto_break=rules_data.get("deduct_auto_break", defaults.deduct_auto_break),
            auto_break_threshold_hours=rules_data.get(
                "auto_break_threshold_hours", defaults.auto_break_threshold_hours
            ),
            auto_break_minutes=rules_data.get("auto_break_minutes", defaults.auto_break_minutes),
            auto_break_order=rules_data.get("auto_break_order", defaults.auto_break_order),
            shifts=shifts
        )

        # Build Holidays
        holidays = Holidays(
            custom_dates=holidays_data.get("custom_dates", []),
            sundays_are_holidays=holidays_data.get("sundays_are_holidays", True)
        )

        # Build OutputSettings
        output_settings = OutputSettings(
            output_dir=output_data.get("output_dir", ""),
            timesheet_pattern=output_data.get("timesheet_pattern", "Timesheet_{year}_{month}.xlsx"),
            balances_pdf_pattern=output_data.get("balances_pdf_pattern", "Balances_{year}.pdf"),
            generate_pdf=output_data.get("generate_pdf", True),
            custom_font_path=output_data.get("custom_font_path", "")
        )

        return AppConfig(
            work_rules=work_rules,
            holidays=holidays,
            status_items=list(data.get("status_items", [])),
            output_settings=output_settings
        )


# ==============================================================================
# Engine settings builders
# ==============================================================================
def _number(value, default, name, allow_zero=False):
    """Return ``value`` as a float if finite and positive, else ``default``."""
    if isinstance(value, bool):
        value = None
    try:
        number = float(value)
    except (TypeError, ValueError):
        number = math.nan
    in_range = math.isfinite(number) and (number >= 0 if allow_zero else number > 0)
    if not in_range:
        logger.warning(f"Invalid {name} {value!r}, using {default}")
        return default
    return number


def _hour(value, default, name):
    """Return an integer clock hour in 0..23, else ``default``."""
    if isinstance(value, bool) or not isinstance(value, (int, float)) \
            or not math.isfinite(value) or not 0 <= value < 24:
        logger.warning(f"Invalid {name} {value!r}, using {default}")
        return default
    return int(value)


def build_work_settings(rules: WorkRules) -> WorkSettings:
    """
    Build validated engine settings.

    Ranges: standard_day_hours > 0, night hours in 0..23,
    auto_break_threshold_hours > 0, auto_break_minutes >= 0.
    Out-of-range values fall back to defaults with a warning.
    """
    defaults = WorkRules()

    try:
        order = BreakDeductionOrder(rules.auto_break_order)
    except ValueError:
        logger.warning(f"Unknown auto_break_order {rules.auto_break_order!r}, using diurnal-first")
        order = BreakDeductionOrder.DIURNAL_FIRST

    shifts = []
    for s in rules.shifts:
        start, end = s.start_hour, s.end_hour
        if start is not None and end is not None:
            start = _hour(start, None, f"start hour of shift {s.id}")
            end = _hour(end, None, f"end hour of shift {s.id}")
        if start is None or end is None:
            start = end = None
        shifts.append(Shift(id=s.id, name=s.name, start_hour=start, end_hour=end))

    return WorkSettings(
        standard_day_hours=_number(
            rules.standard_day_hours, defaults.standard_day_hours,
            "standard_day_hours"
        ),
        night_start_hour=_hour(rules.night_start_hour, defaults.night_start_hour, "night_start_hour"),
        night_end_hour=_hour(rules.night_end_hour, defaults.night_end_hour, "night_end_hour"),
        treat_holiday_as_overtime=bool(rules.treat_holiday_as_overtime),
        deduct_auto_break=bool(rules.deduct_auto_break),
        auto_break_threshold_hours=_number(
            rules.auto_break_threshold_hours, defaults.auto_break_threshold_hours,
            "auto_break_threshold_hours"
        ),
        auto_break_minutes=_number(
            rules.auto_break_minutes, defaults.auto_break_minutes,
            "auto_break_minutes", allow_zero=True
        ),
        shifts=tuple(shifts),
        auto_break_order=order,
    )


def status_item_to_dict(item: StatusItem) -> dict:
    """Convert a StatusItem to its config representation."""
    return {
        "code": item.code,
        "description": item.description,
        "year": item.year,
        "class": item.status_class.value,
        "entitlement": item.entitlement,
        "category": item.category.value,
    }


def status_item_from_dict(data: dict) -> StatusItem:
    """
    Build a StatusItem from its config representation.

    Raises:
        ValueError: If a field is missing or has an unknown value
    """
    try:
        return StatusItem(
            code=int(data["code"]),
            description=str(data.get("description", "")),
            year=int(data["year"]),
            status_class=StatusClass(data.get("class", StatusClass.GPO.value)),
            entitlement=float(data.get("entitlement", 0)),
            category=StatusCategory(data["category"]),
        )
    except (KeyError, TypeError) as e:
        raise ValueError(f"Invalid status item {data!r}: {e}") from e


def build_status_items(raw_items: list) -> List[StatusItem]:
    """Build the benefit-code master list, skipping malformed entries."""
    items = []
    for raw in raw_items:
        try:
            items.append(status_item_from_dict(raw))
        except ValueError as e:
            logger.warning(f"Skipping status item: {e}")
    return items
