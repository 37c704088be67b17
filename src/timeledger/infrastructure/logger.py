"""
Logger Module

Named loggers for the engine and the report layer. Handlers live on the
``timeledger`` package logger; component loggers propagate to it.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

PACKAGE_LOGGER = "timeledger"

# Written at the project root unless a path is given
_LOG_FILE_NAME = "timeledger.log"

_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _get_project_root() -> Path:
    return Path(__file__).parent.parent.parent.parent


def _configure_package_logger(log_file: Optional[str]) -> logging.Logger:
    root = logging.getLogger(PACKAGE_LOGGER)
    if root.handlers:
        return root

    root.setLevel(logging.DEBUG)
    formatter = logging.Formatter(fmt=_FORMAT, datefmt=_DATE_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(formatter)
    root.addHandler(console_handler)

    # Skipped day records and corrected settings only show up here
    log_path = Path(log_file) if log_file else _get_project_root() / _LOG_FILE_NAME
    try:
        file_handler = logging.FileHandler(log_path, mode="a", encoding="utf-8", delay=True)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)
    except OSError as e:
        root.warning(f"Cannot create log file {log_path}: {e}")

    return root


def get_logger(name: str, log_file: Optional[str] = None) -> logging.Logger:
    """
    Get the logger of one component, e.g. ``get_logger("WorkClassifier")``.

    The first call sets up a console handler (INFO) and a file handler
    (DEBUG) on the package logger.

    Args:
        name: Component name, appended to the package logger name
        log_file: Log file used when the package logger is first set up

    Returns:
        Logger named ``timeledger.<name>``
    """
    _configure_package_logger(log_file)
    return logging.getLogger(f"{PACKAGE_LOGGER}.{name}")


def set_console_level(level: int) -> None:
    """Change the console verbosity, e.g. to DEBUG while tracing a month."""
    for handler in _configure_package_logger(None).handlers:
        if type(handler) is logging.StreamHandler:
            handler.setLevel(level)
