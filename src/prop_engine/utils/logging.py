"""Structured logging infrastructure.

Usage:
    from prop_engine.utils import get_logger

    logger = get_logger(__name__)
    logger.info("Scoring started")
    logger.error("Upsert failed", exc_info=True)
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

from ..config import get_settings

# Track if logging has been set up
_logging_configured = False


class ColoredFormatter(logging.Formatter):
    """Formatter that adds colors for terminal output."""

    COLORS = {
        "DEBUG": "\033[36m",     # Cyan
        "INFO": "\033[32m",      # Green
        "WARNING": "\033[33m",   # Yellow
        "ERROR": "\033[31m",     # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        record.levelname_colored = f"{color}{record.levelname:8}{self.RESET}"
        return super().format(record)


def setup_logging(
    name: str = "prop_engine",
    level: Optional[str] = None,
    log_to_file: Optional[bool] = None,
    log_dir: Optional[Path] = None,
) -> logging.Logger:
    """Configure logging with console output and an optional daily log file.

    Handlers are attached to the ``prop_engine`` logger rather than the root
    logger, so embedding applications keep control of their own output.

    Args:
        name: Logger name to return
        level: Console log level. Defaults to settings.
        log_to_file: Whether to write to file. Defaults to settings.
        log_dir: Directory for log files. Defaults to settings.

    Returns:
        Configured logger instance
    """
    global _logging_configured

    settings = get_settings()

    level = level or settings.log_level
    log_to_file = log_to_file if log_to_file is not None else settings.log_to_file
    log_dir = log_dir or settings.logs_dir

    if not _logging_configured:
        package_logger = logging.getLogger("prop_engine")
        package_logger.setLevel(logging.DEBUG)  # Capture all, filter at handler level

        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(getattr(logging, level.upper()))
        console_handler.setFormatter(ColoredFormatter(
            "%(asctime)s | %(levelname_colored)s | %(name)s | %(message)s",
            datefmt="%H:%M:%S"
        ))
        package_logger.addHandler(console_handler)

        if log_to_file:
            log_dir.mkdir(parents=True, exist_ok=True)
            log_file = log_dir / f"prop_engine_{datetime.now():%Y-%m-%d}.log"

            file_handler = logging.FileHandler(log_file, encoding="utf-8")
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(logging.Formatter(
                "%(asctime)s | %(levelname)-8s | %(name)s | %(funcName)s:%(lineno)d | %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S"
            ))
            package_logger.addHandler(file_handler)

        _logging_configured = True

    return logging.getLogger(name)


def get_logger(name: str) -> logging.Logger:
    """Get a logger for the given module name.

    This is the primary interface for getting loggers throughout the codebase.
    Handlers are installed lazily by :func:`setup_logging`; until then records
    propagate to whatever the host application configured.

    Args:
        name: Usually pass __name__ to get module-specific logger

    Returns:
        Logger instance
    """
    return logging.getLogger(name)
