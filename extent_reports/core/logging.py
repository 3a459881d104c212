"""
Logging configuration for ExtentReports.

Library code only calls ``get_logger``; handlers are installed by
``setup_logger``, which the CLI calls once per command.
"""

import logging
import sys
from pathlib import Path
from typing import Optional, TextIO

ROOT_LOGGER = "extent_reports"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Silent until an application configures logging
logging.getLogger(ROOT_LOGGER).addHandler(logging.NullHandler())


class ColoredFormatter(logging.Formatter):
    """Colors the level name (and error messages) for terminal output."""

    COLORS = {
        'DEBUG': '\033[36m',     # Cyan
        'INFO': '\033[94m',      # Blue
        'WARNING': '\033[93m',   # Yellow
        'ERROR': '\033[91m',     # Red
        'CRITICAL': '\033[95m',  # Magenta
    }
    RESET = '\033[0m'
    BOLD = '\033[1m'

    def format(self, record):
        # Handlers share the record; restore it afterwards
        levelname, msg = record.levelname, record.msg
        color = self.COLORS.get(levelname)
        if color:
            record.levelname = f"{color}{levelname}{self.RESET}"
        if record.levelno >= logging.ERROR:
            record.msg = f"{self.BOLD}{msg}{self.RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname, record.msg = levelname, msg


def level_for_verbosity(verbosity: int) -> int:
    """0 = warnings only, 1-2 = progress and sink activity, 3+ = per-test debug."""
    if verbosity <= 0:
        return logging.WARNING
    if verbosity <= 2:
        return logging.INFO
    return logging.DEBUG


def setup_logger(
    name: str = ROOT_LOGGER,
    level: Optional[int] = None,
    log_file: Optional[Path] = None,
    verbosity: int = 0,
    stream: Optional[TextIO] = None,
) -> logging.Logger:
    """
    Set up a logger for ExtentReports.

    Args:
        name: Logger name
        level: Logging level (overrides verbosity if provided)
        log_file: Optional log file, written without colors at DEBUG level
        verbosity: Verbosity level (see ``level_for_verbosity``)
        stream: Console stream (default: stderr)

    Returns:
        Configured logger
    """
    logger = logging.getLogger(name)
    logger.handlers.clear()
    logger.setLevel(level if level is not None else level_for_verbosity(verbosity))

    console_handler = logging.StreamHandler(stream or sys.stderr)
    console_handler.setLevel(logger.level)
    console_handler.setFormatter(ColoredFormatter(LOG_FORMAT))
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(file_handler)

    return logger


def get_logger(name: str = ROOT_LOGGER) -> logging.Logger:
    """Get logger instance."""
    return logging.getLogger(name)
