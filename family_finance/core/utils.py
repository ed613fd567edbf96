"""Shared utility functions for the Family Finance Ledger project."""

import calendar
import logging
import uuid
from datetime import UTC, date, datetime
from pathlib import Path

import colorlog

MONTH_FORMAT = "%Y-%m"


def get_logger(name: str) -> logging.Logger:
    """Get a logger with a colorized format for the project."""
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = colorlog.ColoredFormatter(
            "%(log_color)s%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
            log_colors={
                "DEBUG": "cyan",
                "INFO": "green",
                "WARNING": "yellow",
                "ERROR": "red",
                "CRITICAL": "bold_red",
            },
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    logger.propagate = False
    return logger


def ensure_dir(path: str | Path) -> None:
    """Ensure a directory exists (like mkdir -p)."""
    Path(path).mkdir(parents=True, exist_ok=True)


def generate_id() -> str:
    """Return a fresh opaque identifier for a new record."""
    return str(uuid.uuid4())


def utcnow_iso() -> str:
    """Get the current UTC time as an ISO8601 string."""
    return datetime.now(UTC).isoformat()


def month_key(value: date) -> str:
    """Return the ``YYYY-MM`` bucket a date belongs to."""
    return value.strftime(MONTH_FORMAT)


def parse_month(month: str) -> date:
    """Parse a ``YYYY-MM`` string into the first day of that month."""
    try:
        return datetime.strptime(month, MONTH_FORMAT).date()
    except ValueError as exc:
        msg = f"Invalid month '{month}', expected YYYY-MM"
        raise ValueError(msg) from exc


def add_months(month: str, offset: int) -> str:
    """Shift a ``YYYY-MM`` month by ``offset`` months."""
    first = parse_month(month)
    index = first.year * 12 + (first.month - 1) + offset
    return f"{index // 12:04d}-{index % 12 + 1:02d}"


def days_in_month(value: date) -> int:
    """Return the number of days in the month of ``value``."""
    return calendar.monthrange(value.year, value.month)[1]
