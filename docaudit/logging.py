"""Centralized logging configuration for docaudit.

This module provides:
- Console logging to stderr (reports own stdout) in plain text or JSON
- Optional rotating file handler
- Scan ID context propagation via contextvars
- Helper for getting module loggers
"""

import logging
import sys
import uuid
from contextvars import ContextVar
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

from pythonjsonlogger.json import JsonFormatter

# Context variable for scan ID propagation
_scan_id: ContextVar[str | None] = ContextVar("scan_id", default=None)

CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

LOG_FILE_MAX_BYTES = 5 * 1024 * 1024
LOG_FILE_BACKUP_COUNT = 3


def get_scan_id() -> str | None:
    """Get the current scan ID from context."""
    return _scan_id.get()


def set_scan_id(scan_id: str | None) -> None:
    """Set the scan ID in context."""
    _scan_id.set(scan_id)


def new_scan_id() -> str:
    """Generate a scan ID, store it in context and return it."""
    scan_id = uuid.uuid4().hex[:12]
    set_scan_id(scan_id)
    return scan_id


class ContextFilter(logging.Filter):
    """Filter that adds the scan ID to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.scan_id = get_scan_id()  # type: ignore[attr-defined]
        return True


class CustomJsonFormatter(JsonFormatter):
    """Custom JSON formatter with ISO timestamp and scan ID."""

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record["timestamp"] = datetime.now(UTC).isoformat()
        log_record["level"] = record.levelname
        log_record["component"] = record.name

        if hasattr(record, "scan_id") and record.scan_id:
            log_record["scan_id"] = record.scan_id


def setup_logging(
    level: str = "WARNING",
    log_format: str = "text",
    log_file: str | None = None,
) -> None:
    """Configure logging for a docaudit run.

    Sets up:
    - Console handler on stderr, plain text or JSON
    - File handler (RotatingFileHandler) with plain text when ``log_file`` is set

    Args:
        level: Log level name
        log_format: ``"text"`` or ``"json"``
        log_file: Optional path of a log file
    """
    log_level = getattr(logging, level.upper(), logging.WARNING)

    # Only the package logger is configured; embedding applications keep theirs.
    pkg_logger = logging.getLogger("docaudit")
    pkg_logger.setLevel(log_level)

    for handler in list(pkg_logger.handlers):
        pkg_logger.removeHandler(handler)
        handler.close()
    for log_filter in list(pkg_logger.filters):
        pkg_logger.removeFilter(log_filter)

    context_filter = ContextFilter()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(log_level)
    console_handler.addFilter(context_filter)
    if log_format == "json":
        console_handler.setFormatter(CustomJsonFormatter("%(message)s"))
    else:
        console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    pkg_logger.addHandler(console_handler)

    if log_file:
        try:
            log_path = Path(log_file)
            log_path.parent.mkdir(parents=True, exist_ok=True)

            file_handler = RotatingFileHandler(
                filename=str(log_path),
                maxBytes=LOG_FILE_MAX_BYTES,
                backupCount=LOG_FILE_BACKUP_COUNT,
                encoding="utf-8",
            )
            file_handler.setLevel(log_level)
            file_handler.addFilter(context_filter)
            file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
            pkg_logger.addHandler(file_handler)
        except OSError as e:
            pkg_logger.warning(f"Could not set up file logging: {e}")

    pkg_logger.debug(f"Logging configured: level={level}, format={log_format}, file={log_file}")


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the given name.

    Args:
        name: Logger name, typically __name__ of the calling module

    Returns:
        Logger instance
    """
    return logging.getLogger(name)
