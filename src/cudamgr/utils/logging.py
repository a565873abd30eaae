"""Structured logging utilities."""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Any

LOG_FILE_MAX_BYTES = 1_000_000
LOG_FILE_BACKUPS = 3


class StructuredFormatter(logging.Formatter):
    """Formatter that outputs structured log messages."""

    def format(self, record: logging.LogRecord) -> str:
        # Add extra fields if present
        extra = ""
        if hasattr(record, "extra_fields"):
            fields = getattr(record, "extra_fields")
            if fields:
                extra = " " + " ".join(f"{k}={v}" for k, v in fields.items())

        message = super().format(record)
        return f"{message}{extra}"


def configure_logging(
    level: str = "INFO",
    format_string: str | None = None,
    structured: bool = False,
    log_file: Path | str | None = None,
) -> None:
    """Configure logging for cudamgr.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_string: Custom format string
        structured: Use structured logging format
        log_file: Optional rotating log file that always records DEBUG output
    """
    if format_string is None:
        if structured:
            format_string = "%(asctime)s %(levelname)s %(name)s %(message)s"
        else:
            format_string = "%(levelname)s: %(message)s"

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(getattr(logging, level.upper()))

    if structured:
        handler.setFormatter(StructuredFormatter(format_string))
    else:
        handler.setFormatter(logging.Formatter(format_string))

    handlers: list[logging.Handler] = [handler]

    if log_file is not None:
        path = Path(log_file)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.handlers.RotatingFileHandler(
                path,
                maxBytes=LOG_FILE_MAX_BYTES,
                backupCount=LOG_FILE_BACKUPS,
                encoding="utf-8",
            )
        except OSError as e:
            logging.getLogger("cudamgr").warning("Cannot open log file %s: %s", path, e)
        else:
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(
                StructuredFormatter("%(asctime)s %(levelname)s %(name)s %(message)s")
            )
            handlers.append(file_handler)

    # Configure root logger for cudamgr
    logger = logging.getLogger("cudamgr")
    logger.setLevel(logging.DEBUG if log_file is not None else getattr(logging, level.upper()))
    logger.handlers = handlers
    logger.propagate = False


def get_logger(name: str) -> logging.Logger:
    """Get a logger for a cudamgr module.

    Args:
        name: Module name (will be prefixed with cudamgr)

    Returns:
        Configured logger
    """
    if not name.startswith("cudamgr"):
        name = f"cudamgr.{name}"
    return logging.getLogger(name)


class LoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that adds extra fields to log messages."""

    def process(
        self, msg: str, kwargs: dict[str, Any]
    ) -> tuple[str, dict[str, Any]]:
        extra = kwargs.get("extra", {})
        extra["extra_fields"] = self.extra
        kwargs["extra"] = extra
        return msg, kwargs


def get_logger_with_context(name: str, **context: Any) -> LoggerAdapter:
    """Get a logger with additional context fields.

    Args:
        name: Module name
        **context: Context fields to include in all log messages

    Returns:
        LoggerAdapter with context
    """
    logger = get_logger(name)
    return LoggerAdapter(logger, context)


def tail_log(path: Path | str, lines: int = 50) -> list[str]:
    """Return the last lines of a log file (empty if it does not exist)."""
    path = Path(path)
    if not path.exists():
        return []
    with open(path, encoding="utf-8", errors="replace") as f:
        content = f.readlines()
    return [line.rstrip("\n") for line in content[-lines:]]
