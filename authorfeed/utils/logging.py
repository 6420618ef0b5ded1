"""
AuthorFeed Logging Configuration
===============================

Logging for the CLI and the unattended scheduler.

Components log through a :class:`ContextAdapter` carrying the component name
and, where known, the curated source and feed URL being worked on. The file
handler writes one JSON object per line with that context under ``extra``;
the console shows it inline after the message.
"""

import logging
import logging.handlers
import sys
import json
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Any, Optional

# Attributes every LogRecord carries; anything else came in through `extra`.
_RECORD_FIELDS = set(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {
    "message",
    "asctime",
    "taskName",
}

# Shown inline on the console, in this order
_CONSOLE_CONTEXT = ("source_id", "feed_url", "mode")

QUIET_LIBRARIES = ("aiohttp", "asyncio", "feedparser", "charset_normalizer")


def _record_context(record: logging.LogRecord) -> Dict[str, Any]:
    return {k: v for k, v in vars(record).items() if k not in _RECORD_FIELDS}


class StructuredFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "function": record.funcName,
            "line": record.lineno,
        }

        context = _record_context(record)
        if context:
            log_data["extra"] = context

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False, default=str)


class ColoredConsoleFormatter(logging.Formatter):
    """Colored single-line console output with inline source context."""

    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.RESET)
        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")

        line = f"{color}[{timestamp}] {record.levelname:8}{self.RESET} {record.name} - {record.getMessage()}"

        context = _record_context(record)
        inline = " ".join(f"{key}={context[key]}" for key in _CONSOLE_CONTEXT if key in context)
        if inline:
            line += f" ({inline})"

        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)

        return line


def setup_logger(
    name: str = "authorfeed",
    level: str = "INFO",
    log_file: Optional[str] = None,
    console: bool = True,
    structured: bool = False,
    max_file_size: int = 10 * 1024 * 1024,  # 10MB
    backup_count: int = 5,
) -> logging.Logger:
    """Set up logger with console and/or rotating file handlers.

    Args:
        name: Logger name
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Path to log file (optional)
        console: Whether to log to stdout
        structured: Use JSON on the console too (the file is always JSON)
        max_file_size: Rotate the file after this many bytes
        backup_count: Number of rotated files to keep

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level.upper()))
    logger.handlers.clear()

    if console:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(StructuredFormatter() if structured else ColoredConsoleFormatter())
        logger.addHandler(handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        handler = logging.handlers.RotatingFileHandler(
            log_path, maxBytes=max_file_size, backupCount=backup_count, encoding="utf-8"
        )
        handler.setFormatter(StructuredFormatter())
        logger.addHandler(handler)

    return logger


class ContextAdapter(logging.LoggerAdapter):
    """Logger adapter merging bound context into every call's ``extra``."""

    def process(self, msg: Any, kwargs: Dict[str, Any]) -> tuple:
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs

    def bind(self, **context: Any) -> "ContextAdapter":
        """New adapter on the same logger with additional context."""
        merged = dict(self.extra)
        merged.update({k: v for k, v in context.items() if v is not None})
        return ContextAdapter(self.logger, merged)


def get_logger_for_component(
    component_name: str,
    source_id: Optional[int] = None,
    feed_url: Optional[str] = None,
) -> ContextAdapter:
    """Get a logger adapter with component-specific context.

    Args:
        component_name: Name of the component (e.g., 'feed_fetcher', 'scheduler')
        source_id: Curated source being worked on (optional)
        feed_url: Feed URL being worked on (optional)
    """
    adapter = ContextAdapter(
        logging.getLogger(f"authorfeed.{component_name}"),
        {"component": component_name},
    )
    return adapter.bind(source_id=source_id, feed_url=feed_url or None)


def configure_application_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = "logs/authorfeed.log",
    enable_console: bool = True,
    structured_logging: bool = False,
    max_file_size_mb: int = 10,
    backup_count: int = 5,
) -> None:
    """Configure the ``authorfeed`` logger tree from settings values."""
    setup_logger(
        name="authorfeed",
        level=log_level,
        log_file=log_file,
        console=enable_console,
        structured=structured_logging,
        max_file_size=max_file_size_mb * 1024 * 1024,
        backup_count=backup_count,
    )

    for library in QUIET_LIBRARIES:
        logging.getLogger(library).setLevel(logging.WARNING)


class PerformanceLogger:
    """Context manager timing an operation.

    Logs completion at INFO and failure at ERROR, both with
    ``duration_seconds`` in the record context.
    """

    def __init__(self, logger: logging.Logger, operation: str, **kwargs):
        self.logger = logger
        self.operation = operation
        self.context = kwargs
        self._started: Optional[float] = None

    @property
    def elapsed_seconds(self) -> float:
        if self._started is None:
            return 0.0
        return time.monotonic() - self._started

    def __enter__(self) -> "PerformanceLogger":
        self._started = time.monotonic()
        self.logger.debug(f"Starting {self.operation}", extra=self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        duration = self.elapsed_seconds
        context = {**self.context, "duration_seconds": round(duration, 3)}

        if exc_type:
            self.logger.error(f"Failed {self.operation} after {duration:.3f}s: {exc_val}", extra=context)
        else:
            self.logger.info(f"Completed {self.operation} in {duration:.3f}s", extra=context)
