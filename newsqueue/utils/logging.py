"""
NewsQueue Logging Configuration
==============================

Logging setup shared by every component: JSON records for files, colored
lines for the console, and adapters that stamp each record with the
component and, where known, the subscriber, source and item it concerns.
"""

import logging
import logging.handlers
import sys
import time
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Any, Optional


ROOT_LOGGER = "newsqueue"

# Attributes every LogRecord carries; anything else arrived through ``extra``
_RECORD_ATTRIBUTES = frozenset(
    logging.LogRecord("", logging.INFO, "", 0, "", (), None).__dict__
) | {"message", "asctime", "taskName"}

# Context keys shown inline on console lines, in this order
CONSOLE_CONTEXT_KEYS = ("subscriber_id", "source_ref", "item_id")


def _record_context(record: logging.LogRecord) -> Dict[str, Any]:
    return {k: v for k, v in record.__dict__.items() if k not in _RECORD_ATTRIBUTES}


class StructuredFormatter(logging.Formatter):
    """One JSON object per record, with ``extra`` context under its own key."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "message": record.getMessage(),
            "location": f"{record.module}:{record.funcName}:{record.lineno}",
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        context = _record_context(record)
        if context:
            log_data["context"] = context

        return json.dumps(log_data, ensure_ascii=False, default=str)


class ColoredConsoleFormatter(logging.Formatter):
    """Colored console formatter for development."""

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

        context = _record_context(record)
        tags = " ".join(
            f"{key}={context[key]}" for key in CONSOLE_CONTEXT_KEYS if context.get(key) is not None
        )

        formatted = (
            f"{color}[{timestamp}] {record.levelname:8}{self.RESET} "
            f"{context.get('component', record.name)} [{record.threadName}] "
            f"{record.getMessage()}"
        )
        if tags:
            formatted += f" ({tags})"

        if record.exc_info:
            formatted += "\n" + self.formatException(record.exc_info)

        return formatted


def setup_logger(
    name: str = ROOT_LOGGER,
    level: str = "INFO",
    log_file: Optional[str] = None,
    console: bool = True,
    structured: bool = False,
    max_file_size: int = 10 * 1024 * 1024,
    backup_count: int = 5,
) -> logging.Logger:
    """Set up logger with console and rotating file handlers.

    Calling it again replaces the handlers installed by the previous call.

    Args:
        name: Logger name
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Path to log file (optional)
        console: Whether to log to console
        structured: Whether console output is JSON as well
        max_file_size: Maximum log file size in bytes
        backup_count: Number of backup log files to keep

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level.upper()))

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    if console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(StructuredFormatter() if structured else ColoredConsoleFormatter())
        logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            log_path, maxBytes=max_file_size, backupCount=backup_count, encoding="utf-8"
        )
        # Files are always JSON
        file_handler.setFormatter(StructuredFormatter())
        logger.addHandler(file_handler)

    return logger


class LoggerAdapter(logging.LoggerAdapter):
    """Adapter that merges its fixed context into every record's ``extra``."""

    def process(self, msg: Any, kwargs: Dict[str, Any]) -> tuple:
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs

    def bind(self, **context: Any) -> "LoggerAdapter":
        """Adapter with additional context, e.g. the subscriber of one run."""
        merged = dict(self.extra)
        merged.update({k: v for k, v in context.items() if v is not None})
        return LoggerAdapter(self.logger, merged)


def get_logger_for_component(
    component_name: str,
    subscriber_id: Optional[str] = None,
    item_id: Optional[int] = None,
    source_ref: Optional[str] = None,
) -> LoggerAdapter:
    """Get a logger adapter with component-specific context.

    Args:
        component_name: Name of the component (e.g. 'pipeline', 'task_registry')
        subscriber_id: Associated subscriber ID (optional)
        item_id: Associated content item ID (optional)
        source_ref: Associated source link (optional)

    Returns:
        Logger adapter named ``newsqueue.<component_name>``
    """
    base_logger = logging.getLogger(f"{ROOT_LOGGER}.{component_name}")
    adapter = LoggerAdapter(base_logger, {"component": component_name})
    return adapter.bind(subscriber_id=subscriber_id, item_id=item_id, source_ref=source_ref)


def configure_application_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = "logs/newsqueue.log",
    enable_console: bool = True,
    structured_logging: bool = False,
    max_file_size_mb: int = 10,
    backup_count: int = 5,
) -> None:
    """Configure the ``newsqueue`` logger tree and quiet noisy libraries.

    Args:
        log_level: Global log level
        log_file: Path to main log file, or None for no file output
        enable_console: Whether to enable console logging
        structured_logging: Whether console output is JSON
        max_file_size_mb: Rotation size of the log file
        backup_count: Number of rotated files to keep
    """
    setup_logger(
        name=ROOT_LOGGER,
        level=log_level,
        log_file=log_file,
        console=enable_console,
        structured=structured_logging,
        max_file_size=max_file_size_mb * 1024 * 1024,
        backup_count=backup_count,
    )

    # HTTP clients log every request at DEBUG
    for noisy in ("urllib3", "requests", "httpx", "httpcore"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
    logging.getLogger("telegram").setLevel(logging.INFO)


def get_scheduler_logger(subscriber_id: Optional[str] = None) -> LoggerAdapter:
    """Get logger for scheduling components."""
    return get_logger_for_component("scheduler", subscriber_id=subscriber_id)


def get_delivery_logger(subscriber_id: Optional[str] = None) -> LoggerAdapter:
    """Get logger for delivery components."""
    return get_logger_for_component("delivery", subscriber_id=subscriber_id)


class PerformanceLogger:
    """Times a block and logs its duration with the given context.

    Usage:
        with PerformanceLogger(logger, "ingestion cycle", subscriber_id=sid) as timer:
            ...
        timer.duration  # seconds, also set when the block raised
    """

    def __init__(self, logger: logging.Logger, operation: str, **context: Any):
        self.logger = logger
        self.operation = operation
        self.context = context
        self.start_time: Optional[float] = None
        self.duration: float = 0.0

    def __enter__(self) -> "PerformanceLogger":
        self.start_time = time.monotonic()
        self.logger.debug(f"Starting {self.operation}", extra=dict(self.context))
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self.start_time is None:
            return

        self.duration = time.monotonic() - self.start_time
        context = {**self.context, "duration_seconds": round(self.duration, 3), "success": exc_type is None}

        if exc_type:
            self.logger.error(f"Failed {self.operation} after {self.duration:.3f}s: {exc_val}", extra=context)
        else:
            self.logger.info(f"Completed {self.operation} in {self.duration:.3f}s", extra=context)
