"""
Logging configuration for docweave.

Features:
- Structured JSON logging with timestamps
- Coloured human-readable console output
- Ambient context (model, collection, operation) attached to every record
- Dynamic log level control via environment variable or config
"""

import json
import logging
import os
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime
from logging.handlers import RotatingFileHandler
from typing import Any

MAX_FILE_SIZE = 50 * 1024 * 1024  # 50MB
DEFAULT_LOG_LEVEL = os.getenv("DOCWEAVE_LOG_LEVEL", "INFO")

_current_log_level = DEFAULT_LOG_LEVEL.upper()
_log_context: ContextVar[dict[str, Any]] = ContextVar("docweave_log_context", default={})


class StructuredFormatter(logging.Formatter):
    """Formatter that outputs structured JSON logs."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if getattr(record, "context", None):
            log_data["context"] = record.context

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False, default=str)


class HumanFormatter(logging.Formatter):
    """Human-readable formatter for console output."""

    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]

        base_msg = f"[{timestamp}] {color}{record.levelname:8}{self.RESET} | {record.name:30} | {record.getMessage()}"

        if getattr(record, "context", None):
            base_msg += f" | context={json.dumps(record.context, ensure_ascii=False, default=str)}"

        if record.exc_info:
            base_msg += f"\n{self.formatException(record.exc_info)}"

        return base_msg


class ContextFilter(logging.Filter):
    """Filter that copies the ambient log context onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        ambient = _log_context.get()
        existing = getattr(record, "context", None) or {}
        record.context = {**ambient, **existing}
        return True


class DocweaveLogger(logging.Logger):
    """Logger with structured context helpers."""

    def _log_with_context(
        self,
        level: int,
        msg: str,
        args: tuple,
        context: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> None:
        if not self.isEnabledFor(level):
            return
        extra = kwargs.get("extra", {})
        extra["context"] = {**_log_context.get(), **(context or {})}
        kwargs["extra"] = extra
        super()._log(level, msg, args, **kwargs)

    def info_with_context(self, msg: str, context: dict[str, Any] | None = None, *args: Any, **kwargs: Any) -> None:
        self._log_with_context(logging.INFO, msg, args, context, **kwargs)

    def error_with_context(self, msg: str, context: dict[str, Any] | None = None, *args: Any, **kwargs: Any) -> None:
        self._log_with_context(logging.ERROR, msg, args, context, **kwargs)

    def warning_with_context(self, msg: str, context: dict[str, Any] | None = None, *args: Any, **kwargs: Any) -> None:
        self._log_with_context(logging.WARNING, msg, args, context, **kwargs)

    def debug_with_context(self, msg: str, context: dict[str, Any] | None = None, *args: Any, **kwargs: Any) -> None:
        self._log_with_context(logging.DEBUG, msg, args, context, **kwargs)


logging.setLoggerClass(DocweaveLogger)


def setup_logging(
    level: str | None = None,
    json_format: bool = False,
    log_file: str | None = None,
    enable_console: bool = True,
) -> None:
    """
    Setup logging for the ``docweave`` logger tree.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use structured JSON on the console
        log_file: Optional path for a rotating JSON log file
        enable_console: Enable console logging
    """
    global _current_log_level

    if level:
        _current_log_level = level.upper()
    numeric_level = getattr(logging, _current_log_level, logging.INFO)

    package_logger = logging.getLogger("docweave")
    package_logger.setLevel(numeric_level)

    for handler in package_logger.handlers[:]:
        package_logger.removeHandler(handler)

    if enable_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(StructuredFormatter() if json_format else HumanFormatter())
        console_handler.addFilter(ContextFilter())
        console_handler.setLevel(numeric_level)
        package_logger.addHandler(console_handler)

    if log_file:
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=MAX_FILE_SIZE,
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setFormatter(StructuredFormatter())
        file_handler.addFilter(ContextFilter())
        file_handler.setLevel(numeric_level)
        package_logger.addHandler(file_handler)

    logging.getLogger("pymongo").setLevel(logging.WARNING)


def get_logger(name: str) -> DocweaveLogger:
    """
    Get a logger instance.

    Args:
        name: Logger name (usually __name__)

    Returns:
        DocweaveLogger instance
    """
    logger = logging.getLogger(name)
    if not isinstance(logger, DocweaveLogger):
        # created before this module set the logger class
        logger.__class__ = DocweaveLogger
    return logger  # type: ignore[return-value]


def set_log_level(level: str) -> None:
    """
    Dynamically set the log level.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    global _current_log_level
    _current_log_level = level.upper()
    numeric_level = getattr(logging, _current_log_level, logging.INFO)

    package_logger = logging.getLogger("docweave")
    package_logger.setLevel(numeric_level)
    for handler in package_logger.handlers:
        handler.setLevel(numeric_level)


def get_log_level() -> str:
    """Get the current log level."""
    return _current_log_level


class LogContext:
    """Context manager for adding context to logs (task-local)."""

    def __init__(self, **kwargs: Any):
        self._new_context = kwargs
        self._token: Any = None

    def __enter__(self) -> "LogContext":
        self._token = _log_context.set({**_log_context.get(), **self._new_context})
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        _log_context.reset(self._token)

    @classmethod
    def get_context(cls) -> dict[str, Any]:
        return dict(_log_context.get())


def get_log_context() -> dict[str, Any]:
    """Get a copy of the ambient log context."""
    return LogContext.get_context()


@contextmanager
def log_context(**kwargs: Any):
    """
    Context manager for adding context to logs.

    Usage:
        with log_context(model="User", operation="save"):
            logger.info("Persisting document")
    """
    with LogContext(**kwargs):
        yield
