"""
Infrastructure Logging Module.

Provides structured logging with ambient context.
"""

from .logging_config import (
    ContextFilter,
    DocweaveLogger,
    HumanFormatter,
    LogContext,
    StructuredFormatter,
    get_log_context,
    get_log_level,
    get_logger,
    log_context,
    set_log_level,
    setup_logging,
)

__all__ = [
    "ContextFilter",
    "DocweaveLogger",
    "HumanFormatter",
    "LogContext",
    "StructuredFormatter",
    "get_log_context",
    "get_log_level",
    "get_logger",
    "log_context",
    "set_log_level",
    "setup_logging",
]
