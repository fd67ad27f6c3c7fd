"""
Core building blocks shared by every docweave module.
"""

from .config import (
    EngineConfig,
    LoggingSettings,
    SchemaSettings,
    StoreSettings,
    load_config,
)
from .exceptions import (
    AggregationError,
    ConfigurationError,
    CountError,
    DocumentNotFoundError,
    DocweaveError,
    DuplicateKeyError,
    ErrorCategory,
    ExplainError,
    ForeignKeyViolationError,
    HookExecutionError,
    ImmutableFieldError,
    QueryBuildError,
    QueryExecutionError,
    RelationshipError,
    StoreConnectionError,
    ValidationError,
    ViolationCode,
    WriteError,
)

__all__ = [
    "EngineConfig",
    "LoggingSettings",
    "SchemaSettings",
    "StoreSettings",
    "load_config",
    "AggregationError",
    "ConfigurationError",
    "CountError",
    "DocumentNotFoundError",
    "DocweaveError",
    "DuplicateKeyError",
    "ErrorCategory",
    "ExplainError",
    "ForeignKeyViolationError",
    "HookExecutionError",
    "ImmutableFieldError",
    "QueryBuildError",
    "QueryExecutionError",
    "RelationshipError",
    "StoreConnectionError",
    "ValidationError",
    "ViolationCode",
    "WriteError",
]
