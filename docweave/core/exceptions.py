"""
Exception hierarchy for docweave.

Every public operation either returns a typed result or raises one of
these. Store and hook failures are wrapped with the context of the
operation that hit them (phase, filter, options, pipeline) and chained to
the original exception with ``raise ... from``.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Error categories."""
    CONNECTION = "connection"
    VALIDATION = "validation"
    INTEGRITY = "integrity"
    HOOK = "hook"
    QUERY = "query"
    WRITE = "write"
    CONFIGURATION = "configuration"
    INTERNAL = "internal"


class DocweaveError(Exception):
    """Base exception for docweave errors."""

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.INTERNAL,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.category = category
        self.details = details or {}
        self.timestamp = datetime.now()

    def to_dict(self) -> dict[str, Any]:
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
        }


class StoreConnectionError(DocweaveError):
    """The document store could not be reached."""

    def __init__(self, message: str, uri: str | None = None, **kwargs: Any) -> None:
        details = kwargs.pop("details", {}) or {}
        if uri:
            details["uri"] = uri
        super().__init__(message, category=ErrorCategory.CONNECTION, details=details)


class ConfigurationError(DocweaveError):
    """Invalid engine configuration."""

    def __init__(self, message: str, config_key: str | None = None) -> None:
        details = {"config_key": config_key} if config_key else {}
        super().__init__(message, category=ErrorCategory.CONFIGURATION, details=details)


class ViolationCode(str, Enum):
    """Codes for built-in field constraint failures."""
    MISSING_REQUIRED = "MISSING_REQUIRED"
    NULL_NOT_ALLOWED = "NULL_NOT_ALLOWED"
    TYPE_MISMATCH = "TYPE_MISMATCH"
    NOT_IN_ENUM = "NOT_IN_ENUM"
    BELOW_MIN = "BELOW_MIN"
    ABOVE_MAX = "ABOVE_MAX"
    PATTERN_MISMATCH = "PATTERN_MISMATCH"
    CUSTOM = "CUSTOM"


class ValidationError(DocweaveError):
    """Aggregated field validation failure.

    ``errors`` maps a field path to every message collected for it, built-in
    constraint failures and custom validator failures alike. ``violations``
    keeps the same failures as ``(field, code, message)`` triples.
    """

    def __init__(
        self,
        message: str,
        errors: dict[str, list[str]] | None = None,
        violations: list[tuple[str, ViolationCode, str]] | None = None,
    ) -> None:
        self.errors = errors or {}
        self.violations = violations or []
        super().__init__(
            message,
            category=ErrorCategory.VALIDATION,
            details={"errors": self.errors},
        )

    @property
    def fields(self) -> list[str]:
        return list(self.errors)

    def codes_for(self, field: str) -> list[ViolationCode]:
        return [code for name, code, _ in self.violations if name == field]

    def __str__(self) -> str:
        if not self.errors:
            return self.message
        summary = "; ".join(
            f"{field}: {', '.join(messages)}" for field, messages in self.errors.items()
        )
        return f"{self.message} ({summary})"


class ImmutableFieldError(DocweaveError):
    """Attempted change of a field declared immutable."""

    def __init__(self, field: str, document_id: Any = None) -> None:
        self.field = field
        self.document_id = document_id
        details: dict[str, Any] = {"field": field}
        if document_id is not None:
            details["document_id"] = str(document_id)
        super().__init__(
            f"Field '{field}' is immutable and cannot be modified",
            category=ErrorCategory.INTEGRITY,
            details=details,
        )


class ForeignKeyViolationError(DocweaveError):
    """A relationship value references a document that does not exist."""

    def __init__(self, field: str, value: Any, related_collection: str) -> None:
        self.field = field
        self.value = value
        super().__init__(
            f"Foreign key violation: {field} references a non-existent "
            f"document in '{related_collection}'",
            category=ErrorCategory.INTEGRITY,
            details={
                "field": field,
                "value": str(value),
                "related_collection": related_collection,
            },
        )


class RelationshipError(DocweaveError):
    """A relationship declaration cannot be resolved."""

    def __init__(self, message: str, field: str | None = None) -> None:
        details = {"field": field} if field else {}
        super().__init__(message, category=ErrorCategory.CONFIGURATION, details=details)


class HookExecutionError(DocweaveError):
    """A lifecycle hook raised."""

    def __init__(
        self,
        phase: str,
        hook_name: str,
        document: Any,
        cause: BaseException,
    ) -> None:
        self.phase = phase
        self.hook_name = hook_name
        self.document = document
        self.cause = cause
        super().__init__(
            f"Hook execution failed: {cause}",
            category=ErrorCategory.HOOK,
            details={"phase": phase, "hook": hook_name, "document": document},
        )


class QueryBuildError(DocweaveError):
    """A query could not be translated to store syntax."""

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message, category=ErrorCategory.QUERY, details=details)


class QueryExecutionError(DocweaveError):
    """The store rejected or failed a read."""

    def __init__(
        self,
        operation: str,
        filter: dict[str, Any] | None = None,
        options: dict[str, Any] | None = None,
        cause: BaseException | None = None,
        message: str | None = None,
    ) -> None:
        self.operation = operation
        self.filter = filter
        self.options = options
        self.cause = cause
        super().__init__(
            message or f"Error in {operation} operation: {cause}",
            category=ErrorCategory.QUERY,
            details={"operation": operation, "filter": filter, "options": options},
        )


class AggregationError(QueryExecutionError):
    """An aggregation pipeline was empty or failed in the store."""

    def __init__(
        self,
        message: str,
        pipeline: list[dict[str, Any]] | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.pipeline = pipeline or []
        super().__init__("aggregate", cause=cause, message=message)
        self.details["pipeline"] = self.pipeline


class CountError(QueryExecutionError):
    """A count query failed."""


class ExplainError(QueryExecutionError):
    """An explain query failed."""


class WriteError(DocweaveError):
    """The store rejected or failed a write."""

    def __init__(
        self,
        operation: str,
        filter: dict[str, Any] | None = None,
        cause: BaseException | None = None,
        message: str | None = None,
    ) -> None:
        self.operation = operation
        self.filter = filter
        self.cause = cause
        super().__init__(
            message or f"Error in {operation} operation: {cause}",
            category=ErrorCategory.WRITE,
            details={"operation": operation, "filter": filter},
        )


class DuplicateKeyError(WriteError):
    """A write collided with a unique index."""


class DocumentNotFoundError(DocweaveError):
    """Update by identifier matched no document."""

    def __init__(self, document_id: Any, collection: str | None = None) -> None:
        self.document_id = document_id
        details: dict[str, Any] = {"document_id": str(document_id)}
        if collection:
            details["collection"] = collection
        super().__init__(
            "Document not found",
            category=ErrorCategory.WRITE,
            details=details,
        )
