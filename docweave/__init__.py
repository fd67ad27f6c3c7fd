"""
docweave - schema-driven document models over MongoDB.

Declare fields, relationships, hooks and validators per collection; get
async CRUD, population and a fluent query/aggregation builder that enforce
those declarations.
"""

from docweave.client import DocumentClient
from docweave.core import (
    AggregationError,
    ConfigurationError,
    CountError,
    DocumentNotFoundError,
    DocweaveError,
    DuplicateKeyError,
    EngineConfig,
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
    load_config,
)
from docweave.fields import FieldBuilder, FieldDescriptor, FieldKind, FieldType
from docweave.hooks import HookPhase
from docweave.models import Model, ModelRegistry
from docweave.plugins import Plugin, SoftDeletePlugin, TimestampPlugin
from docweave.query import AggregationBuilder, Operator, QueryBuilder
from docweave.relationships import RelationshipDescriptor, RelationshipKind

__version__ = "0.1.0"

__all__ = [
    "DocumentClient",
    "EngineConfig",
    "load_config",
    "FieldBuilder",
    "FieldDescriptor",
    "FieldKind",
    "FieldType",
    "HookPhase",
    "Model",
    "ModelRegistry",
    "Plugin",
    "SoftDeletePlugin",
    "TimestampPlugin",
    "AggregationBuilder",
    "Operator",
    "QueryBuilder",
    "RelationshipDescriptor",
    "RelationshipKind",
    "AggregationError",
    "ConfigurationError",
    "CountError",
    "DocumentNotFoundError",
    "DocweaveError",
    "DuplicateKeyError",
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
