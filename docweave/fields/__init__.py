"""
Field declarations: descriptors, the fluent builder and the per-model registry.
"""

from .builder import FieldBuilder, relationship_field
from .descriptor import MISSING, FieldDescriptor, FieldKind, FieldType
from .registry import FieldRegistry, update_touches

__all__ = [
    "FieldBuilder",
    "FieldDescriptor",
    "FieldKind",
    "FieldRegistry",
    "FieldType",
    "MISSING",
    "relationship_field",
    "update_touches",
]
