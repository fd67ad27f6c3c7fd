"""
Inter-model relationships: declaration and population.
"""

from .descriptor import RelationshipDescriptor, RelationshipKind
from .registry import RelationshipRegistry
from .resolver import RelationshipResolver

__all__ = [
    "RelationshipDescriptor",
    "RelationshipKind",
    "RelationshipRegistry",
    "RelationshipResolver",
]
