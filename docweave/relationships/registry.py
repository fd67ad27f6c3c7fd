"""
Per-model relationship registry.
"""

from __future__ import annotations

from typing import Iterator

from docweave.infrastructure.logging import get_logger

from .descriptor import RelationshipDescriptor, RelationshipKind

logger = get_logger(__name__)


class RelationshipRegistry:
    """Declared relationships keyed by their virtual field name."""

    def __init__(self) -> None:
        self._relationships: dict[str, RelationshipDescriptor] = {}

    def register(self, name: str, descriptor: RelationshipDescriptor) -> None:
        self._relationships[name] = descriptor
        logger.debug(
            f"Registered relationship {name} -> {descriptor.related_name} "
            f"({descriptor.kind.value})"
        )

    def get(self, name: str) -> RelationshipDescriptor | None:
        return self._relationships.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._relationships

    def __iter__(self) -> Iterator[str]:
        return iter(self._relationships)

    def __len__(self) -> int:
        return len(self._relationships)

    def items(self):
        return self._relationships.items()

    def cascading(self) -> list[tuple[str, RelationshipDescriptor]]:
        return [(name, rel) for name, rel in self._relationships.items() if rel.cascade]

    def of_kind(self, kind: RelationshipKind) -> list[tuple[str, RelationshipDescriptor]]:
        return [(name, rel) for name, rel in self._relationships.items() if rel.kind is kind]
