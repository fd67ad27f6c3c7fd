"""
Relationship descriptors.

A relationship is declared on the host model under a virtual field name.
That field is never stored; it is filled at read time by population.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Union

from docweave.core.exceptions import RelationshipError

if TYPE_CHECKING:
    from docweave.models.model import Model
    from docweave.models.registry import ModelRegistry

ModelRef = Union["Model", str]


class RelationshipKind(str, Enum):
    """Cardinality of a declared relationship."""
    ONE_TO_ONE = "one_to_one"
    ONE_TO_MANY = "one_to_many"
    MANY_TO_MANY = "many_to_many"


@dataclass(frozen=True)
class RelationshipDescriptor:
    """
    One declared association.

    ``foreign_key`` names the linking attribute:
    - ONE_TO_ONE: attribute on the host holding the related ``_id``
    - ONE_TO_MANY: attribute on the related documents holding the host ``_id``
    - MANY_TO_MANY: attribute on the junction documents holding the host ``_id``;
      ``target_key`` is the junction attribute holding the related ``_id``
    """

    kind: RelationshipKind
    related_model: ModelRef
    foreign_key: str
    cascade: bool = False
    bidirectional: bool = False
    inverse_field: str | None = None
    through: ModelRef | None = None
    target_key: str | None = None

    def __post_init__(self) -> None:
        if self.kind is RelationshipKind.MANY_TO_MANY and self.through is None:
            raise RelationshipError(
                "Many-to-many relationships need a junction model (through=...)"
            )

    @property
    def related_name(self) -> str:
        return _model_name(self.related_model)

    @property
    def junction_target_key(self) -> str:
        """Junction attribute holding the related id."""
        return self.target_key or f"{self.related_name.lower()}_id"

    def resolve_related(self, registry: ModelRegistry | None) -> Model:
        return _resolve(self.related_model, registry)

    def resolve_through(self, registry: ModelRegistry | None) -> Model:
        if self.through is None:
            raise RelationshipError(f"Relationship to {self.related_name} has no junction model")
        return _resolve(self.through, registry)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "related_model": self.related_name,
            "foreign_key": self.foreign_key,
            "cascade": self.cascade,
            "bidirectional": self.bidirectional,
            "inverse_field": self.inverse_field,
            "through": _model_name(self.through) if self.through is not None else None,
            "target_key": self.junction_target_key if self.through is not None else None,
        }


def _model_name(ref: ModelRef) -> str:
    return ref if isinstance(ref, str) else ref.name


def _resolve(ref: ModelRef, registry: ModelRegistry | None) -> Model:
    if not isinstance(ref, str):
        return ref
    if registry is None:
        raise RelationshipError(f"Cannot resolve model '{ref}' without a model registry")
    return registry.get(ref)
