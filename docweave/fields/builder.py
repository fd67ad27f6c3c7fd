"""
Fluent builder for field descriptors.

Example:
    email = (
        FieldBuilder("email")
        .type(str)
        .required()
        .unique()
        .regex(r"^[^@]+@[^@]+$")
        .transform(str.lower)
        .build()
    )

    address = (
        FieldBuilder("address")
        .nested(
            FieldBuilder("street").type(str).required().build(),
            FieldBuilder("zip").type(str).alias("zip_code").build(),
        )
        .build()
    )
"""

from __future__ import annotations

import re
from typing import Any, Callable

from .descriptor import (
    Bound,
    FieldDescriptor,
    FieldKind,
    FieldType,
    FieldValidator,
    Immutability,
)


class FieldBuilder:
    """Accumulates constraints and produces an immutable ``FieldDescriptor``."""

    def __init__(self, name: str) -> None:
        self._name = name
        self._options: dict[str, Any] = {}
        self._validators: list[FieldValidator] = []
        self._hooks: list[tuple[str, Callable[..., Any]]] = []
        self._children: dict[str, FieldDescriptor] = {}
        self._kind = FieldKind.SCALAR

    def type(self, type_: Any) -> FieldBuilder:
        self._options["type_tag"] = FieldType.from_python(type_)
        return self

    def required(self) -> FieldBuilder:
        self._options["required"] = True
        return self

    def unique(self) -> FieldBuilder:
        self._options["unique"] = True
        return self

    def index(self) -> FieldBuilder:
        self._options["index"] = True
        return self

    def nullable(self, allowed: bool = True) -> FieldBuilder:
        self._options["nullable"] = allowed
        return self

    def not_null(self) -> FieldBuilder:
        return self.nullable(False)

    def enum(self, *values: Any) -> FieldBuilder:
        if len(values) == 1 and isinstance(values[0], (list, tuple, set)):
            values = tuple(values[0])
        self._options["enum"] = tuple(values)
        return self

    def min(self, bound: Bound) -> FieldBuilder:
        self._options["min"] = bound
        return self

    def max(self, bound: Bound) -> FieldBuilder:
        self._options["max"] = bound
        return self

    def regex(self, pattern: str | re.Pattern[str]) -> FieldBuilder:
        self._options["regex"] = re.compile(pattern) if isinstance(pattern, str) else pattern
        return self

    def default(self, value: Any) -> FieldBuilder:
        # callables are stored as-is and evaluated on every save
        self._options["default"] = value
        return self

    def transform(self, fn: Callable[[Any], Any]) -> FieldBuilder:
        self._options["transform"] = fn
        return self

    def alias(self, alias: str) -> FieldBuilder:
        self._options["alias"] = alias
        return self

    def immutable(self, condition: Immutability = True) -> FieldBuilder:
        self._options["immutable"] = condition
        return self

    def describe(self, description: str) -> FieldBuilder:
        self._options["description"] = description
        return self

    def add_validator(self, validator: FieldValidator) -> FieldBuilder:
        self._validators.append(validator)
        return self

    def add_hook(self, phase: Any, hook: Callable[..., Any]) -> FieldBuilder:
        phase_name = getattr(phase, "value", phase)
        self._hooks.append((phase_name, hook))
        return self

    def nested(self, *children: FieldDescriptor) -> FieldBuilder:
        self._kind = FieldKind.NESTED
        self._options.setdefault("type_tag", FieldType.OBJECT)
        for child in children:
            self._children[child.name] = child
        return self

    def file(self) -> FieldBuilder:
        """Mark as a reference to an externally stored attachment."""
        self._kind = FieldKind.FILE
        self._options.setdefault("type_tag", FieldType.OBJECT_ID)
        return self

    def build(self) -> FieldDescriptor:
        return FieldDescriptor(
            name=self._name,
            kind=self._kind,
            validators=tuple(self._validators),
            hooks=tuple(self._hooks),
            children=dict(self._children),
            **self._options,
        )


def relationship_field(name: str) -> FieldDescriptor:
    """Descriptor for the virtual field a relationship populates."""
    return FieldDescriptor(name=name, kind=FieldKind.RELATIONSHIP)


__all__ = ["FieldBuilder", "relationship_field"]
