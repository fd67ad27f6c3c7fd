"""
Field descriptors.

A ``FieldDescriptor`` is the declarative metadata for one document
attribute. Descriptors are built once (usually through ``FieldBuilder``),
frozen, and owned by a single model's ``FieldRegistry``. Nested fields hold
their children in ``children``, forming a tree.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Callable, Mapping

from bson import ObjectId

Document = dict[str, Any]
Bound = int | float | datetime | Callable[[Document], Any]
Immutability = bool | Callable[[Document], bool]
FieldValidator = Callable[[Any, Document], "str | list[str] | None"]


class FieldKind(str, Enum):
    """Closed set of field variants the engine dispatches on."""
    SCALAR = "scalar"
    NESTED = "nested"
    RELATIONSHIP = "relationship"
    FILE = "file"


class FieldType(str, Enum):
    """Storage type tags."""
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "bool"
    DATE = "date"
    ARRAY = "array"
    OBJECT = "object"
    OBJECT_ID = "objectId"

    @classmethod
    def from_python(cls, python_type: Any) -> FieldType:
        """Map a Python type (or a tag) to a storage tag.

        Types with no mapping fall back to ``STRING``.
        """
        if isinstance(python_type, FieldType):
            return python_type
        if isinstance(python_type, str):
            try:
                return cls(python_type)
            except ValueError:
                return cls.STRING
        return _PYTHON_TYPE_TAGS.get(python_type, cls.STRING)

    def accepts(self, value: Any) -> bool:
        """Whether ``value`` is an instance of this storage type."""
        if self is FieldType.STRING:
            return isinstance(value, str)
        if self is FieldType.NUMBER:
            return isinstance(value, (int, float)) and not isinstance(value, bool)
        if self is FieldType.BOOLEAN:
            return isinstance(value, bool)
        if self is FieldType.DATE:
            return isinstance(value, (datetime, date))
        if self is FieldType.ARRAY:
            return isinstance(value, (list, tuple))
        if self is FieldType.OBJECT:
            return isinstance(value, Mapping)
        if self is FieldType.OBJECT_ID:
            return isinstance(value, ObjectId) or (
                isinstance(value, str) and ObjectId.is_valid(value)
            )
        return True


_PYTHON_TYPE_TAGS: dict[Any, FieldType] = {
    str: FieldType.STRING,
    int: FieldType.NUMBER,
    float: FieldType.NUMBER,
    bool: FieldType.BOOLEAN,
    datetime: FieldType.DATE,
    date: FieldType.DATE,
    list: FieldType.ARRAY,
    tuple: FieldType.ARRAY,
    dict: FieldType.OBJECT,
    ObjectId: FieldType.OBJECT_ID,
}


class _Missing:
    """Sentinel for "no default declared"."""

    _instance: _Missing | None = None

    def __new__(cls) -> _Missing:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()


@dataclass(frozen=True)
class FieldDescriptor:
    """Constraint set for a single field."""

    name: str
    kind: FieldKind = FieldKind.SCALAR
    type_tag: FieldType | None = None

    required: bool = False
    unique: bool = False
    index: bool = False
    nullable: bool = False

    enum: tuple[Any, ...] | None = None
    min: Bound | None = None
    max: Bound | None = None
    regex: re.Pattern[str] | None = None

    default: Any = MISSING
    transform: Callable[[Any], Any] | None = None
    alias: str | None = None
    immutable: Immutability = False

    validators: tuple[FieldValidator, ...] = ()
    hooks: tuple[tuple[str, Callable[..., Any]], ...] = ()
    children: Mapping[str, FieldDescriptor] = field(default_factory=dict)
    description: str = ""

    @property
    def store_name(self) -> str:
        return self.alias or self.name

    @property
    def is_persisted(self) -> bool:
        """Relationship fields are virtual: filled by population, never stored."""
        return self.kind is not FieldKind.RELATIONSHIP

    @property
    def has_default(self) -> bool:
        return self.default is not MISSING

    @property
    def is_indexed(self) -> bool:
        return self.unique or self.index

    def resolve_default(self) -> Any:
        """Evaluate the default; callables run on every call."""
        if callable(self.default):
            return self.default()
        return self.default

    def is_immutable_for(self, document: Document) -> bool:
        if callable(self.immutable):
            return bool(self.immutable(document))
        return bool(self.immutable)

    def resolve_bound(self, bound: Bound | None, document: Document) -> Any:
        if callable(bound):
            return bound(document)
        return bound

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "kind": self.kind.value,
            "type": self.type_tag.value if self.type_tag else None,
            "required": self.required,
            "unique": self.unique,
            "index": self.index,
            "nullable": self.nullable,
            "enum": list(self.enum) if self.enum is not None else None,
            "min": None if callable(self.min) else self.min,
            "max": None if callable(self.max) else self.max,
            "regex": self.regex.pattern if self.regex else None,
            "alias": self.alias,
            "immutable": bool(self.immutable),
            "children": {k: v.to_dict() for k, v in self.children.items()},
            "description": self.description,
        }
