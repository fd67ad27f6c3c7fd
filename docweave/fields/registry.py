"""
Field registry.

Holds a model's field descriptors and translates between the declared
(application) shape of a document and its stored (aliased) shape.

Registration is append-only and has side effects:
- ``unique``/``index`` fields append an index spec
- ``immutable`` fields install a ``pre_update`` guard hook
- field-level hooks and validators are forwarded to the model
"""

from __future__ import annotations

from dataclasses import replace
from typing import TYPE_CHECKING, Any, Callable, Iterator

from docweave.core.exceptions import ConfigurationError, ImmutableFieldError
from docweave.infrastructure.logging import get_logger

from .descriptor import Document, FieldDescriptor, FieldKind

if TYPE_CHECKING:
    from docweave.hooks.registry import HookRegistry

logger = get_logger(__name__)

LOGICAL_OPERATORS = ("$and", "$or", "$nor")


def update_touches(update: Document, path: str) -> bool:
    """Whether any operator section of ``update`` writes ``path``."""
    for section in update.values():
        if not isinstance(section, dict):
            continue
        for key, value in section.items():
            if key == path or key.startswith(path + "."):
                return True
            if path.startswith(key + ".") and isinstance(value, dict):
                remainder = path[len(key) + 1:].split(".")
                current: Any = value
                for part in remainder:
                    if not isinstance(current, dict) or part not in current:
                        break
                    current = current[part]
                else:
                    return True
    return False


class FieldRegistry:
    """Per-model map of field name to ``FieldDescriptor``."""

    def __init__(
        self,
        hooks: HookRegistry | None = None,
        validators: list[Callable[..., Any]] | None = None,
    ) -> None:
        self._fields: dict[str, FieldDescriptor] = {}
        self._hooks = hooks
        self._validators = validators if validators is not None else []
        self.index_specs: list[dict[str, Any]] = []

    def register(self, name: str, descriptor: FieldDescriptor) -> FieldDescriptor:
        """
        Register a field and apply its side effects.

        Args:
            name: Declared field name
            descriptor: The field's constraints

        Returns:
            The registered descriptor

        Raises:
            ConfigurationError: If ``name`` is already registered
        """
        if name in self._fields:
            raise ConfigurationError(f"Field {name} is already registered", config_key=name)
        if descriptor.name != name:
            descriptor = _renamed(descriptor, name)
        self._fields[name] = descriptor
        self._apply_side_effects(
            descriptor,
            declared_path=name,
            store_path=descriptor.store_name,
            index_path=descriptor.store_name,
        )
        logger.debug(f"Registered field {name} ({descriptor.kind.value})")
        return descriptor

    def _apply_side_effects(
        self,
        descriptor: FieldDescriptor,
        declared_path: str,
        store_path: str,
        index_path: str,
    ) -> None:
        if descriptor.is_indexed:
            self.index_specs.append({
                "key": {index_path: 1},
                "unique": descriptor.unique,
            })

        if descriptor.immutable and self._hooks is not None:
            self._hooks.add_hook("pre_update", _immutable_guard(descriptor, declared_path, store_path))

        if self._hooks is not None:
            for phase, hook in descriptor.hooks:
                self._hooks.add_hook(phase, hook)

        for validator in descriptor.validators:
            self._validators.append(_bind_field_validator(declared_path, validator))

        if descriptor.kind is FieldKind.NESTED:
            for child in descriptor.children.values():
                # nested index specs are keyed by the parent's store path
                self._apply_side_effects(
                    child,
                    declared_path=f"{declared_path}.{child.name}",
                    store_path=f"{store_path}.{child.store_name}",
                    index_path=store_path,
                )

    def get(self, name: str) -> FieldDescriptor | None:
        return self._fields.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._fields

    def __iter__(self) -> Iterator[FieldDescriptor]:
        return iter(self._fields.values())

    def __len__(self) -> int:
        return len(self._fields)

    def items(self):
        return self._fields.items()

    def immutable_paths(self) -> list[tuple[str, FieldDescriptor]]:
        """(declared dotted path, descriptor) for every immutable field."""
        found: list[tuple[str, FieldDescriptor]] = []

        def walk(fields: dict[str, FieldDescriptor] | Any, prefix: str) -> None:
            for descriptor in fields.values():
                path = f"{prefix}{descriptor.name}"
                if descriptor.immutable:
                    found.append((path, descriptor))
                if descriptor.kind is FieldKind.NESTED:
                    walk(descriptor.children, path + ".")

        walk(self._fields, "")
        return found

    # ---- shape translation ----

    def store_path(self, path: str) -> str:
        """Translate a declared dotted path to its stored dotted path."""
        parts = path.split(".")
        fields: Any = self._fields
        translated: list[str] = []
        for part in parts:
            descriptor = fields.get(part) if fields is not None else None
            if descriptor is None:
                translated.append(part)
                fields = None
                continue
            translated.append(descriptor.store_name)
            fields = descriptor.children if descriptor.kind is FieldKind.NESTED else None
        return ".".join(translated)

    def alias_document(self, document: Document) -> Document:
        """Declared shape to stored shape. Undeclared keys pass through."""
        return _alias(document, self._fields)

    def unalias_document(self, document: Document) -> Document:
        """Stored shape back to declared names."""
        return _unalias(document, self._fields)

    def alias_filter(self, filter: Document | None) -> Document:
        """Rewrite filter keys to stored paths, recursing into logical operators."""
        if not filter:
            return {}
        aliased: Document = {}
        for key, value in filter.items():
            if key in LOGICAL_OPERATORS and isinstance(value, list):
                aliased[key] = [self.alias_filter(sub) for sub in value]
            elif key.startswith("$"):
                aliased[key] = value
            else:
                aliased[self.store_path(key)] = value
        return aliased

    def alias_update(self, update: Document) -> Document:
        """Rewrite every operator section of an update document."""
        aliased: Document = {}
        for operator, section in update.items():
            if not isinstance(section, dict):
                aliased[operator] = section
                continue
            rewritten: Document = {}
            for key, value in section.items():
                descriptor = self.descriptor_at(key)
                if (
                    descriptor is not None
                    and descriptor.kind is FieldKind.NESTED
                    and isinstance(value, dict)
                ):
                    value = _alias(value, descriptor.children)
                rewritten[self.store_path(key)] = value
            aliased[operator] = rewritten
        return aliased

    def descriptor_at(self, path: str) -> FieldDescriptor | None:
        """Descriptor for a declared dotted path, or None."""
        fields: Any = self._fields
        descriptor = None
        for part in path.split("."):
            if fields is None:
                return None
            descriptor = fields.get(part)
            if descriptor is None:
                return None
            fields = descriptor.children if descriptor.kind is FieldKind.NESTED else None
        return descriptor


def _alias(document: Document, fields: Any) -> Document:
    stored: Document = {}
    by_name = dict(fields)
    for key, value in document.items():
        descriptor = by_name.get(key)
        if descriptor is None:
            stored[key] = value
            continue
        if descriptor.kind is FieldKind.RELATIONSHIP:
            continue
        if descriptor.kind is FieldKind.NESTED and isinstance(value, dict):
            stored[descriptor.store_name] = _alias(value, descriptor.children)
        else:
            # SCALAR and FILE values are stored as-is under their alias
            stored[descriptor.store_name] = value
    return stored


def _unalias(document: Document, fields: Any) -> Document:
    by_store_name = {d.store_name: d for d in fields.values()}
    restored: Document = {}
    for key, value in document.items():
        descriptor = by_store_name.get(key)
        if descriptor is None:
            restored[key] = value
        elif descriptor.kind is FieldKind.NESTED and isinstance(value, dict):
            restored[descriptor.name] = _unalias(value, descriptor.children)
        else:
            restored[descriptor.name] = value
    return restored


def _renamed(descriptor: FieldDescriptor, name: str) -> FieldDescriptor:
    return replace(descriptor, name=name)


def _immutable_guard(
    descriptor: FieldDescriptor,
    declared_path: str,
    store_path: str,
) -> Callable[[Document], None]:
    """``pre_update`` hook rejecting any update that writes the field."""

    def guard(update: Document) -> None:
        if not update_touches(update, store_path):
            return
        if callable(descriptor.immutable) and not descriptor.is_immutable_for(update.get("$set", {})):
            return
        raise ImmutableFieldError(declared_path)

    guard.__name__ = f"immutable_guard[{declared_path}]"
    return guard


def _bind_field_validator(
    declared_path: str,
    validator: Callable[..., Any],
) -> Callable[[Document], dict[str, list[str]] | None]:
    """Adapt a ``(value, document)`` field validator to the model-level shape."""
    parts = declared_path.split(".")

    def validate(document: Document) -> dict[str, list[str]] | None:
        value: Any = document
        for part in parts:
            if not isinstance(value, dict) or part not in value:
                return None
            value = value[part]
        result = validator(value, document)
        if not result:
            return None
        messages = [result] if isinstance(result, str) else list(result)
        return {declared_path: messages}

    validate.__name__ = f"field_validator[{declared_path}]"
    validate.field_path = declared_path  # type: ignore[attr-defined]
    return validate
