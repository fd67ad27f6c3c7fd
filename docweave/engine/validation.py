"""
Document validation.

Two passes, merged into a single ``ValidationError``:
1. built-in constraints of every declared field (nested included): required,
   nullability, declared type, enum, min/max, regex
2. custom validators, model-level and field-level, each returning a
   ``{field: [messages]}`` map (or ``None`` when the document is fine)

Every failure is collected before anything is raised.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Iterable

from docweave.core.exceptions import ValidationError, ViolationCode
from docweave.fields.descriptor import Document, FieldDescriptor, FieldKind
from docweave.fields.registry import FieldRegistry
from docweave.infrastructure.logging import get_logger

logger = get_logger(__name__)

Violation = tuple[str, ViolationCode, str]


class DocumentValidator:
    """Validates documents in their declared (unaliased) shape."""

    def __init__(
        self,
        fields: FieldRegistry,
        validators: list[Callable[..., Any]],
        model_name: str = "",
    ) -> None:
        self._fields = fields
        self._validators = validators
        self._model_name = model_name

    async def validate(self, document: Document) -> None:
        """
        Validate a complete document.

        Raises:
            ValidationError: With every collected failure
        """
        violations: list[Violation] = []
        self._check_fields(self._fields, document, document, "", violations)
        custom = await self._run_validators(self._validators, document)
        self._raise_if_invalid(violations, custom)

    async def validate_partial(self, values: Document) -> None:
        """
        Validate the dotted-path values of an update's ``$set`` section.

        Only the paths present are checked, and required-ness is not.
        """
        violations: list[Violation] = []
        expanded = expand_paths(values)
        for path, value in values.items():
            descriptor = self._fields.descriptor_at(path)
            if descriptor is None or descriptor.kind is FieldKind.RELATIONSHIP:
                continue
            self._check_value(descriptor, value, expanded, path, violations)
            if descriptor.kind is FieldKind.NESTED and isinstance(value, dict):
                self._check_fields(descriptor.children, value, expanded, path + ".", violations)

        field_validators = [v for v in self._validators if hasattr(v, "field_path")]
        custom = await self._run_validators(field_validators, expanded)
        self._raise_if_invalid(violations, custom)

    def _check_fields(
        self,
        fields: FieldRegistry | Any,
        values: Document,
        document: Document,
        prefix: str,
        violations: list[Violation],
    ) -> None:
        descriptors: Iterable[FieldDescriptor] = (
            fields if isinstance(fields, FieldRegistry) else fields.values()
        )
        for descriptor in descriptors:
            if descriptor.kind is FieldKind.RELATIONSHIP:
                continue
            path = f"{prefix}{descriptor.name}"

            if descriptor.name not in values:
                # a default will fill the gap later in the pipeline
                if descriptor.required and not descriptor.has_default:
                    violations.append((
                        path,
                        ViolationCode.MISSING_REQUIRED,
                        f"Missing required field: {path}",
                    ))
                if descriptor.kind is FieldKind.NESTED and not descriptor.has_default:
                    self._check_fields(descriptor.children, {}, document, path + ".", violations)
                continue

            value = values[descriptor.name]
            self._check_value(descriptor, value, document, path, violations)
            if descriptor.kind is FieldKind.NESTED and isinstance(value, dict):
                self._check_fields(descriptor.children, value, document, path + ".", violations)

    def _check_value(
        self,
        descriptor: FieldDescriptor,
        value: Any,
        document: Document,
        path: str,
        violations: list[Violation],
    ) -> None:
        if value is None:
            if not descriptor.nullable:
                violations.append((
                    path,
                    ViolationCode.NULL_NOT_ALLOWED,
                    f"Field {path} cannot be null",
                ))
            return

        if descriptor.type_tag is not None and not descriptor.type_tag.accepts(value):
            violations.append((
                path,
                ViolationCode.TYPE_MISMATCH,
                f"Field {path} must be of type {descriptor.type_tag.value}",
            ))
            return

        if descriptor.enum is not None and value not in descriptor.enum:
            allowed = ", ".join(str(v) for v in descriptor.enum)
            violations.append((
                path,
                ViolationCode.NOT_IN_ENUM,
                f"Field {path} must be one of {allowed}",
            ))

        minimum = descriptor.resolve_bound(descriptor.min, document)
        if minimum is not None:
            try:
                if value < minimum:
                    violations.append((
                        path,
                        ViolationCode.BELOW_MIN,
                        f"Field {path} must be greater than or equal to {minimum}",
                    ))
            except TypeError:
                violations.append((
                    path,
                    ViolationCode.TYPE_MISMATCH,
                    f"Field {path} cannot be compared with {minimum!r}",
                ))

        maximum = descriptor.resolve_bound(descriptor.max, document)
        if maximum is not None:
            try:
                if value > maximum:
                    violations.append((
                        path,
                        ViolationCode.ABOVE_MAX,
                        f"Field {path} must be less than or equal to {maximum}",
                    ))
            except TypeError:
                violations.append((
                    path,
                    ViolationCode.TYPE_MISMATCH,
                    f"Field {path} cannot be compared with {maximum!r}",
                ))

        if (
            descriptor.regex is not None
            and isinstance(value, str)
            and descriptor.regex.search(value) is None
        ):
            violations.append((
                path,
                ViolationCode.PATTERN_MISMATCH,
                f"Field {path} does not match pattern {descriptor.regex.pattern}",
            ))

    async def _run_validators(
        self,
        validators: Iterable[Callable[..., Any]],
        document: Document,
    ) -> dict[str, list[str]]:
        errors: dict[str, list[str]] = {}
        for validator in validators:
            result = validator(document)
            if asyncio.iscoroutine(result):
                result = await result
            if not result:
                continue
            for field, messages in result.items():
                if isinstance(messages, str):
                    messages = [messages]
                errors.setdefault(field, []).extend(messages)
        return errors

    def _raise_if_invalid(
        self,
        violations: list[Violation],
        custom: dict[str, list[str]],
    ) -> None:
        if not violations and not custom:
            return

        errors: dict[str, list[str]] = {}
        for field, _, message in violations:
            errors.setdefault(field, []).append(message)
        for field, messages in custom.items():
            errors.setdefault(field, []).extend(messages)
            violations.extend((field, ViolationCode.CUSTOM, m) for m in messages)

        logger.debug_with_context(
            "Document validation failed",
            context={"model": self._model_name, "fields": list(errors)},
        )
        raise ValidationError("Document validation failed", errors=errors, violations=violations)


def expand_paths(values: Document) -> Document:
    """``{"a.b": 1}`` -> ``{"a": {"b": 1}}``."""
    expanded: Document = {}
    for path, value in values.items():
        parts = path.split(".")
        target = expanded
        for part in parts[:-1]:
            existing = target.get(part)
            if not isinstance(existing, dict):
                existing = {}
                target[part] = existing
            target = existing
        target[parts[-1]] = value
    return expanded
