"""
Identifier helpers.

Callers often hand ids around as hex strings; the store keys documents by
``ObjectId``. These helpers coerce the former into the latter wherever an
identifier is expected.
"""

from __future__ import annotations

from typing import Any

from bson import ObjectId

ID_FIELD = "_id"
_ID_LIST_OPERATORS = ("$in", "$nin")
_ID_SCALAR_OPERATORS = ("$eq", "$ne")


def to_object_id(value: Any) -> Any:
    """Return ``ObjectId(value)`` for a valid hex string, else ``value`` unchanged."""
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return value


def convert_filter_ids(filter: dict[str, Any] | None) -> dict[str, Any]:
    """Coerce string ids under ``_id`` (including ``$in``/``$nin``/``$eq``/``$ne``)."""
    if not filter:
        return {}
    converted: dict[str, Any] = {}
    for key, value in filter.items():
        if key in ("$and", "$or", "$nor") and isinstance(value, list):
            converted[key] = [convert_filter_ids(sub) for sub in value]
        elif key == ID_FIELD:
            converted[key] = _convert_id_condition(value)
        else:
            converted[key] = value
    return converted


def _convert_id_condition(condition: Any) -> Any:
    if not isinstance(condition, dict):
        return to_object_id(condition)
    converted: dict[str, Any] = {}
    for operator, operand in condition.items():
        if operator in _ID_LIST_OPERATORS and isinstance(operand, (list, tuple)):
            converted[operator] = [to_object_id(item) for item in operand]
        elif operator in _ID_SCALAR_OPERATORS:
            converted[operator] = to_object_id(operand)
        else:
            converted[operator] = operand
    return converted
