"""
Predicate operator vocabulary.

Semantic operator names map one to one onto store comparison operators.
Both camelCase and snake_case spellings are accepted, as are the store
operators themselves.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Any

from docweave.core.exceptions import QueryBuildError


class Operator(str, Enum):
    EQUAL = "equal"
    NOT_EQUAL = "notEqual"
    GREATER_THAN = "greaterThan"
    GREATER_THAN_OR_EQUAL = "greaterThanOrEqual"
    LESS_THAN = "lessThan"
    LESS_THAN_OR_EQUAL = "lessThanOrEqual"
    IN = "in"
    NOT_IN = "notIn"
    EXISTS = "exists"
    REGEX = "regex"
    TEXT = "text"


STORE_OPERATORS: dict[Operator, str] = {
    Operator.EQUAL: "$eq",
    Operator.NOT_EQUAL: "$ne",
    Operator.GREATER_THAN: "$gt",
    Operator.GREATER_THAN_OR_EQUAL: "$gte",
    Operator.LESS_THAN: "$lt",
    Operator.LESS_THAN_OR_EQUAL: "$lte",
    Operator.IN: "$in",
    Operator.NOT_IN: "$nin",
    Operator.EXISTS: "$exists",
    Operator.REGEX: "$regex",
    Operator.TEXT: "$text",
}

_SPELLINGS: dict[str, Operator] = {}
for _op, _store_op in STORE_OPERATORS.items():
    _SPELLINGS[_op.value] = _op
    _SPELLINGS[_op.name.lower()] = _op
    _SPELLINGS[_store_op] = _op
del _op, _store_op


def parse_operator(operator: str | Operator) -> Operator:
    """Resolve any accepted spelling to an ``Operator``."""
    if isinstance(operator, Operator):
        return operator
    try:
        return _SPELLINGS[operator]
    except KeyError:
        raise QueryBuildError(
            f"Unknown query operator: {operator}",
            operator=operator,
            supported=sorted(op.value for op in Operator),
        ) from None


def to_store_operator(operator: str | Operator) -> str:
    return STORE_OPERATORS[parse_operator(operator)]


def compile_condition(operator: str | Operator, value: Any) -> dict[str, Any]:
    """
    Per-field condition for ``operator`` and ``value``.

    ``text`` is not a per-field operator; use ``compile_text`` for it.
    """
    op = parse_operator(operator)
    if op is Operator.TEXT:
        raise QueryBuildError("The text operator applies to the whole document", operator=op.value)
    if op in (Operator.IN, Operator.NOT_IN):
        if not isinstance(value, (list, tuple, set)):
            raise QueryBuildError(
                f"Operator {op.value} needs a list of values",
                operator=op.value,
            )
        value = list(value)
    elif op is Operator.EXISTS:
        value = bool(value)
    elif op is Operator.REGEX and isinstance(value, re.Pattern):
        value = value.pattern
    return {STORE_OPERATORS[op]: value}


def compile_text(search: str, language: str | None = None) -> dict[str, Any]:
    text: dict[str, Any] = {"$search": search}
    if language:
        text["$language"] = language
    return {"$text": text}
