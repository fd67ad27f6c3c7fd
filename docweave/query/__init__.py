"""
Query and aggregation translation.
"""

from .aggregation import AggregationBuilder, PipelineStagesMixin
from .builder import QueryBuilder
from .operators import (
    STORE_OPERATORS,
    Operator,
    compile_condition,
    compile_text,
    parse_operator,
    to_store_operator,
)

__all__ = [
    "AggregationBuilder",
    "Operator",
    "PipelineStagesMixin",
    "QueryBuilder",
    "STORE_OPERATORS",
    "compile_condition",
    "compile_text",
    "parse_operator",
    "to_store_operator",
]
