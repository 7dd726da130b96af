"""Structured attribute filtering module."""

from entity_matching.filters.accessor import ABSENT, FieldAccessor
from entity_matching.filters.engine import AttributeFilterEngine
from entity_matching.filters.evaluator import FilterEvaluator
from entity_matching.filters.models import (
    AttributeFilter,
    BoolValue,
    FilterGroup,
    FilterOperator,
    FilterValue,
    ListValue,
    LogicalOperator,
    NumberValue,
    StringValue,
)

__all__ = [
    "ABSENT",
    "AttributeFilter",
    "AttributeFilterEngine",
    "BoolValue",
    "FieldAccessor",
    "FilterEvaluator",
    "FilterGroup",
    "FilterOperator",
    "FilterValue",
    "ListValue",
    "LogicalOperator",
    "NumberValue",
    "StringValue",
]
