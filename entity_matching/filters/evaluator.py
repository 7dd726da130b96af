"""Operator semantics for a single attribute filter."""

from collections.abc import Iterable, Mapping, Sized
from decimal import Decimal
from typing import Any

from entity_matching.exceptions import InvalidComparisonError
from entity_matching.filters.accessor import ABSENT
from entity_matching.filters.models import AttributeFilter, FilterOperator


def is_numeric(value: Any) -> bool:
    """True for ints, floats and decimals; bools are not numbers here."""
    return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)


def values_equal(left: Any, right: Any) -> bool:
    """Filter equality.

    Strings compare case-insensitively, numbers of any width compare as
    floats, bools only equal bools, everything else compares structurally.
    """
    if left is None and right is None:
        return True
    if left is None or right is None:
        return False

    if isinstance(left, str) and isinstance(right, str):
        return left.casefold() == right.casefold()

    if is_numeric(left) and is_numeric(right):
        return float(left) == float(right)

    if isinstance(left, bool) != isinstance(right, bool):
        return False

    return bool(left == right)


def contains(field_value: Any, operand: Any) -> bool:
    """Substring match for strings, membership for collections."""
    if field_value is None or operand is None:
        return False

    if isinstance(field_value, str):
        return isinstance(operand, str) and operand.casefold() in field_value.casefold()

    if isinstance(field_value, Iterable) and not isinstance(field_value, Mapping):
        return any(values_equal(item, operand) for item in field_value)

    return False


def is_empty(value: Any) -> bool:
    """Null, blank string and empty collection all count as absent."""
    if value is None or value is ABSENT:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, Sized):
        return len(value) == 0
    return False


def compare_numeric(field_value: Any, operand: Any, field_path: str = "") -> int:
    """Three-way numeric comparison.

    Raises:
        InvalidComparisonError: If either side is not a number.
    """
    if not is_numeric(field_value) or not is_numeric(operand):
        raise InvalidComparisonError(
            f"Cannot order non-numeric values on field '{field_path}'",
            details={
                "field_path": field_path,
                "field_type": type(field_value).__name__,
                "operand_type": type(operand).__name__,
            },
        )
    left, right = float(field_value), float(operand)
    return (left > right) - (left < right)


class FilterEvaluator:
    """Evaluates one AttributeFilter against an already resolved value."""

    def evaluate(self, attribute_filter: AttributeFilter, field_value: Any) -> bool:
        """Apply the filter's operator.

        Args:
            attribute_filter: Filter to apply.
            field_value: Resolved field value; ABSENT for a missing path.

        Returns:
            Whether the value satisfies the filter.

        Raises:
            InvalidComparisonError: If an ordering operator meets a
                non-numeric operand.
        """
        value = None if field_value is ABSENT else field_value
        operand = attribute_filter.raw_value
        path = attribute_filter.field_path
        operator = attribute_filter.operator

        if operator == FilterOperator.EQUALS:
            return values_equal(value, operand)
        if operator == FilterOperator.NOT_EQUALS:
            return not values_equal(value, operand)
        if operator == FilterOperator.CONTAINS:
            return contains(value, operand)
        if operator == FilterOperator.NOT_CONTAINS:
            return not contains(value, operand)
        if operator == FilterOperator.GREATER_THAN:
            return compare_numeric(value, operand, path) > 0
        if operator == FilterOperator.LESS_THAN:
            return compare_numeric(value, operand, path) < 0
        if operator == FilterOperator.GREATER_OR_EQUAL:
            return compare_numeric(value, operand, path) >= 0
        if operator == FilterOperator.LESS_OR_EQUAL:
            return compare_numeric(value, operand, path) <= 0
        if operator == FilterOperator.IN_RANGE:
            return (
                compare_numeric(value, attribute_filter.raw_min_value, path) >= 0
                and compare_numeric(value, attribute_filter.raw_max_value, path) <= 0
            )
        if operator == FilterOperator.IS_TRUE:
            return value is True
        if operator == FilterOperator.IS_FALSE:
            return value is False
        if operator == FilterOperator.EXISTS:
            return not is_empty(value)
        if operator == FilterOperator.NOT_EXISTS:
            return is_empty(value)

        raise ValueError(f"Unknown filter operator: {operator}")
