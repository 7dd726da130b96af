"""Attribute filter data models.

Filters are trees: a FilterGroup combines AttributeFilters and nested
groups with AND/OR. Operands are tagged values so that comparison logic
can branch on an explicit kind rather than on runtime types.
"""

import re
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, field_validator


class FilterOperator(str, Enum):
    """Comparison operator of a single filter."""

    EQUALS = "Equals"
    NOT_EQUALS = "NotEquals"
    CONTAINS = "Contains"
    NOT_CONTAINS = "NotContains"
    GREATER_THAN = "GreaterThan"
    LESS_THAN = "LessThan"
    GREATER_OR_EQUAL = "GreaterOrEqual"
    LESS_OR_EQUAL = "LessOrEqual"
    IN_RANGE = "InRange"
    IS_TRUE = "IsTrue"
    IS_FALSE = "IsFalse"
    EXISTS = "Exists"
    NOT_EXISTS = "NotExists"


class LogicalOperator(str, Enum):
    """How the inputs of a group are combined."""

    AND = "And"
    OR = "Or"


class StringValue(BaseModel):
    kind: Literal["string"] = "string"
    value: str


class NumberValue(BaseModel):
    kind: Literal["number"] = "number"
    value: float


class BoolValue(BaseModel):
    kind: Literal["bool"] = "bool"
    value: bool


class ListValue(BaseModel):
    kind: Literal["list"] = "list"
    value: list[str | bool | int | float]


FilterValue = Annotated[
    Union[StringValue, NumberValue, BoolValue, ListValue],
    Field(discriminator="kind"),
]


def to_filter_value(raw: Any) -> StringValue | NumberValue | BoolValue | ListValue:
    """Wrap a plain Python value in its tagged variant.

    Raises:
        ValueError: If the value has no operand representation.
    """
    # bool before number: bool is an int subclass
    if isinstance(raw, bool):
        return BoolValue(value=raw)
    if isinstance(raw, (int, float, Decimal)):
        return NumberValue(value=float(raw))
    if isinstance(raw, str):
        return StringValue(value=raw)
    if isinstance(raw, (list, tuple, set, frozenset)):
        return ListValue(value=list(raw))
    raise ValueError(f"Unsupported filter operand type: {type(raw).__name__}")


FIELD_PATH_PATTERN = re.compile(r"[A-Za-z_][A-Za-z0-9_]*(?:\.[A-Za-z_][A-Za-z0-9_]*)*")


class AttributeFilter(BaseModel):
    """Single attribute filter criterion.

    Examples:
        ``naturePreferences.hasPets IsTrue``
        ``personalityClassifications.mbtiType Equals "INTJ"``
        ``preferences.favoriteCuisines Contains "Italian"``

    Attributes:
        field_path: Dotted path to the field.
        operator: Comparison operator.
        value: Operand; plain Python values are wrapped automatically.
        min_value: Lower bound for InRange.
        max_value: Upper bound for InRange.
    """

    field_path: str = Field(description="Dotted field path")
    operator: FilterOperator = Field(description="Comparison operator")
    value: FilterValue | None = Field(default=None, description="Operand")
    min_value: FilterValue | None = Field(default=None, description="InRange minimum")
    max_value: FilterValue | None = Field(default=None, description="InRange maximum")

    @field_validator("field_path")
    @classmethod
    def _validate_field_path(cls, field_path: str) -> str:
        # paths are interpolated into store queries unquoted
        field_path = field_path.strip()
        if not FIELD_PATH_PATTERN.fullmatch(field_path):
            raise ValueError(
                f"Field path must be dot-separated identifiers, got {field_path!r}"
            )
        return field_path

    @field_validator("value", "min_value", "max_value", mode="before")
    @classmethod
    def _wrap_raw_operand(cls, raw: Any) -> Any:
        if raw is None or isinstance(raw, (BaseModel, dict)):
            return raw
        return to_filter_value(raw)

    @staticmethod
    def _raw(operand: BaseModel | None) -> Any:
        return None if operand is None else operand.value  # type: ignore[attr-defined]

    @property
    def raw_value(self) -> Any:
        return self._raw(self.value)

    @property
    def raw_min_value(self) -> Any:
        return self._raw(self.min_value)

    @property
    def raw_max_value(self) -> Any:
        return self._raw(self.max_value)


class FilterGroup(BaseModel):
    """Group of filters combined with AND/OR, with optional nested groups.

    ``Or`` over two ``And`` groups expresses ``(A AND B) OR (C AND D)``.
    """

    logical_operator: LogicalOperator = Field(default=LogicalOperator.AND)
    filters: list[AttributeFilter] = Field(default_factory=list)
    nested_groups: list["FilterGroup"] = Field(default_factory=list)

    @property
    def has_filters(self) -> bool:
        return bool(self.filters) or bool(self.nested_groups)
