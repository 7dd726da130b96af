"""Attribute filter engine with field-level privacy enforcement.

Evaluates FilterGroup trees against entities, collects the matched
attribute values shown to callers, and classifies or translates filters
for push-down into the document store.
"""

from typing import Any

from entity_matching.entities.models import Entity
from entity_matching.filters.accessor import ABSENT, FieldAccessor
from entity_matching.filters.evaluator import FilterEvaluator, is_numeric
from entity_matching.filters.models import (
    AttributeFilter,
    FilterGroup,
    FilterOperator,
    LogicalOperator,
)
from entity_matching.logging_config import get_logger

logger = get_logger(__name__)

# Derived at read time, not physically stored.
COMPUTED_FIELDS = frozenset({"age", "location"})

# Substring and case-insensitive matching has no cheap store equivalent.
APPLICATION_ONLY_OPERATORS = frozenset(
    {FilterOperator.CONTAINS, FilterOperator.NOT_CONTAINS}
)


class AttributeFilterEngine:
    """Evaluates structured attribute filters with privacy enforcement.

    A filter on a field the requester cannot see is skipped: it counts as
    neither a pass nor a fail. A group in which nothing could be evaluated
    is false, even under OR.
    """

    def __init__(
        self,
        accessor: FieldAccessor | None = None,
        evaluator: FilterEvaluator | None = None,
    ) -> None:
        self._accessor = accessor or FieldAccessor()
        self._evaluator = evaluator or FilterEvaluator()

    def evaluate_filters(
        self,
        entity: Entity,
        filter_group: FilterGroup | None,
        requesting_user_id: str | None = None,
        enforce_privacy: bool = True,
    ) -> bool:
        """Check whether an entity satisfies a filter tree.

        Args:
            entity: Entity to test.
            filter_group: Filter tree. None or empty matches everything.
            requesting_user_id: Requesting user, None for anonymous.
            enforce_privacy: Skip filters on fields hidden from the requester.

        Returns:
            True if the entity matches.

        Raises:
            InvalidComparisonError: If an ordering filter meets a
                non-numeric value.
        """
        if filter_group is None or not filter_group.has_filters:
            return True

        namespace = entity.field_namespace()
        return self._evaluate_group(
            entity, namespace, filter_group, requesting_user_id, enforce_privacy
        )

    def _evaluate_group(
        self,
        entity: Entity,
        namespace: dict[str, Any],
        group: FilterGroup,
        requesting_user_id: str | None,
        enforce_privacy: bool,
    ) -> bool:
        if not group.has_filters:
            return True

        results: list[bool] = []

        for attribute_filter in group.filters:
            if enforce_privacy and not entity.is_field_visible_to_user(
                attribute_filter.field_path, requesting_user_id
            ):
                logger.debug(
                    f"Filter on field '{attribute_filter.field_path}' skipped "
                    "due to privacy settings",
                    extra={
                        "entity_id": entity.id,
                        "requesting_user_id": requesting_user_id or "anonymous",
                    },
                )
                continue

            value = self._accessor.resolve(namespace, attribute_filter.field_path)
            results.append(self._evaluator.evaluate(attribute_filter, value))

        for nested in group.nested_groups:
            results.append(
                self._evaluate_group(
                    entity, namespace, nested, requesting_user_id, enforce_privacy
                )
            )

        # Fail closed when privacy removed every input.
        if not results:
            return False

        if group.logical_operator == LogicalOperator.AND:
            return all(results)
        return any(results)

    def get_matched_attributes(
        self,
        entity: Entity,
        filter_group: FilterGroup | None,
        requesting_user_id: str | None = None,
        enforce_privacy: bool = True,
    ) -> dict[str, Any]:
        """Collect the visible values of every filtered field.

        Used for transparency in search results; never affects matching.

        Returns:
            Field path to resolved value, omitting absent and null values.
        """
        matched: dict[str, Any] = {}
        if filter_group is None or not filter_group.has_filters:
            return matched

        namespace = entity.field_namespace()
        self._collect_attributes(
            entity, namespace, filter_group, requesting_user_id, enforce_privacy, matched
        )
        return matched

    def _collect_attributes(
        self,
        entity: Entity,
        namespace: dict[str, Any],
        group: FilterGroup,
        requesting_user_id: str | None,
        enforce_privacy: bool,
        matched: dict[str, Any],
    ) -> None:
        for attribute_filter in group.filters:
            if enforce_privacy and not entity.is_field_visible_to_user(
                attribute_filter.field_path, requesting_user_id
            ):
                continue

            value = self._accessor.resolve(namespace, attribute_filter.field_path)
            if value is not ABSENT and value is not None:
                matched[attribute_filter.field_path] = value

        for nested in group.nested_groups:
            self._collect_attributes(
                entity, namespace, nested, requesting_user_id, enforce_privacy, matched
            )

    def build_store_query_fragment(self, filter_group: FilterGroup | None) -> str:
        """Translate a filter tree into a document-store WHERE fragment.

        The fragment is never stricter than the tree. Filters the store cannot
        express (Contains/NotContains) are dropped from AND groups, and an OR
        group with any untranslatable member yields no fragment at all.
        Privacy is not applied here; results must still go through
        ``evaluate_filters``.

        Returns:
            The fragment, or an empty string when nothing translates.
        """
        if filter_group is None or not filter_group.has_filters:
            return ""

        is_or = filter_group.logical_operator == LogicalOperator.OR
        conditions: list[str] = []

        for attribute_filter in filter_group.filters:
            condition = self._build_condition(attribute_filter)
            if condition:
                conditions.append(condition)
            elif is_or:
                return ""

        for nested in filter_group.nested_groups:
            nested_query = self.build_store_query_fragment(nested)
            if nested_query:
                conditions.append(f"({nested_query})")
            elif is_or:
                return ""

        if not conditions:
            return ""

        joiner = " OR " if is_or else " AND "
        return joiner.join(conditions)

    def can_push_to_store(self, filter_group: FilterGroup | None) -> bool:
        """Check whether the whole tree can be evaluated by the store.

        Returns False if any filter targets a computed field or needs
        substring matching.
        """
        if filter_group is None or not filter_group.has_filters:
            return True

        for attribute_filter in filter_group.filters:
            if attribute_filter.field_path.strip().casefold() in COMPUTED_FIELDS:
                return False
            if attribute_filter.operator in APPLICATION_ONLY_OPERATORS:
                return False

        return all(self.can_push_to_store(nested) for nested in filter_group.nested_groups)

    def _build_condition(self, attribute_filter: AttributeFilter) -> str:
        path = f"c.{attribute_filter.field_path}"
        operator = attribute_filter.operator
        value = _format_store_value(attribute_filter.raw_value)

        if operator == FilterOperator.EQUALS:
            return f"{path} = {value}"
        if operator == FilterOperator.NOT_EQUALS:
            return f"{path} != {value}"
        if operator == FilterOperator.GREATER_THAN:
            return f"{path} > {value}"
        if operator == FilterOperator.LESS_THAN:
            return f"{path} < {value}"
        if operator == FilterOperator.GREATER_OR_EQUAL:
            return f"{path} >= {value}"
        if operator == FilterOperator.LESS_OR_EQUAL:
            return f"{path} <= {value}"
        if operator == FilterOperator.IN_RANGE:
            low = _format_store_value(attribute_filter.raw_min_value)
            high = _format_store_value(attribute_filter.raw_max_value)
            return f"{path} >= {low} AND {path} <= {high}"
        if operator == FilterOperator.IS_TRUE:
            return f"{path} = true"
        if operator == FilterOperator.IS_FALSE:
            return f"{path} = false"
        if operator == FilterOperator.EXISTS:
            return f"IS_DEFINED({path}) AND {path} != null"
        if operator == FilterOperator.NOT_EXISTS:
            return f"(NOT IS_DEFINED({path}) OR {path} = null)"

        logger.debug(
            f"Operator {operator.value} is not translated for the store",
            extra={"field_path": attribute_filter.field_path},
        )
        return ""


def _format_store_value(value: Any) -> str:
    """Render an operand as a store query literal."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        escaped = value.replace("'", "''")
        return f"'{escaped}'"
    if is_numeric(value):
        number = float(value)
        return str(int(number)) if number.is_integer() else repr(number)
    if isinstance(value, list):
        return "[" + ", ".join(_format_store_value(item) for item in value) + "]"
    return f"'{value}'"
