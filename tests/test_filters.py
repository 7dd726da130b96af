"""Tests for attribute filtering."""

from typing import Any

import pytest

from entity_matching.entities.models import Entity, FieldVisibility, FieldVisibilitySettings
from entity_matching.exceptions import InvalidComparisonError
from entity_matching.filters import (
    ABSENT,
    AttributeFilter,
    AttributeFilterEngine,
    BoolValue,
    FieldAccessor,
    FilterEvaluator,
    FilterGroup,
    FilterOperator,
    ListValue,
    LogicalOperator,
    NumberValue,
    StringValue,
)


def _filter(path: str, op: FilterOperator, value: Any = None, **kwargs: Any) -> AttributeFilter:
    return AttributeFilter(field_path=path, operator=op, value=value, **kwargs)


def _public_entity(attributes: dict[str, Any], **kwargs: Any) -> Entity:
    privacy = FieldVisibilitySettings(default_visibility=FieldVisibility.PUBLIC)
    return Entity(id="e1", attributes=attributes, privacy_settings=privacy, **kwargs)


class TestAttributeFilterModel:
    """Tests for tagged filter operands."""

    @pytest.mark.parametrize(
        ("raw", "expected_type"),
        [
            ("Dog", StringValue),
            (30, NumberValue),
            (2.5, NumberValue),
            (True, BoolValue),
            (["a", "b"], ListValue),
        ],
    )
    def test_raw_operand_wrapped(self, raw: Any, expected_type: type) -> None:
        """Plain values are wrapped in their tagged variant."""
        attribute_filter = _filter("x", FilterOperator.EQUALS, raw)
        assert isinstance(attribute_filter.value, expected_type)

    def test_bool_is_not_number(self) -> None:
        """Booleans are tagged as bool, not number."""
        attribute_filter = _filter("x", FilterOperator.EQUALS, False)
        assert attribute_filter.value.kind == "bool"
        assert attribute_filter.raw_value is False

    def test_tagged_operand_from_dict(self) -> None:
        """Serialized operands are parsed by their kind."""
        attribute_filter = AttributeFilter.model_validate(
            {
                "field_path": "age",
                "operator": "InRange",
                "min_value": {"kind": "number", "value": 25},
                "max_value": {"kind": "number", "value": 35},
            }
        )
        assert attribute_filter.operator == FilterOperator.IN_RANGE
        assert attribute_filter.raw_min_value == 25.0
        assert attribute_filter.raw_max_value == 35.0

    def test_unsupported_operand_rejected(self) -> None:
        """Operands of unsupported types are rejected."""
        with pytest.raises(ValueError):
            _filter("x", FilterOperator.EQUALS, object())

    @pytest.mark.parametrize(
        "field_path",
        ["x = 1 OR true OR c.y", "a..b", "", "age; DROP", "'name'", ".a"],
    )
    def test_invalid_field_path_rejected(self, field_path: str) -> None:
        """Field paths must be dot-separated identifiers."""
        with pytest.raises(ValueError, match="Field path"):
            _filter(field_path, FilterOperator.EQUALS, 1)

    def test_field_path_trimmed(self) -> None:
        """Surrounding whitespace is removed from valid paths."""
        assert _filter(" naturePreferences.hasPets ", FilterOperator.IS_TRUE).field_path == (
            "naturePreferences.hasPets"
        )

    def test_group_has_filters(self) -> None:
        """Nested groups count as filters."""
        assert not FilterGroup().has_filters
        assert FilterGroup(nested_groups=[FilterGroup()]).has_filters


class TestFieldAccessor:
    """Tests for dotted path resolution."""

    def test_nested_path(self) -> None:
        """Dotted paths walk nested attributes."""
        accessor = FieldAccessor()
        entity = _public_entity({"naturePreferences": {"hasPets": True}})
        assert accessor.resolve(entity, "naturePreferences.hasPets") is True

    def test_case_insensitive_segments(self) -> None:
        """Path segments match keys ignoring case."""
        accessor = FieldAccessor()
        source = {"NaturePreferences": {"HasPets": False}}
        assert accessor.resolve(source, "naturepreferences.haspets") is False

    def test_missing_and_non_map_segments(self) -> None:
        """Missing segments and traversal into scalars yield ABSENT."""
        accessor = FieldAccessor()
        source = {"a": {"b": 1}}
        assert accessor.resolve(source, "a.c") is ABSENT
        assert accessor.resolve(source, "a.b.c") is ABSENT
        assert accessor.resolve(source, "") is ABSENT

    def test_null_value_distinct_from_absent(self) -> None:
        """An explicit None is returned as None."""
        accessor = FieldAccessor()
        assert accessor.resolve({"a": None}, "a") is None


class TestFilterEvaluator:
    """Tests for operator semantics."""

    evaluator = FilterEvaluator()

    def _eval(self, op: FilterOperator, field_value: Any, value: Any = None, **kw: Any) -> bool:
        return self.evaluator.evaluate(_filter("f", op, value, **kw), field_value)

    def test_equals_case_insensitive(self) -> None:
        """String equality ignores case."""
        assert self._eval(FilterOperator.EQUALS, "intj", "INTJ")
        assert not self._eval(FilterOperator.NOT_EQUALS, "intj", "INTJ")

    def test_equals_numeric_widths(self) -> None:
        """Integers and floats compare by value."""
        assert self._eval(FilterOperator.EQUALS, 30, 30.0)

    def test_equals_bool_not_number(self) -> None:
        """True does not equal 1."""
        assert not self._eval(FilterOperator.EQUALS, 1, True)

    def test_contains_list_membership(self) -> None:
        """List membership ignores case."""
        assert self._eval(FilterOperator.CONTAINS, ["Dog", "Cat"], "dog")
        assert not self._eval(FilterOperator.CONTAINS, ["Dog", "Cat"], "bird")
        assert self._eval(FilterOperator.NOT_CONTAINS, ["Dog", "Cat"], "bird")

    def test_contains_substring(self) -> None:
        """Contains matches substrings ignoring case."""
        assert self._eval(FilterOperator.CONTAINS, "Loves Italian food", "italian")

    def test_contains_absent(self) -> None:
        """Absent fields contain nothing."""
        assert not self._eval(FilterOperator.CONTAINS, ABSENT, "dog")
        assert self._eval(FilterOperator.NOT_CONTAINS, ABSENT, "dog")

    def test_ordering(self) -> None:
        """Ordering operators compare numbers."""
        assert self._eval(FilterOperator.GREATER_THAN, 31, 30)
        assert not self._eval(FilterOperator.GREATER_THAN, 30, 30)
        assert self._eval(FilterOperator.GREATER_OR_EQUAL, 30, 30)
        assert self._eval(FilterOperator.LESS_THAN, 2.5, 3)
        assert self._eval(FilterOperator.LESS_OR_EQUAL, 3, 3)

    def test_in_range_inclusive(self) -> None:
        """Range bounds are inclusive."""
        assert self._eval(FilterOperator.IN_RANGE, 25, min_value=25, max_value=35)
        assert self._eval(FilterOperator.IN_RANGE, 35, min_value=25, max_value=35)
        assert not self._eval(FilterOperator.IN_RANGE, 36, min_value=25, max_value=35)

    @pytest.mark.parametrize("field_value", ["abc", ABSENT, None, True])
    def test_ordering_non_numeric_raises(self, field_value: Any) -> None:
        """Ordering a non-number is a defect, not a miss."""
        with pytest.raises(InvalidComparisonError):
            self._eval(FilterOperator.GREATER_THAN, field_value, 30)

    def test_is_true_requires_bool(self) -> None:
        """Boolean checks accept only real booleans."""
        assert self._eval(FilterOperator.IS_TRUE, True)
        assert not self._eval(FilterOperator.IS_TRUE, "true")
        assert not self._eval(FilterOperator.IS_TRUE, 1)
        assert self._eval(FilterOperator.IS_FALSE, False)
        assert not self._eval(FilterOperator.IS_FALSE, ABSENT)

    @pytest.mark.parametrize("field_value", [ABSENT, None, "", "  ", [], {}])
    def test_empty_values_do_not_exist(self, field_value: Any) -> None:
        """Absent, null and empty values do not exist."""
        assert not self._eval(FilterOperator.EXISTS, field_value)
        assert self._eval(FilterOperator.NOT_EXISTS, field_value)

    @pytest.mark.parametrize("field_value", [0, False, "x", ["a"]])
    def test_present_values_exist(self, field_value: Any) -> None:
        """Falsy but non-empty values exist."""
        assert self._eval(FilterOperator.EXISTS, field_value)


class TestAttributeFilterEngine:
    """Tests for filter tree evaluation with privacy."""

    engine = AttributeFilterEngine()

    def _pet_owner(self) -> Entity:
        return _public_entity(
            {"naturePreferences": {"hasPets": True, "petTypes": ["Dog", "Cat"]}, "age": 30}
        )

    def test_empty_group_matches(self) -> None:
        """No filters match every entity."""
        entity = self._pet_owner()
        assert self.engine.evaluate_filters(entity, None)
        assert self.engine.evaluate_filters(entity, FilterGroup())

    def test_and_group(self) -> None:
        """AND group matches when all filters match."""
        group = FilterGroup(
            filters=[
                _filter("naturePreferences.hasPets", FilterOperator.IS_TRUE),
                _filter("naturePreferences.petTypes", FilterOperator.CONTAINS, "Dog"),
            ]
        )
        assert self.engine.evaluate_filters(self._pet_owner(), group)

    def test_and_fails_on_any_miss(self) -> None:
        """AND group fails when one filter misses."""
        group = FilterGroup(
            filters=[
                _filter("naturePreferences.hasPets", FilterOperator.IS_TRUE),
                _filter("naturePreferences.petTypes", FilterOperator.CONTAINS, "Bird"),
            ]
        )
        assert not self.engine.evaluate_filters(self._pet_owner(), group)

    @pytest.mark.parametrize(
        ("operator", "expected"),
        [(LogicalOperator.AND, False), (LogicalOperator.OR, True)],
    )
    def test_one_true_one_false(self, operator: LogicalOperator, expected: bool) -> None:
        """AND needs both filters; OR needs one."""
        group = FilterGroup(
            logical_operator=operator,
            filters=[
                _filter("naturePreferences.hasPets", FilterOperator.IS_TRUE),
                _filter("age", FilterOperator.LESS_THAN, 18),
            ],
        )
        assert self.engine.evaluate_filters(self._pet_owner(), group) is expected

    def test_or_of_nested_and_groups(self) -> None:
        """(A AND B) OR (C AND D)."""
        group = FilterGroup(
            logical_operator=LogicalOperator.OR,
            nested_groups=[
                FilterGroup(
                    filters=[
                        _filter("age", FilterOperator.LESS_THAN, 20),
                        _filter("naturePreferences.hasPets", FilterOperator.IS_TRUE),
                    ]
                ),
                FilterGroup(
                    filters=[
                        _filter("age", FilterOperator.IN_RANGE, min_value=25, max_value=35),
                        _filter("naturePreferences.petTypes", FilterOperator.CONTAINS, "cat"),
                    ]
                ),
            ],
        )
        assert self.engine.evaluate_filters(self._pet_owner(), group)

    def test_private_field_skipped_for_stranger(self) -> None:
        """A hidden field neither passes nor fails the group."""
        entity = _public_entity({"birthday": "1990-01-01", "city": "Oslo"})
        entity.privacy_settings.set_field_visibility("birthday", FieldVisibility.PRIVATE)
        group = FilterGroup(
            filters=[
                _filter("birthday", FilterOperator.EQUALS, "2000-01-01"),
                _filter("city", FilterOperator.EQUALS, "oslo"),
            ]
        )
        assert self.engine.evaluate_filters(entity, group, requesting_user_id="stranger")

    @pytest.mark.parametrize(
        "field_path",
        ["Birthday", "attributes.birthday", "ATTRIBUTES.Birthday", "contactInformation.email"],
    )
    def test_private_field_aliases_stay_hidden(self, field_path: str) -> None:
        """Case variants, the attributes alias and child paths inherit privacy."""
        entity = _public_entity(
            {"birthday": "1990-01-01", "contactInformation": {"email": "x@y.z"}}
        )
        entity.privacy_settings.set_bulk_visibility(
            {
                "birthday": FieldVisibility.PRIVATE,
                "contactInformation": FieldVisibility.PRIVATE,
            }
        )
        group = FilterGroup(filters=[_filter(field_path, FilterOperator.EXISTS)])

        assert not self.engine.evaluate_filters(entity, group)
        assert self.engine.get_matched_attributes(entity, group) == {}

    def test_child_setting_overrides_private_parent(self) -> None:
        """The most specific explicit setting wins."""
        entity = _public_entity({"contactInformation": {"email": "x@y.z", "phone": "1"}})
        entity.privacy_settings.set_bulk_visibility(
            {
                "contactInformation": FieldVisibility.PRIVATE,
                "contactInformation.email": FieldVisibility.PUBLIC,
            }
        )
        email = FilterGroup(
            filters=[_filter("attributes.contactinformation.EMAIL", FilterOperator.EXISTS)]
        )
        phone = FilterGroup(filters=[_filter("contactInformation.phone", FilterOperator.EXISTS)])

        assert self.engine.evaluate_filters(entity, email)
        assert not self.engine.evaluate_filters(entity, phone)

    def test_fail_closed_when_everything_hidden(self) -> None:
        """A group with no visible input is false, even under OR."""
        entity = _public_entity({"birthday": "1990-01-01"})
        entity.privacy_settings.set_field_visibility("birthday", FieldVisibility.PRIVATE)

        for operator in LogicalOperator:
            group = FilterGroup(
                logical_operator=operator,
                filters=[_filter("birthday", FilterOperator.EXISTS)],
            )
            assert not self.engine.evaluate_filters(entity, group)

    def test_owner_sees_private_field(self) -> None:
        """Owners can filter on their private fields."""
        entity = _public_entity({"birthday": "1990-01-01"}, owned_by_user_id="me")
        entity.privacy_settings.set_field_visibility("birthday", FieldVisibility.PRIVATE)
        group = FilterGroup(filters=[_filter("birthday", FilterOperator.EXISTS)])

        assert self.engine.evaluate_filters(entity, group, requesting_user_id="me")

    def test_privacy_can_be_disabled(self) -> None:
        """Private fields are readable when privacy is off."""
        entity = _public_entity({"birthday": "1990-01-01"})
        entity.privacy_settings.set_field_visibility("birthday", FieldVisibility.PRIVATE)
        group = FilterGroup(filters=[_filter("birthday", FilterOperator.EXISTS)])

        assert self.engine.evaluate_filters(entity, group, enforce_privacy=False)

    def test_invalid_comparison_propagates(self) -> None:
        """Invalid comparisons are raised, not treated as misses."""
        entity = _public_entity({"age": "thirty"})
        group = FilterGroup(filters=[_filter("age", FilterOperator.GREATER_THAN, 18)])

        with pytest.raises(InvalidComparisonError):
            self.engine.evaluate_filters(entity, group)

    def test_matched_attributes(self) -> None:
        """Visible, present values of filtered fields are reported."""
        entity = _public_entity(
            {"naturePreferences": {"hasPets": True}, "birthday": "1990-01-01", "nickname": None}
        )
        entity.privacy_settings.set_field_visibility("birthday", FieldVisibility.PRIVATE)
        group = FilterGroup(
            filters=[
                _filter("naturePreferences.hasPets", FilterOperator.IS_TRUE),
                _filter("birthday", FilterOperator.EXISTS),
                _filter("nickname", FilterOperator.EXISTS),
                _filter("missing", FilterOperator.EXISTS),
            ],
            nested_groups=[FilterGroup(filters=[_filter("name", FilterOperator.EXISTS)])],
        )
        entity.name = "Alice"

        matched = self.engine.get_matched_attributes(entity, group)

        assert matched == {"naturePreferences.hasPets": True, "name": "Alice"}


class TestStorePushDown:
    """Tests for store query translation and classification."""

    engine = AttributeFilterEngine()

    def test_fragment_for_and_group(self) -> None:
        """AND groups translate to a conjunction with escaped strings."""
        group = FilterGroup(
            filters=[
                _filter("naturePreferences.hasPets", FilterOperator.IS_TRUE),
                _filter("age", FilterOperator.GREATER_OR_EQUAL, 18),
                _filter("city", FilterOperator.EQUALS, "O'Brien"),
            ]
        )
        fragment = self.engine.build_store_query_fragment(group)

        assert fragment == (
            "c.naturePreferences.hasPets = true AND c.age >= 18 AND c.city = 'O''Brien'"
        )

    def test_fragment_skips_contains_in_and(self) -> None:
        """Untranslatable filters are left out of an AND fragment."""
        group = FilterGroup(
            filters=[
                _filter("tags", FilterOperator.CONTAINS, "x"),
                _filter("score", FilterOperator.LESS_THAN, 2.5),
            ],
        )
        assert self.engine.build_store_query_fragment(group) == "c.score < 2.5"

    def test_fragment_or_with_contains_is_empty(self) -> None:
        """An OR group with an untranslatable member is not narrowed."""
        group = FilterGroup(
            logical_operator=LogicalOperator.OR,
            filters=[
                _filter("a", FilterOperator.EQUALS, 1),
                _filter("b", FilterOperator.CONTAINS, "x"),
            ],
        )
        assert self.engine.build_store_query_fragment(group) == ""

    def test_fragment_or_with_untranslatable_nested_group(self) -> None:
        """A nested group that yields nothing empties an enclosing OR."""
        group = FilterGroup(
            logical_operator=LogicalOperator.OR,
            filters=[_filter("a", FilterOperator.EQUALS, 1)],
            nested_groups=[
                FilterGroup(filters=[_filter("b", FilterOperator.NOT_CONTAINS, "x")])
            ],
        )
        assert self.engine.build_store_query_fragment(group) == ""

    def test_fragment_or_fully_translatable(self) -> None:
        """OR groups whose members all translate are joined with OR."""
        group = FilterGroup(
            logical_operator=LogicalOperator.OR,
            filters=[
                _filter("a", FilterOperator.EQUALS, 1),
                _filter("b", FilterOperator.IS_FALSE),
            ],
        )
        assert self.engine.build_store_query_fragment(group) == "c.a = 1 OR c.b = false"

    def test_fragment_nested_and_range(self) -> None:
        """Nested groups and ranges are parenthesized."""
        group = FilterGroup(
            filters=[_filter("active", FilterOperator.EXISTS)],
            nested_groups=[
                FilterGroup(
                    filters=[
                        _filter("age", FilterOperator.IN_RANGE, min_value=25, max_value=35)
                    ]
                )
            ],
        )
        assert self.engine.build_store_query_fragment(group) == (
            "IS_DEFINED(c.active) AND c.active != null AND (c.age >= 25 AND c.age <= 35)"
        )

    def test_fragment_ignores_privacy(self) -> None:
        """Fragments include private fields; in-process evaluation re-checks them."""
        group = FilterGroup(filters=[_filter("birthday", FilterOperator.NOT_EXISTS)])
        assert self.engine.build_store_query_fragment(group) == (
            "(NOT IS_DEFINED(c.birthday) OR c.birthday = null)"
        )

    def test_empty_fragment(self) -> None:
        """Empty trees yield no fragment."""
        assert self.engine.build_store_query_fragment(None) == ""
        assert self.engine.build_store_query_fragment(FilterGroup()) == ""

    def test_can_push(self) -> None:
        """Translatable trees can be pushed to the store."""
        group = FilterGroup(filters=[_filter("city", FilterOperator.EQUALS, "Oslo")])
        assert self.engine.can_push_to_store(group)
        assert self.engine.can_push_to_store(None)

    @pytest.mark.parametrize(
        "attribute_filter",
        [
            _filter("Age", FilterOperator.GREATER_THAN, 18),
            _filter("location", FilterOperator.EQUALS, "Oslo"),
            _filter("tags", FilterOperator.NOT_CONTAINS, "x"),
        ],
    )
    def test_cannot_push(self, attribute_filter: AttributeFilter) -> None:
        """Computed fields and substring operators stay in process."""
        nested = FilterGroup(nested_groups=[FilterGroup(filters=[attribute_filter])])
        assert not self.engine.can_push_to_store(nested)
