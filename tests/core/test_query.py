"""Tests for cortex_db.query module."""

import pytest

from cortex_db.errors import InvalidOperatorError, QueryError
from cortex_db.query import ComparisonOp, OrderDirection, QueryFilter, QueryOptions, equals, where


class TestQueryFilter:
    def test_operator_string_is_coerced(self):
        condition = QueryFilter("status", "==", "active")
        assert condition.operator is ComparisonOp.EQ

    @pytest.mark.parametrize("op", ["==", "!=", ">", "<", ">=", "<=", "array-contains"])
    def test_all_comparators_accepted(self, op):
        assert QueryFilter("f", op, 1).operator.value == op

    def test_unknown_operator_rejected(self):
        with pytest.raises(InvalidOperatorError) as exc_info:
            QueryFilter("status", "like", "act%")
        assert exc_info.value.operator == "like"

    def test_in_requires_collection(self):
        with pytest.raises(QueryError, match="needs a list"):
            QueryFilter("status", "in", "active")

    def test_in_value_normalized_to_list(self):
        condition = QueryFilter("status", "in", ("active", "draft"))
        assert condition.value == ["active", "draft"]


class TestQueryOptions:
    def test_defaults(self):
        options = QueryOptions()
        assert options.filters == []
        assert options.order_by is None
        assert options.order_direction is OrderDirection.ASC
        assert options.descending is False
        assert options.limit is None
        assert options.offset is None

    def test_direction_string_is_coerced(self):
        assert QueryOptions(order_direction="DESC").descending is True

    def test_unknown_direction_rejected(self):
        with pytest.raises(QueryError):
            QueryOptions(order_direction="sideways")

    def test_negative_limit_rejected(self):
        with pytest.raises(QueryError):
            QueryOptions(limit=-1)

    def test_negative_offset_rejected(self):
        with pytest.raises(QueryError):
            QueryOptions(offset=-5)

    def test_fluent_builders(self):
        options = QueryOptions().equals("projectId", "P1").where("score", ">", 3).sort("createdAt", "desc")
        assert [(f.field, f.operator, f.value) for f in options.filters] == [
            ("projectId", ComparisonOp.EQ, "P1"),
            ("score", ComparisonOp.GT, 3),
        ]
        assert options.order_by == "createdAt"
        assert options.descending is True


class TestShortcuts:
    def test_where(self):
        condition = where("tags", "array-contains", "x")
        assert condition.operator is ComparisonOp.ARRAY_CONTAINS

    def test_equals(self):
        condition = equals("povId", "V1")
        assert (condition.field, condition.operator, condition.value) == ("povId", ComparisonOp.EQ, "V1")
