"""
Backend-neutral query model.

A query is a list of AND-combined field comparisons plus optional ordering
and pagination. Both adapters translate the same ``QueryOptions`` into their
native form, so callers never build Firestore or SQL queries themselves.

The seven comparators are closed: constructing a ``QueryFilter`` with any
other operator raises :class:`~cortex_db.errors.InvalidOperatorError`.

Usage:
    from cortex_db.query import QueryFilter, QueryOptions, where

    options = QueryOptions(
        filters=[where("projectId", "==", project_id)],
        order_by="createdAt",
        order_direction="desc",
        limit=20,
    )
    povs = db.find_many("povs", options)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from cortex_db.errors import InvalidOperatorError, QueryError


class ComparisonOp(str, Enum):
    """Supported field comparators."""

    EQ = "=="
    NE = "!="
    GT = ">"
    LT = "<"
    GTE = ">="
    LTE = "<="
    IN = "in"
    ARRAY_CONTAINS = "array-contains"


class OrderDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


@dataclass
class QueryFilter:
    """A single ``field <operator> value`` comparison."""

    field: str
    operator: ComparisonOp
    value: Any = None

    def __post_init__(self) -> None:
        if not isinstance(self.operator, ComparisonOp):
            try:
                self.operator = ComparisonOp(self.operator)
            except ValueError as exc:
                raise InvalidOperatorError(self.operator) from exc
        if self.operator is ComparisonOp.IN:
            if not isinstance(self.value, (list, tuple, set, frozenset)):
                raise QueryError(
                    f"Operator 'in' on {self.field!r} needs a list of values, got {type(self.value).__name__}"
                )
            self.value = list(self.value)


@dataclass
class QueryOptions:
    """Filters, ordering and pagination for ``find_many`` / ``count``.

    An empty ``filters`` list means no predicate: every record matches.
    """

    filters: list[QueryFilter] = field(default_factory=list)
    order_by: str | None = None
    order_direction: OrderDirection = OrderDirection.ASC
    limit: int | None = None
    offset: int | None = None

    def __post_init__(self) -> None:
        self.filters = list(self.filters or [])
        if not isinstance(self.order_direction, OrderDirection):
            try:
                self.order_direction = OrderDirection(str(self.order_direction).lower())
            except ValueError as exc:
                raise QueryError(f"Unknown order direction: {self.order_direction!r}") from exc
        if self.limit is not None and self.limit < 0:
            raise QueryError(f"limit must be >= 0, got {self.limit}")
        if self.offset is not None and self.offset < 0:
            raise QueryError(f"offset must be >= 0, got {self.offset}")

    @property
    def descending(self) -> bool:
        return self.order_direction is OrderDirection.DESC

    def where(self, field: str, operator: ComparisonOp | str, value: Any) -> QueryOptions:
        """Add a filter condition (fluent)."""
        self.filters.append(QueryFilter(field, operator, value))
        return self

    def equals(self, field: str, value: Any) -> QueryOptions:
        return self.where(field, ComparisonOp.EQ, value)

    def sort(self, field: str, direction: OrderDirection | str = OrderDirection.ASC) -> QueryOptions:
        self.order_by = field
        self.order_direction = OrderDirection(direction)
        return self


def where(field: str, operator: ComparisonOp | str, value: Any) -> QueryFilter:
    """Create a filter."""
    return QueryFilter(field, operator, value)


def equals(field: str, value: Any) -> QueryFilter:
    """Create an equality filter."""
    return QueryFilter(field, ComparisonOp.EQ, value)


__all__ = [
    "ComparisonOp",
    "OrderDirection",
    "QueryFilter",
    "QueryOptions",
    "where",
    "equals",
]
