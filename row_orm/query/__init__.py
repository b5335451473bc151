"""Query layer - SQL fragment building, raw expressions and pagination."""

from __future__ import annotations

from row_orm.query.builder import QueryBuilder
from row_orm.query.clauses import Join, Order, Where
from row_orm.query.expression import Expression, raw
from row_orm.query.paginator import Paginator

__all__ = [
    "QueryBuilder",
    "Where",
    "Join",
    "Order",
    "Expression",
    "raw",
    "Paginator",
]
