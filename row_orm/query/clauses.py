"""Clause data classes accumulated by the QueryBuilder.

Each value-bearing clause carries its own bound values and renders them
together with its SQL fragment, so placeholders and parameters can never
drift apart however the builder calls were ordered.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from row_orm.core.enums import Boolean, Direction, JoinType, WhereKind
from row_orm.query.expression import Expression


def _placeholder(value: Any, bindings: list[Any]) -> str:
    """Return ``?`` and bind *value*, or inline it when it is an Expression."""
    if isinstance(value, Expression):
        return value.value
    bindings.append(value)
    return "?"


@dataclass(frozen=True)
class Where:
    """A single WHERE (or HAVING) condition."""

    kind: WhereKind
    boolean: Boolean = Boolean.AND
    column: str | None = None
    operator: str | None = None
    values: tuple[Any, ...] = ()
    sql: str | None = None

    def compile(self) -> tuple[str, list[Any]]:
        """Render the condition without its connective."""
        bindings: list[Any] = []
        kind = self.kind

        if kind is WhereKind.BASIC:
            fragment = f"{self.column} {self.operator} {_placeholder(self.values[0], bindings)}"
        elif kind in (WhereKind.IN, WhereKind.NOT_IN):
            placeholders = ", ".join(_placeholder(v, bindings) for v in self.values)
            keyword = "IN" if kind is WhereKind.IN else "NOT IN"
            fragment = f"{self.column} {keyword} ({placeholders})"
        elif kind is WhereKind.NULL:
            fragment = f"{self.column} IS NULL"
        elif kind is WhereKind.NOT_NULL:
            fragment = f"{self.column} IS NOT NULL"
        elif kind in (WhereKind.BETWEEN, WhereKind.NOT_BETWEEN):
            low = _placeholder(self.values[0], bindings)
            high = _placeholder(self.values[1], bindings)
            keyword = "BETWEEN" if kind is WhereKind.BETWEEN else "NOT BETWEEN"
            fragment = f"{self.column} {keyword} {low} AND {high}"
        else:
            fragment = str(self.sql)
            bindings.extend(self.values)

        return fragment, bindings


def compile_conditions(conditions: list[Where]) -> tuple[str, list[Any]]:
    """Join conditions with their connectives; the first connective is dropped."""
    parts: list[str] = []
    bindings: list[Any] = []
    for index, condition in enumerate(conditions):
        fragment, values = condition.compile()
        if index > 0:
            parts.append(f" {condition.boolean.value} ")
        parts.append(fragment)
        bindings.extend(values)
    return "".join(parts), bindings


@dataclass(frozen=True)
class Join:
    """A JOIN clause. Both sides of ON are identifiers."""

    type: JoinType
    table: str
    first: str
    operator: str
    second: str

    def compile(self) -> str:
        return f"{self.type.value} JOIN {self.table} ON {self.first} {self.operator} {self.second}"


@dataclass(frozen=True)
class Order:
    """An ORDER BY item."""

    column: str
    direction: Direction = Direction.ASC

    def compile(self) -> str:
        return f"{self.column} {self.direction.value}"
