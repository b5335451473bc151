"""Raw SQL expressions.

Values wrapped in ``Expression`` are written into the SQL text verbatim
instead of travelling as bound parameters.
"""

from __future__ import annotations


class Expression:
    """A trusted fragment of SQL."""

    __slots__ = ("value",)

    def __init__(self, value: str) -> None:
        self.value = value

    def __str__(self) -> str:
        return str(self.value)

    def __repr__(self) -> str:
        return f"Expression({self.value!r})"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Expression) and other.value == self.value

    def __hash__(self) -> int:
        return hash(("Expression", self.value))


def raw(value: str) -> Expression:
    """Wrap *value* so it bypasses parameter binding."""
    return Expression(value)
