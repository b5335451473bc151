"""Pivot payload attached to entities loaded through a many-to-many relation."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import Any


class Pivot(Mapping[str, Any]):
    """Read-only view of one pivot row.

    Columns are reachable both as keys (``pivot["role_id"]``) and as
    attributes (``pivot.role_id``).
    """

    __slots__ = ("_table", "_attributes")

    def __init__(self, table: str, attributes: Mapping[str, Any]) -> None:
        self._table = table
        self._attributes = dict(attributes)

    @property
    def table(self) -> str:
        return self._table

    def __getattr__(self, key: str) -> Any:
        if key.startswith("_"):
            raise AttributeError(key)
        try:
            return self._attributes[key]
        except KeyError:
            raise AttributeError(f"Pivot on '{self._table}' has no column '{key}'") from None

    def __getitem__(self, key: str) -> Any:
        return self._attributes[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._attributes)

    def __len__(self) -> int:
        return len(self._attributes)

    def to_dict(self) -> dict[str, Any]:
        return dict(self._attributes)

    def __repr__(self) -> str:
        return f"Pivot({self._table!r}, {self._attributes!r})"
