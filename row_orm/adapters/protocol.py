"""Database adapter protocol.

The engine only talks to the database through this interface.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Protocol, runtime_checkable

from row_orm.core.connection import ConnectionConfig


@runtime_checkable
class SyncAdapter(Protocol):
    """Synchronous database adapter protocol."""

    @property
    def paramstyle(self) -> str:
        """Parameter binding style. RowORM renders 'qmark' (``?``) placeholders."""
        ...

    def connect(self, config: ConnectionConfig) -> Any:
        """Open a connection and apply the configured pragmas."""
        ...

    def close(self, connection: Any) -> None:
        """Close a connection."""
        ...

    def execute(
        self,
        connection: Any,
        sql: str,
        params: Sequence[Any] = (),
    ) -> Any:
        """Execute SQL and return a cursor-like object."""
        ...
