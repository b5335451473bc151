"""SQLite adapter built on the stdlib sqlite3 module."""

from __future__ import annotations

import sqlite3
from collections.abc import Sequence
from typing import Any

from row_orm.core.connection import ConnectionConfig
from row_orm.core.exceptions import ConnectionError  # noqa: A004


class SqliteAdapter:
    """Synchronous SQLite adapter.

    Connections run in autocommit mode: every statement is applied as soon
    as it executes.
    """

    @property
    def paramstyle(self) -> str:
        return "qmark"

    def connect(self, config: ConnectionConfig) -> sqlite3.Connection:
        """Open a connection and apply the configured pragmas once."""
        try:
            conn = sqlite3.connect(
                config.database,
                timeout=config.timeout,
                isolation_level=None,
            )
        except sqlite3.Error as e:
            raise ConnectionError(f"Cannot open SQLite database '{config.database}': {e}") from e

        conn.row_factory = sqlite3.Row
        for name, value in config.pragmas.items():
            conn.execute(f"PRAGMA {name} = {value}")
        return conn

    def close(self, connection: sqlite3.Connection) -> None:
        connection.close()

    def execute(
        self,
        connection: sqlite3.Connection,
        sql: str,
        params: Sequence[Any] = (),
    ) -> sqlite3.Cursor:
        """Execute SQL and return a cursor."""
        return connection.execute(sql, tuple(params))
