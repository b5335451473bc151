"""Statement execution engine.

The Engine is the context object every storage-touching call receives. It
executes rendered SQL with its positional parameters, returns rows as dicts,
remembers the last insert id and affected row count, and reports executed
statements to the query log.
"""

from __future__ import annotations

import time
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

from row_orm.core.connection import ConnectionConfig, ConnectionManager
from row_orm.core.log import get_logger
from row_orm.core.query_log import LoggedQuery, QueryLog

if TYPE_CHECKING:
    from row_orm.model.base import Model
    from row_orm.query.builder import QueryBuilder

logger = get_logger(__name__)


def _rows_to_dicts(cursor: Any) -> list[dict[str, Any]]:
    """Convert cursor results to a list of dicts."""
    if cursor.description is None:
        return []
    columns = [desc[0] for desc in cursor.description]
    rows = cursor.fetchall()
    if not rows:
        return []
    return [dict(zip(columns, row, strict=True)) for row in rows]


class Engine:
    """Synchronous query execution engine."""

    def __init__(self, connection_manager: ConnectionManager) -> None:
        self._connection_manager = connection_manager
        self._query_log = QueryLog(enabled=connection_manager.config.log_queries)
        self._last_insert_id: int | None = None
        self._affected_row_count = 0

    @classmethod
    def from_config(cls, config: ConnectionConfig) -> Engine:
        """Create an Engine from a ConnectionConfig."""
        return cls(ConnectionManager(config))

    @classmethod
    def connect(cls, database: str = ":memory:", **options: Any) -> Engine:
        """Shortcut for ``Engine.from_config(ConnectionConfig(database=..., ...))``."""
        return cls.from_config(ConnectionConfig(database=database, **options))

    @property
    def connection_manager(self) -> ConnectionManager:
        return self._connection_manager

    @property
    def paramstyle(self) -> str:
        return str(self._connection_manager.adapter.paramstyle)

    # --- Execution ---

    def execute(self, sql: str, params: Sequence[Any] = ()) -> list[dict[str, Any]]:
        """Execute one statement and return its rows (empty for writes).

        Driver errors propagate unchanged.
        """
        params = tuple(params)
        start = time.perf_counter()
        with self._connection_manager.get_connection() as conn:
            cursor = self._connection_manager.adapter.execute(conn, sql, params)
            rows = _rows_to_dicts(cursor)
            # rowcount is -1 and lastrowid unset for statements that write nothing
            if cursor.lastrowid:
                self._last_insert_id = int(cursor.lastrowid)
            if cursor.rowcount >= 0:
                self._affected_row_count = int(cursor.rowcount)
        elapsed = time.perf_counter() - start

        self._query_log.record(sql, params, elapsed)
        logger.debug(
            "query.executed",
            sql=sql,
            bindings=params,
            elapsed_ms=round(elapsed * 1000, 3),
        )
        return rows

    @property
    def last_insert_id(self) -> int | None:
        """Row id produced by the most recent INSERT."""
        return self._last_insert_id

    @property
    def affected_row_count(self) -> int:
        """Rows changed by the most recent write statement."""
        return self._affected_row_count

    # --- Builders ---

    def table(self, name: str) -> QueryBuilder:
        """Start a query against a plain table; rows come back as dicts."""
        from row_orm.query.builder import QueryBuilder

        return QueryBuilder(self, name)

    def query(self, model: type[Model]) -> QueryBuilder:
        """Start a query that materializes *model* instances."""
        return model.query(self)

    # --- Query log ---

    @property
    def query_log(self) -> QueryLog:
        return self._query_log

    def enable_query_log(self) -> None:
        self._query_log.enable()

    def disable_query_log(self) -> None:
        self._query_log.disable()

    def get_query_log(self) -> list[LoggedQuery]:
        return self._query_log.entries()

    def flush_query_log(self) -> None:
        self._query_log.flush()

    # --- Lifecycle ---

    def close(self) -> None:
        self._connection_manager.close()

    def __enter__(self) -> Engine:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
