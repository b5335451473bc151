"""Connection configuration and management.

ConnectionConfig is a Pydantic model for type-safe connection config.
ConnectionManager owns the single connection the engine talks to; pooling
is out of scope.
"""

from __future__ import annotations

import importlib
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field

from row_orm.core.enums import DatabaseBackend
from row_orm.core.exceptions import AdapterError
from row_orm.core.log import get_logger

if TYPE_CHECKING:
    from row_orm.adapters.protocol import SyncAdapter

logger = get_logger(__name__)


def _default_pragmas() -> dict[str, str | int]:
    return {
        "foreign_keys": "ON",
        "journal_mode": "WAL",
        "synchronous": "NORMAL",
        "cache_size": -64000,
        "temp_store": "MEMORY",
    }


class ConnectionConfig(BaseModel):
    """Configuration for the database connection.

    ``pragmas`` are applied once, in order, when the connection opens.
    """

    driver: str = "sqlite"
    database: str = ":memory:"
    pragmas: dict[str, str | int] = Field(default_factory=_default_pragmas)
    timeout: float = 5.0
    log_queries: bool = False


# Adapter module mapping: driver name -> (module_path, class_name)
_ADAPTER_MAP: dict[str, tuple[str, str]] = {
    DatabaseBackend.SQLITE.value: ("row_orm.adapters.sqlite", "SqliteAdapter"),
}


def _load_adapter(driver: str) -> SyncAdapter:
    """Load an adapter by driver name."""
    driver_lower = driver.lower()
    if driver_lower not in _ADAPTER_MAP:
        raise AdapterError(f"Unsupported database driver: {driver}")

    module_path, cls_name = _ADAPTER_MAP[driver_lower]
    try:
        module = importlib.import_module(module_path)
        return getattr(module, cls_name)()
    except (ImportError, AttributeError) as e:
        raise AdapterError(f"Failed to load adapter for '{driver}': {e}") from e


class ConnectionManager:
    """Opens one connection lazily and hands it out until closed."""

    def __init__(self, config: ConnectionConfig) -> None:
        self.config = config
        self._adapter = _load_adapter(config.driver)
        self._connection: Any = None

    @property
    def adapter(self) -> SyncAdapter:
        return self._adapter

    @property
    def backend(self) -> DatabaseBackend:
        return DatabaseBackend(self.config.driver.lower())

    @property
    def is_open(self) -> bool:
        return self._connection is not None

    def open(self) -> Any:
        """Open the connection if needed and return it."""
        if self._connection is None:
            self._connection = self._adapter.connect(self.config)
            logger.debug("connection.opened", database=self.config.database)
        return self._connection

    @contextmanager
    def get_connection(self):  # type: ignore[no-untyped-def]
        """Yield the open connection."""
        yield self.open()

    def close(self) -> None:
        """Close the connection."""
        if self._connection is not None:
            self._adapter.close(self._connection)
            self._connection = None
            logger.debug("connection.closed", database=self.config.database)
