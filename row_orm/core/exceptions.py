"""RowORM exception hierarchy.

Errors raised by the SQLite driver itself (``sqlite3.IntegrityError`` and
friends) are not part of this hierarchy: they reach the caller unmodified.
"""

from __future__ import annotations

from typing import Any


class RowOrmError(Exception):
    """Base exception for all RowORM errors."""


# --- Registry ---


class RegistryError(RowOrmError):
    """Base for model and relation registry errors."""


class ModelNotRegisteredError(RegistryError):
    """Raised when a model alias cannot be resolved to a model class."""

    def __init__(self, alias: str) -> None:
        self.alias = alias
        super().__init__(f"No model registered under '{alias}'")


class RelationNotFoundError(RegistryError):
    """Raised when a requested relation has no definition on the model."""

    def __init__(self, relation: str, model: str) -> None:
        self.relation = relation
        self.model = model
        super().__init__(f"Relation '{relation}' does not exist on {model}")


# --- Model ---


class ModelError(RowOrmError):
    """Base for entity model errors."""


class ModelNotFoundError(ModelError):
    """Raised by strict lookups (find_or_fail) when no row matches."""

    def __init__(self, model: str, key: Any) -> None:
        self.model = model
        self.key = key
        super().__init__(f"No {model} record found with key {key!r}")


class MissingConnectionError(ModelError):
    """Raised when a storage operation runs on an entity with no engine bound."""

    def __init__(self, model: str) -> None:
        self.model = model
        super().__init__(
            f"{model} is not bound to an Engine; pass db= or load it through a query"
        )


class UnknownCastError(ModelError):
    """Raised at class definition time for an unsupported cast declaration."""

    def __init__(self, attribute: str, cast: str) -> None:
        self.attribute = attribute
        self.cast = cast
        super().__init__(f"Unknown cast '{cast}' declared for attribute '{attribute}'")


# --- Query ---


class QueryError(RowOrmError):
    """Base for query builder errors."""


class InvalidQueryError(QueryError):
    """Raised when a builder method receives arguments it cannot render."""

    def __init__(self, detail: str) -> None:
        super().__init__(f"Invalid query: {detail}")


# --- Schema ---


class SchemaError(RowOrmError):
    """Raised on invalid blueprint definitions."""


# --- Migration ---


class MigrationError(RowOrmError):
    """Base for migration errors."""


class MigrationFileError(MigrationError):
    """Raised for migration files that cannot be loaded."""

    def __init__(self, file_name: str, detail: str) -> None:
        self.file_name = file_name
        super().__init__(f"Invalid migration file '{file_name}': {detail}")


class MigrationExecutionError(MigrationError):
    """Raised when a migration fails to execute."""

    def __init__(self, name: str, detail: str) -> None:
        self.name = name
        super().__init__(f"Migration {name} failed: {detail}")


# --- Adapter ---


class AdapterError(RowOrmError):
    """Base for adapter errors."""


class ConnectionError(AdapterError):  # noqa: A001
    """Raised on connection failures."""
