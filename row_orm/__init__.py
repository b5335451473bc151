"""RowORM - active-record ORM for SQLite with batched relation loading."""

from __future__ import annotations

from row_orm.core.connection import ConnectionConfig, ConnectionManager
from row_orm.core.engine import Engine
from row_orm.core.enums import Boolean, CastType, DatabaseBackend, Direction, JoinType
from row_orm.core.exceptions import (
    AdapterError,
    ConnectionError,  # noqa: A004
    InvalidQueryError,
    MigrationError,
    MigrationExecutionError,
    MigrationFileError,
    MissingConnectionError,
    ModelError,
    ModelNotFoundError,
    ModelNotRegisteredError,
    QueryError,
    RegistryError,
    RelationNotFoundError,
    RowOrmError,
    SchemaError,
    UnknownCastError,
)
from row_orm.core.log import configure_logging, get_logger
from row_orm.core.migration import Migration, MigrationInfo, Migrator
from row_orm.core.query_log import LoggedQuery, QueryLog
from row_orm.core.registry import ModelRegistry, registry
from row_orm.core.schema import Blueprint, ColumnDefinition, ForeignKeyDefinition, Schema
from row_orm.core.seeder import Seeder
from row_orm.model.base import Model, relation
from row_orm.query.builder import QueryBuilder
from row_orm.query.expression import Expression, raw
from row_orm.query.paginator import Paginator
from row_orm.relations.descriptors import (
    BelongsTo,
    BelongsToMany,
    HasMany,
    HasManyThrough,
    HasOne,
    HasOneThrough,
    MorphMany,
    MorphOne,
    MorphTo,
    MorphToMany,
    Relation,
)
from row_orm.relations.eager import EagerLoader, eager_load
from row_orm.relations.pivot import Pivot

__all__ = [
    # Connection
    "ConnectionConfig",
    "ConnectionManager",
    # Engine
    "Engine",
    "QueryLog",
    "LoggedQuery",
    # Logging
    "configure_logging",
    "get_logger",
    # Query
    "QueryBuilder",
    "Expression",
    "raw",
    "Paginator",
    # Model
    "Model",
    "relation",
    "ModelRegistry",
    "registry",
    # Relations
    "Relation",
    "HasOne",
    "HasMany",
    "BelongsTo",
    "BelongsToMany",
    "HasManyThrough",
    "HasOneThrough",
    "MorphTo",
    "MorphOne",
    "MorphMany",
    "MorphToMany",
    "Pivot",
    "EagerLoader",
    "eager_load",
    # Schema
    "Schema",
    "Blueprint",
    "ColumnDefinition",
    "ForeignKeyDefinition",
    # Migration
    "Migration",
    "MigrationInfo",
    "Migrator",
    "Seeder",
    # Enums
    "DatabaseBackend",
    "Boolean",
    "Direction",
    "JoinType",
    "CastType",
    # Exceptions
    "RowOrmError",
    "RegistryError",
    "ModelNotRegisteredError",
    "RelationNotFoundError",
    "ModelError",
    "ModelNotFoundError",
    "MissingConnectionError",
    "UnknownCastError",
    "QueryError",
    "InvalidQueryError",
    "SchemaError",
    "MigrationError",
    "MigrationFileError",
    "MigrationExecutionError",
    "AdapterError",
    "ConnectionError",
]
