"""Schema builder - CREATE TABLE generation and table inspection for SQLite.

    schema = Schema(engine)
    schema.create("posts", lambda table: (
        table.id(),
        table.string("title"),
        table.integer("user_id"),
        table.foreign("user_id").references("id").on("users").on_delete("cascade"),
        table.timestamps(),
    ))

Columns are NOT NULL unless marked ``nullable()``, given a default, or part
of the primary key.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from row_orm.core.exceptions import SchemaError
from row_orm.core.log import get_logger
from row_orm.query.expression import Expression

if TYPE_CHECKING:
    from row_orm.core.engine import Engine

logger = get_logger(__name__)

_REFERENTIAL_ACTIONS = frozenset({"CASCADE", "RESTRICT", "SET NULL", "SET DEFAULT", "NO ACTION"})


def _literal(value: Any) -> str:
    """Render a DEFAULT value as SQL text."""
    if isinstance(value, Expression):
        return str(value)
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, (int, float)):
        return str(value)
    escaped = str(value).replace("'", "''")
    return f"'{escaped}'"


@dataclass
class ColumnDefinition:
    """One column of a Blueprint; modifiers return the column for chaining."""

    blueprint: Blueprint = field(repr=False)
    name: str
    type: str
    is_nullable: bool = False
    has_default: bool = False
    default_value: Any = None
    is_unique: bool = False
    is_primary: bool = False
    auto_increment: bool = False
    check: str | None = None

    def nullable(self, value: bool = True) -> ColumnDefinition:
        self.is_nullable = value
        return self

    def default(self, value: Any) -> ColumnDefinition:
        self.has_default = True
        self.default_value = value
        return self

    def unique(self) -> ColumnDefinition:
        self.is_unique = True
        return self

    def primary(self) -> ColumnDefinition:
        self.is_primary = True
        return self

    def index(self, name: str | None = None) -> ColumnDefinition:
        self.blueprint.index(self.name, name)
        return self

    def to_sql(self) -> str:
        parts = [self.name, self.type]
        if self.is_primary:
            parts.append("PRIMARY KEY")
            if self.auto_increment:
                parts.append("AUTOINCREMENT")
        elif not self.is_nullable and not self.has_default:
            parts.append("NOT NULL")
        if self.has_default:
            parts.append(f"DEFAULT {_literal(self.default_value)}")
        if self.is_unique:
            parts.append("UNIQUE")
        if self.check:
            parts.append(f"CHECK ({self.check})")
        return " ".join(parts)


@dataclass
class ForeignKeyDefinition:
    """``FOREIGN KEY (column) REFERENCES table(references)`` constraint."""

    column: str
    referenced_column: str = "id"
    referenced_table: str | None = None
    delete_action: str = "RESTRICT"
    update_action: str = "RESTRICT"

    def references(self, column: str) -> ForeignKeyDefinition:
        self.referenced_column = column
        return self

    def on(self, table: str) -> ForeignKeyDefinition:
        self.referenced_table = table
        return self

    def on_delete(self, action: str) -> ForeignKeyDefinition:
        self.delete_action = self._action(action)
        return self

    def on_update(self, action: str) -> ForeignKeyDefinition:
        self.update_action = self._action(action)
        return self

    def cascade_on_delete(self) -> ForeignKeyDefinition:
        return self.on_delete("CASCADE")

    def cascade_on_update(self) -> ForeignKeyDefinition:
        return self.on_update("CASCADE")

    def null_on_delete(self) -> ForeignKeyDefinition:
        return self.on_delete("SET NULL")

    @staticmethod
    def _action(action: str) -> str:
        normalized = " ".join(action.upper().split())
        if normalized not in _REFERENTIAL_ACTIONS:
            raise SchemaError(f"Unknown referential action '{action}'")
        return normalized

    def to_sql(self) -> str:
        if self.referenced_table is None:
            raise SchemaError(f"Foreign key on '{self.column}' has no referenced table")
        return (
            f"FOREIGN KEY ({self.column}) REFERENCES "
            f"{self.referenced_table}({self.referenced_column}) "
            f"ON DELETE {self.delete_action} ON UPDATE {self.update_action}"
        )


class Blueprint:
    """Collects the columns, keys and indexes of one table."""

    def __init__(self, table: str) -> None:
        self.table = table
        self.columns: list[ColumnDefinition] = []
        self.foreign_keys: list[ForeignKeyDefinition] = []
        self.indexes: list[str] = []
        self._primary: tuple[str, ...] = ()

    def add_column(self, name: str, type: str, **options: Any) -> ColumnDefinition:  # noqa: A002
        column = ColumnDefinition(self, name, type, **options)
        self.columns.append(column)
        return column

    # --- Keys ---

    def id(self, name: str = "id") -> ColumnDefinition:
        return self.add_column(name, "INTEGER", is_primary=True, auto_increment=True)

    def increments(self, name: str) -> ColumnDefinition:
        return self.id(name)

    def big_increments(self, name: str) -> ColumnDefinition:
        return self.id(name)

    def primary(self, columns: str | Sequence[str]) -> Blueprint:
        """Composite (or named) table-level primary key."""
        self._primary = (columns,) if isinstance(columns, str) else tuple(columns)
        return self

    def foreign(self, column: str) -> ForeignKeyDefinition:
        definition = ForeignKeyDefinition(column)
        self.foreign_keys.append(definition)
        return definition

    # --- Column types ---

    def integer(self, name: str, auto_increment: bool = False) -> ColumnDefinition:
        if auto_increment:
            return self.id(name)
        return self.add_column(name, "INTEGER")

    def big_integer(self, name: str) -> ColumnDefinition:
        return self.add_column(name, "BIGINT")

    def float(self, name: str) -> ColumnDefinition:
        return self.add_column(name, "REAL")

    def double(self, name: str) -> ColumnDefinition:
        return self.add_column(name, "REAL")

    def decimal(self, name: str, total: int = 8, places: int = 2) -> ColumnDefinition:
        return self.add_column(name, f"DECIMAL({total},{places})")

    def string(self, name: str, length: int = 255) -> ColumnDefinition:
        return self.add_column(name, f"VARCHAR({length})")

    def text(self, name: str) -> ColumnDefinition:
        return self.add_column(name, "TEXT")

    def boolean(self, name: str) -> ColumnDefinition:
        return self.add_column(name, "BOOLEAN").default(False)

    def date(self, name: str) -> ColumnDefinition:
        return self.add_column(name, "DATE")

    def datetime(self, name: str) -> ColumnDefinition:
        return self.add_column(name, "DATETIME")

    def time(self, name: str) -> ColumnDefinition:
        return self.add_column(name, "TIME")

    def timestamp(self, name: str) -> ColumnDefinition:
        return self.add_column(name, "TIMESTAMP")

    def timestamps(self) -> Blueprint:
        """Nullable ``created_at`` and ``updated_at`` columns."""
        self.timestamp("created_at").nullable()
        self.timestamp("updated_at").nullable()
        return self

    def json(self, name: str) -> ColumnDefinition:
        return self.add_column(name, "TEXT")

    def binary(self, name: str) -> ColumnDefinition:
        return self.add_column(name, "BLOB")

    def enum(self, name: str, values: Sequence[str]) -> ColumnDefinition:
        allowed = ", ".join(_literal(value) for value in values)
        return self.add_column(name, "TEXT", check=f"{name} IN ({allowed})")

    def morphs(self, name: str) -> Blueprint:
        """``<name>_type`` and ``<name>_id`` columns plus an index over both."""
        self.string(f"{name}_type")
        self.integer(f"{name}_id")
        return self.index([f"{name}_type", f"{name}_id"])

    # --- Indexes ---

    def index(self, columns: str | Sequence[str], name: str | None = None) -> Blueprint:
        return self._add_index("INDEX", columns, name)

    def unique(self, columns: str | Sequence[str], name: str | None = None) -> Blueprint:
        return self._add_index("UNIQUE INDEX", columns, name)

    def _add_index(self, kind: str, columns: str | Sequence[str], name: str | None) -> Blueprint:
        columns = [columns] if isinstance(columns, str) else list(columns)
        name = name or f"idx_{self.table}_{'_'.join(columns)}"
        self.indexes.append(
            f"CREATE {kind} IF NOT EXISTS {name} ON {self.table} ({', '.join(columns)})"
        )
        return self

    # --- Rendering ---

    def to_sql(self) -> str:
        """Render the CREATE TABLE statement (indexes are separate statements)."""
        if not self.columns:
            raise SchemaError(f"Table '{self.table}' has no columns")

        definitions = [column.to_sql() for column in self.columns]
        if self._primary:
            definitions.append(f"PRIMARY KEY ({', '.join(self._primary)})")
        definitions.extend(fk.to_sql() for fk in self.foreign_keys)

        body = ",\n    ".join(definitions)
        return f"CREATE TABLE IF NOT EXISTS {self.table} (\n    {body}\n)"

    def statements(self) -> list[str]:
        return [self.to_sql(), *self.indexes]


class Schema:
    """DDL and table inspection against one Engine."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def create(self, table: str, callback: Callable[[Blueprint], Any]) -> Blueprint:
        blueprint = Blueprint(table)
        callback(blueprint)
        for statement in blueprint.statements():
            self._engine.execute(statement)
        logger.debug("schema.created", table=table, columns=len(blueprint.columns))
        return blueprint

    def drop(self, table: str) -> None:
        self._engine.execute(f"DROP TABLE {table}")
        logger.debug("schema.dropped", table=table)

    def drop_if_exists(self, table: str) -> None:
        self._engine.execute(f"DROP TABLE IF EXISTS {table}")
        logger.debug("schema.dropped", table=table)

    def rename(self, source: str, target: str) -> None:
        self._engine.execute(f"ALTER TABLE {source} RENAME TO {target}")

    def has_table(self, table: str) -> bool:
        rows = self._engine.execute(
            "SELECT name FROM sqlite_master WHERE type = 'table' AND name = ?", (table,)
        )
        return bool(rows)

    def _table_info(self, table: str) -> list[dict[str, Any]]:
        return self._engine.execute(f"PRAGMA table_info({table})")

    def get_columns(self, table: str) -> list[str]:
        return [column["name"] for column in self._table_info(table)]

    def has_column(self, table: str, column: str) -> bool:
        return column in self.get_columns(table)

    def get_column_type(self, table: str, column: str) -> str | None:
        for info in self._table_info(table):
            if info["name"] == column:
                return str(info["type"])
        return None
