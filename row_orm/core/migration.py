"""Database migration management.

Migrations are Python files named ``NNN_description.py`` inside one
directory, each defining a ``Migration`` subclass with ``up(schema)`` and
``down(schema)``. Every ``run()`` applies the pending files as one new batch;
``rollback()`` undoes whole batches, newest first. Applied migrations are
tracked in the ``migrations`` table (id, migration, batch).
"""

from __future__ import annotations

import importlib.util
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from types import ModuleType
from typing import TYPE_CHECKING

from row_orm.core.exceptions import MigrationExecutionError, MigrationFileError
from row_orm.core.log import get_logger
from row_orm.core.schema import Schema

if TYPE_CHECKING:
    from row_orm.core.engine import Engine

logger = get_logger(__name__)

_MIGRATION_PATTERN = re.compile(r"^(\d+)_(\w+)\.py$")

_CREATE_TRACKING_TABLE = """
CREATE TABLE IF NOT EXISTS migrations (
    id        INTEGER PRIMARY KEY AUTOINCREMENT,
    migration VARCHAR(255) NOT NULL,
    batch     INTEGER NOT NULL
)
"""


class Migration(ABC):
    """One reversible schema change."""

    @abstractmethod
    def up(self, schema: Schema) -> None: ...

    @abstractmethod
    def down(self, schema: Schema) -> None: ...


@dataclass(frozen=True)
class MigrationInfo:
    """Metadata about a single migration file."""

    name: str
    file_path: Path
    batch: int | None = None

    @property
    def ran(self) -> bool:
        return self.batch is not None


class Migrator:
    """Runs and rolls back batches of Python migrations.

    Args:
        engine: Engine the migrations and the tracking table live in.
        migration_dir: Directory holding ``NNN_description.py`` files.
    """

    def __init__(self, engine: Engine, migration_dir: Path | str = "migrations") -> None:
        self._engine = engine
        self._migration_dir = Path(migration_dir)
        self._schema = Schema(engine)
        self._ensure_tracking_table()

    def _ensure_tracking_table(self) -> None:
        self._engine.execute(_CREATE_TRACKING_TABLE)

    # --- Discovery ---

    def _migration_files(self) -> list[Path]:
        if not self._migration_dir.is_dir():
            return []
        files = []
        for file_path in sorted(self._migration_dir.glob("*.py")):
            if file_path.name.startswith("_"):
                continue
            if not _MIGRATION_PATTERN.match(file_path.name):
                raise MigrationFileError(file_path.name, "Must match pattern NNN_description.py")
            files.append(file_path)
        return files

    def _ran_batches(self) -> dict[str, int]:
        rows = self._engine.execute("SELECT migration, batch FROM migrations ORDER BY id")
        return {row["migration"]: int(row["batch"]) for row in rows}

    def discover(self) -> list[MigrationInfo]:
        """All migration files, in name order, with the batch they ran in."""
        ran = self._ran_batches()
        return [
            MigrationInfo(name=path.stem, file_path=path, batch=ran.get(path.stem))
            for path in self._migration_files()
        ]

    def status(self) -> list[MigrationInfo]:
        return self.discover()

    def pending(self) -> list[MigrationInfo]:
        return [m for m in self.discover() if not m.ran]

    def next_batch(self) -> int:
        rows = self._engine.execute("SELECT MAX(batch) AS max_batch FROM migrations")
        return int(rows[0]["max_batch"] or 0) + 1

    # --- Loading ---

    def _load(self, migration: MigrationInfo) -> Migration:
        module_name = f"row_orm_migration_{migration.name}"
        spec = importlib.util.spec_from_file_location(module_name, migration.file_path)
        if spec is None or spec.loader is None:
            raise MigrationFileError(migration.file_path.name, "cannot be imported")

        module: ModuleType = importlib.util.module_from_spec(spec)
        try:
            spec.loader.exec_module(module)
        except Exception as e:
            raise MigrationFileError(migration.file_path.name, str(e)) from e

        for value in vars(module).values():
            if (
                isinstance(value, type)
                and issubclass(value, Migration)
                and value is not Migration
                and value.__module__ == module_name
            ):
                return value()
        raise MigrationFileError(migration.file_path.name, "defines no Migration subclass")

    # --- Execution ---

    def _execute(self, migration: MigrationInfo, direction: str) -> None:
        instance = self._load(migration)
        self._engine.execute("BEGIN")
        try:
            getattr(instance, direction)(self._schema)
            if direction == "up":
                self._engine.execute(
                    "INSERT INTO migrations (migration, batch) VALUES (?, ?)",
                    (migration.name, migration.batch),
                )
            else:
                self._engine.execute("DELETE FROM migrations WHERE migration = ?", (migration.name,))
            self._engine.execute("COMMIT")
        except Exception as e:
            self._engine.execute("ROLLBACK")
            raise MigrationExecutionError(migration.name, str(e)) from e

    def run(self) -> list[MigrationInfo]:
        """Apply every pending migration as one new batch.

        Stops on the first failure. Returns the migrations that were applied.
        """
        pending = self.pending()
        if not pending:
            logger.info("migration.nothing_to_migrate")
            return []

        batch = self.next_batch()
        applied: list[MigrationInfo] = []
        for migration in pending:
            migration = MigrationInfo(migration.name, migration.file_path, batch)
            self._execute(migration, "up")
            logger.info("migration.applied", migration=migration.name, batch=batch)
            applied.append(migration)
        return applied

    def _roll_back(self, migrations: list[MigrationInfo]) -> list[MigrationInfo]:
        rolled_back: list[MigrationInfo] = []
        for migration in migrations:
            self._execute(migration, "down")
            logger.info("migration.rolled_back", migration=migration.name, batch=migration.batch)
            rolled_back.append(MigrationInfo(migration.name, migration.file_path))
        return rolled_back

    def _ran_newest_first(self, min_batch: int = 1) -> list[MigrationInfo]:
        files = {path.stem: path for path in self._migration_files()}
        rows = self._engine.execute(
            "SELECT migration, batch FROM migrations WHERE batch >= ? ORDER BY id DESC",
            (min_batch,),
        )
        ran = []
        for row in rows:
            path = files.get(row["migration"])
            if path is None:
                raise MigrationFileError(f"{row['migration']}.py", "recorded as run but missing")
            ran.append(MigrationInfo(row["migration"], path, int(row["batch"])))
        return ran

    def rollback(self, steps: int = 1) -> list[MigrationInfo]:
        """Undo the last *steps* batches, newest migration first."""
        if steps < 1:
            return []
        return self._roll_back(self._ran_newest_first(self.next_batch() - steps))

    def reset(self) -> list[MigrationInfo]:
        """Undo every migration that has run."""
        return self._roll_back(self._ran_newest_first())

    def refresh(self) -> list[MigrationInfo]:
        """Reset, then run every migration again as batch 1."""
        self.reset()
        return self.run()
