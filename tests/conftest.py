"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest
from orm_models import create_schema

from row_orm.core.connection import ConnectionConfig
from row_orm.core.engine import Engine


@pytest.fixture
def sqlite_config() -> ConnectionConfig:
    """SQLite in-memory connection config."""
    return ConnectionConfig(driver="sqlite", database=":memory:")


@pytest.fixture
def engine(sqlite_config: ConnectionConfig) -> Iterator[Engine]:
    """Engine over an empty in-memory database."""
    db = Engine.from_config(sqlite_config)
    yield db
    db.close()


@pytest.fixture
def db(engine: Engine) -> Engine:
    """Engine with the test schema created."""
    create_schema(engine)
    return engine


@pytest.fixture
def migration_dir(tmp_path: Path) -> Path:
    path = tmp_path / "migrations"
    path.mkdir()
    return path


@pytest.fixture
def write_migration(migration_dir: Path):
    """Helper to write migration files into the temp directory.

    Usage:
        write_migration("001_create_users.py", source)
    """

    def _write(file_name: str, content: str) -> Path:
        file_path = migration_dir / file_name
        file_path.write_text(content, encoding="utf-8")
        return file_path

    return _write
