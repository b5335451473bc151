"""Unit tests for the schema builder."""

from __future__ import annotations

import sqlite3

import pytest

from row_orm.core.engine import Engine
from row_orm.core.exceptions import SchemaError
from row_orm.core.schema import Blueprint, Schema
from row_orm.query.expression import raw


class TestBlueprint:
    def test_columns_are_not_null_by_default(self) -> None:
        table = Blueprint("users")
        table.id()
        table.string("name")
        table.string("email", 100).nullable()
        table.boolean("active")
        table.integer("age").default(18)
        assert table.to_sql() == (
            "CREATE TABLE IF NOT EXISTS users (\n"
            "    id INTEGER PRIMARY KEY AUTOINCREMENT,\n"
            "    name VARCHAR(255) NOT NULL,\n"
            "    email VARCHAR(100),\n"
            "    active BOOLEAN DEFAULT 0,\n"
            "    age INTEGER DEFAULT 18\n"
            ")"
        )

    def test_defaults_are_quoted(self) -> None:
        table = Blueprint("t")
        table.string("status").default("it's new")
        table.timestamp("seen_at").default(raw("CURRENT_TIMESTAMP"))
        table.text("note").nullable().default(None)
        sql = table.to_sql()
        assert "status VARCHAR(255) DEFAULT 'it''s new'" in sql
        assert "seen_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP" in sql
        assert "note TEXT DEFAULT NULL" in sql

    def test_enum_check(self) -> None:
        table = Blueprint("t")
        table.enum("size", ["s", "m"])
        assert "size TEXT NOT NULL CHECK (size IN ('s', 'm'))" in table.to_sql()

    def test_foreign_keys_and_composite_primary(self) -> None:
        table = Blueprint("role_user")
        table.integer("user_id")
        table.integer("role_id")
        table.primary(["user_id", "role_id"])
        table.foreign("user_id").references("id").on("users").on_delete("cascade")
        sql = table.to_sql()
        assert "PRIMARY KEY (user_id, role_id)" in sql
        assert (
            "FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE ON UPDATE RESTRICT"
        ) in sql

    def test_bad_referential_action(self) -> None:
        with pytest.raises(SchemaError):
            Blueprint("t").foreign("a_id").on_delete("explode")

    def test_foreign_key_needs_table(self) -> None:
        table = Blueprint("t")
        table.integer("a_id")
        table.foreign("a_id")
        with pytest.raises(SchemaError, match="no referenced table"):
            table.to_sql()

    def test_indexes(self) -> None:
        table = Blueprint("posts")
        table.string("slug").unique()
        table.integer("user_id").index()
        table.morphs("imageable")
        table.unique(["user_id", "slug"], name="uq_posts")
        assert table.statements()[1:] == [
            "CREATE INDEX IF NOT EXISTS idx_posts_user_id ON posts (user_id)",
            "CREATE INDEX IF NOT EXISTS idx_posts_imageable_type_imageable_id "
            "ON posts (imageable_type, imageable_id)",
            "CREATE UNIQUE INDEX IF NOT EXISTS uq_posts ON posts (user_id, slug)",
        ]

    def test_empty_table_rejected(self) -> None:
        with pytest.raises(SchemaError, match="no columns"):
            Blueprint("t").to_sql()


class TestSchema:
    @pytest.fixture
    def schema(self, engine: Engine) -> Schema:
        return Schema(engine)

    def test_create_and_inspect(self, schema: Schema) -> None:
        def build(table: Blueprint) -> None:
            table.id()
            table.string("name")
            table.timestamps()

        schema.create("users", build)
        assert schema.has_table("users")
        assert schema.get_columns("users") == ["id", "name", "created_at", "updated_at"]
        assert schema.has_column("users", "name")
        assert not schema.has_column("users", "email")
        assert schema.get_column_type("users", "name") == "VARCHAR(255)"
        assert schema.get_column_type("users", "missing") is None

    def test_rename_and_drop(self, schema: Schema) -> None:
        schema.create("a", lambda table: table.id())
        schema.rename("a", "b")
        assert not schema.has_table("a")
        assert schema.has_table("b")
        schema.drop("b")
        assert not schema.has_table("b")
        schema.drop_if_exists("b")
        with pytest.raises(sqlite3.OperationalError):
            schema.drop("b")

    def test_not_null_is_enforced(self, schema: Schema, engine: Engine) -> None:
        schema.create("t", lambda table: (table.id(), table.string("name")))
        with pytest.raises(sqlite3.IntegrityError):
            engine.table("t").insert({"name": None})
