"""Entity definitions and schema shared by the test suite.

Models register themselves by class name, so every test module imports
them from here instead of declaring its own copies.
"""

from __future__ import annotations

from row_orm.core.engine import Engine
from row_orm.core.schema import Blueprint, Schema
from row_orm.model.base import Model, relation


class Country(Model):
    __table__ = "countries"
    __timestamps__ = False

    @relation
    def users(self):
        return self.has_many(User)

    @relation
    def posts(self):
        return self.has_many_through(Post, User)

    @relation
    def first_post(self):
        return self.has_one_through(Post, User)


class User(Model):
    __fillable__ = ("name", "email", "password", "country_id", "is_admin", "settings")
    __hidden__ = ("password",)
    __casts__ = {"is_admin": "bool", "settings": "array"}

    @relation
    def profile(self):
        return self.has_one(Profile)

    @relation
    def posts(self):
        return self.has_many(Post)

    @relation
    def country(self):
        return self.belongs_to(Country)

    @relation
    def roles(self):
        return self.belongs_to_many(Role).with_pivot("expires_at").with_timestamps()

    @relation
    def image(self):
        return self.morph_one(Image, "imageable")


class Profile(Model):
    __timestamps__ = False

    @relation
    def user(self):
        return self.belongs_to(User)


class Post(Model):
    __morph_name__ = "post"
    __fillable__ = ("user_id", "title", "published")
    __casts__ = {"published": "boolean"}

    @relation
    def author(self):
        return self.belongs_to(User, "user_id")

    @relation
    def comments(self):
        return self.has_many(Comment)

    @relation
    def images(self):
        return self.morph_many(Image, "imageable")

    @relation
    def tags(self):
        return self.morph_to_many(Tag, "taggable")


class Comment(Model):
    __fillable__ = ("post_id", "body")

    @relation
    def post(self):
        return self.belongs_to(Post)


class Role(Model):
    __timestamps__ = False

    @relation
    def users(self):
        return self.belongs_to_many(User)


class Image(Model):
    __timestamps__ = False

    @relation
    def imageable(self):
        return self.morph_to("imageable")


class Tag(Model):
    __timestamps__ = False

    @relation
    def posts(self):
        return self.morphed_by_many(Post, "taggable")


def _countries(table: Blueprint) -> None:
    table.id()
    table.string("name")


def _users(table: Blueprint) -> None:
    table.id()
    table.string("name")
    table.string("email").nullable()
    table.string("password").nullable()
    table.integer("country_id").nullable()
    table.boolean("is_admin")
    table.json("settings").nullable()
    table.timestamps()


def _profiles(table: Blueprint) -> None:
    table.id()
    table.integer("user_id")
    table.text("bio").nullable()


def _posts(table: Blueprint) -> None:
    table.id()
    table.integer("user_id")
    table.string("title")
    table.boolean("published")
    table.timestamps()
    table.foreign("user_id").references("id").on("users").cascade_on_delete()


def _comments(table: Blueprint) -> None:
    table.id()
    table.integer("post_id")
    table.text("body")
    table.timestamps()


def _roles(table: Blueprint) -> None:
    table.id()
    table.string("name")


def _role_user(table: Blueprint) -> None:
    table.integer("user_id")
    table.integer("role_id")
    table.datetime("expires_at").nullable()
    table.timestamps()
    table.primary(["user_id", "role_id"])


def _images(table: Blueprint) -> None:
    table.id()
    table.string("url")
    table.morphs("imageable")


def _tags(table: Blueprint) -> None:
    table.id()
    table.string("name")


def _taggables(table: Blueprint) -> None:
    table.integer("tag_id")
    table.morphs("taggable")


TABLES = {
    "countries": _countries,
    "users": _users,
    "profiles": _profiles,
    "posts": _posts,
    "comments": _comments,
    "roles": _roles,
    "role_user": _role_user,
    "images": _images,
    "tags": _tags,
    "taggables": _taggables,
}


def create_schema(engine: Engine) -> None:
    schema = Schema(engine)
    for name, build in TABLES.items():
        schema.create(name, build)


def seed(engine: Engine) -> None:
    """Three users across two countries; the third user has no posts."""
    engine.table("countries").insert([{"name": "NL"}, {"name": "BE"}])
    engine.table("users").insert(
        [
            {"name": "Ann", "country_id": 1},
            {"name": "Bob", "country_id": 1},
            {"name": "Cid", "country_id": 2},
        ]
    )
    engine.table("profiles").insert([{"user_id": 1, "bio": "first"}, {"user_id": 1, "bio": "second"}])
    engine.table("posts").insert(
        [
            {"user_id": 1, "title": "p1", "published": 1},
            {"user_id": 1, "title": "p2", "published": 0},
            {"user_id": 2, "title": "p3", "published": 1},
        ]
    )
    engine.table("comments").insert(
        [
            {"post_id": 1, "body": "c1"},
            {"post_id": 1, "body": "c2"},
            {"post_id": 3, "body": "c3"},
        ]
    )
    engine.table("roles").insert([{"name": "admin"}, {"name": "editor"}, {"name": "viewer"}])
    engine.table("role_user").insert(
        [
            {"user_id": 1, "role_id": 1, "expires_at": "2030-01-01 00:00:00"},
            {"user_id": 1, "role_id": 2, "expires_at": None},
            {"user_id": 2, "role_id": 1, "expires_at": "2031-01-01 00:00:00"},
        ]
    )
    engine.table("images").insert(
        [
            {"url": "ann.png", "imageable_type": "User", "imageable_id": 1},
            {"url": "p1.png", "imageable_type": "post", "imageable_id": 1},
            {"url": "p3.png", "imageable_type": "post", "imageable_id": 3},
        ]
    )
    engine.table("tags").insert([{"name": "python"}, {"name": "sql"}])
    engine.table("taggables").insert(
        [
            {"tag_id": 1, "taggable_id": 1, "taggable_type": "post"},
            {"tag_id": 2, "taggable_id": 1, "taggable_type": "post"},
            {"tag_id": 1, "taggable_id": 2, "taggable_type": "post"},
            {"tag_id": 2, "taggable_id": 1, "taggable_type": "User"},
        ]
    )
