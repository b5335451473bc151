"""Integration tests for batched relation loading against SQLite.

Query counts come from the engine's query log: each relation adds exactly
one query per nesting level (two for pivot relations) whatever the number
of parents.
"""

from __future__ import annotations

import pytest
from orm_models import Comment, Country, Image, Post, Role, Tag, User, seed

from row_orm.core.engine import Engine
from row_orm.core.exceptions import RelationNotFoundError
from row_orm.relations.descriptors import THROUGH_KEY
from row_orm.relations.eager import eager_load
from row_orm.relations.pivot import Pivot


@pytest.fixture
def seeded(db: Engine) -> Engine:
    seed(db)
    db.enable_query_log()
    db.flush_query_log()
    return db


def by_name(models: list) -> dict:
    return {m.name: m for m in models}


class TestHasMany:
    def test_three_parents_one_extra_query(self, seeded: Engine) -> None:
        users = by_name(User.query(seeded).with_("posts").get())

        assert len(seeded.get_query_log()) == 2
        assert [p.title for p in users["Ann"].posts] == ["p1", "p2"]
        assert [p.title for p in users["Bob"].posts] == ["p3"]
        assert users["Cid"].posts == []

        seeded.flush_query_log()
        users["Ann"].posts
        assert seeded.get_query_log() == []

    def test_eager_query_uses_distinct_keys(self, seeded: Engine) -> None:
        User.query(seeded).with_("posts").get()
        eager = seeded.get_query_log()[1]
        assert eager.sql == "SELECT * FROM posts WHERE user_id IN (?, ?, ?)"
        assert eager.bindings == (1, 2, 3)

    def test_matches_lazy_loading(self, seeded: Engine) -> None:
        eager = User.query(seeded).with_("posts").get()
        lazy = User.all(seeded)
        for loaded, fresh in zip(eager, lazy, strict=True):
            assert [p.get_key() for p in loaded.posts] == [p.get_key() for p in fresh.posts]

    def test_query_count_is_independent_of_parent_count(self, seeded: Engine) -> None:
        seeded.table("users").insert([{"name": f"u{i}"} for i in range(20)])
        seeded.flush_query_log()
        users = User.query(seeded).with_("posts").get()
        assert len(users) == 23
        assert len(seeded.get_query_log()) == 2


class TestHasOne:
    def test_first_match_wins(self, seeded: Engine) -> None:
        users = by_name(User.query(seeded).with_("profile").get())
        assert len(seeded.get_query_log()) == 2
        assert users["Ann"].profile.bio == "first"
        assert users["Bob"].profile is None


class TestBelongsTo:
    def test_owner_per_child(self, seeded: Engine) -> None:
        posts = Post.query(seeded).with_("author").get()
        assert len(seeded.get_query_log()) == 2
        assert [p.author.name for p in posts] == ["Ann", "Ann", "Bob"]
        assert seeded.get_query_log()[1].bindings == (1, 2)

    def test_shared_owner_is_one_instance(self, seeded: Engine) -> None:
        posts = Post.query(seeded).with_("author").get()
        assert posts[0].author is posts[1].author

    def test_null_foreign_keys_skip_the_query(self, seeded: Engine) -> None:
        seeded.table("users").insert({"name": "Nomad"})
        seeded.flush_query_log()
        users = User.query(seeded).where_null("country_id").with_("country").get()
        assert [u.name for u in users] == ["Nomad"]
        assert users[0].country is None
        assert len(seeded.get_query_log()) == 1

    def test_missing_owner_is_none(self, seeded: Engine) -> None:
        seeded.table("comments").insert({"post_id": 99, "body": "lost"})
        comments = Comment.query(seeded).with_("post").get()
        assert comments[-1].post is None
        assert comments[0].post.title == "p1"


class TestBelongsToMany:
    def test_two_extra_queries(self, seeded: Engine) -> None:
        users = by_name(User.query(seeded).with_("roles").get())
        assert len(seeded.get_query_log()) == 3
        assert [r.name for r in users["Ann"].roles] == ["admin", "editor"]
        assert [r.name for r in users["Bob"].roles] == ["admin"]
        assert users["Cid"].roles == []

    def test_pivot_payload(self, seeded: Engine) -> None:
        users = by_name(User.query(seeded).with_("roles").get())
        pivot = users["Ann"].roles[0].pivot
        assert isinstance(pivot, Pivot)
        assert pivot.table == "role_user"
        assert pivot.user_id == 1
        assert pivot["role_id"] == 1
        assert pivot.expires_at == "2030-01-01 00:00:00"
        assert "created_at" in pivot

    def test_shared_related_row_is_copied_per_parent(self, seeded: Engine) -> None:
        users = by_name(User.query(seeded).with_("roles").get())
        ann_admin = users["Ann"].roles[0]
        bob_admin = users["Bob"].roles[0]
        assert ann_admin.get_key() == bob_admin.get_key() == 1
        assert ann_admin is not bob_admin
        assert ann_admin.pivot.expires_at == "2030-01-01 00:00:00"
        assert bob_admin.pivot.expires_at == "2031-01-01 00:00:00"

    def test_inverse_side(self, seeded: Engine) -> None:
        roles = Role.query(seeded).with_("users").get()
        assert [u.name for u in roles[0].users] == ["Ann", "Bob"]
        assert roles[2].users == []

    def test_pivot_payload_keeps_undeclared_columns(self, seeded: Engine) -> None:
        roles = Role.query(seeded).with_("users").get()
        ann, bob = roles[0].users
        assert ann.pivot.expires_at == "2030-01-01 00:00:00"
        assert bob.pivot["expires_at"] == "2031-01-01 00:00:00"
        assert "expires_at" in roles[1].users[0].pivot

    def test_lazy_results_carry_pivot(self, seeded: Engine) -> None:
        ann = User.find(seeded, 1)
        assert [r.pivot.role_id for r in ann.roles] == [1, 2]

    def test_join_query(self, seeded: Engine) -> None:
        ann = User.find(seeded, 1)
        roles = ann.relation("roles").get_query().order_by("roles.id").get()
        assert [r.name for r in roles] == ["admin", "editor"]


class TestThrough:
    def test_has_many_through(self, seeded: Engine) -> None:
        countries = by_name(Country.query(seeded).with_("posts").get())
        assert len(seeded.get_query_log()) == 2
        assert [p.title for p in countries["NL"].posts] == ["p1", "p2", "p3"]
        assert countries["BE"].posts == []

    def test_through_key_is_not_an_attribute(self, seeded: Engine) -> None:
        countries = Country.query(seeded).with_("posts").get()
        post = countries[0].posts[0]
        assert THROUGH_KEY not in post.get_attributes()
        assert post.is_clean()

    def test_has_one_through(self, seeded: Engine) -> None:
        countries = by_name(Country.query(seeded).with_("first_post").get())
        assert countries["NL"].first_post.title == "p1"
        assert countries["BE"].first_post is None

    def test_lazy_through(self, seeded: Engine) -> None:
        nl = Country.find(seeded, 1)
        assert [p.title for p in nl.posts] == ["p1", "p2", "p3"]
        assert nl.first_post.title == "p1"
        assert THROUGH_KEY not in nl.first_post.get_attributes()


class TestPolymorphic:
    def test_morph_to_one_query_per_type(self, seeded: Engine) -> None:
        images = Image.query(seeded).with_("imageable").get()
        assert len(seeded.get_query_log()) == 3
        assert isinstance(images[0].imageable, User)
        assert images[0].imageable.name == "Ann"
        assert isinstance(images[1].imageable, Post)
        assert [i.imageable.title for i in images[1:]] == ["p1", "p3"]

    def test_morph_to_keys_include_the_type(self, seeded: Engine) -> None:
        # user 1 and post 1 share an id; each image must get its own owner
        images = Image.query(seeded).with_("imageable").get()
        assert type(images[0].imageable) is not type(images[1].imageable)

    def test_lazy_morph_to(self, seeded: Engine) -> None:
        image = Image.find(seeded, 2)
        assert image.imageable.title == "p1"

    def test_morph_many_filters_on_type(self, seeded: Engine) -> None:
        posts = Post.query(seeded).with_("images").get()
        assert len(seeded.get_query_log()) == 2
        assert [i.url for i in posts[0].images] == ["p1.png"]
        assert posts[1].images == []
        assert seeded.get_query_log()[1].bindings == ("post", 1, 2, 3)

    def test_morph_one(self, seeded: Engine) -> None:
        users = by_name(User.query(seeded).with_("image").get())
        assert users["Ann"].image.url == "ann.png"
        assert users["Bob"].image is None

    def test_morph_to_many(self, seeded: Engine) -> None:
        posts = Post.query(seeded).with_("tags").get()
        assert len(seeded.get_query_log()) == 3
        assert [t.name for t in posts[0].tags] == ["python", "sql"]
        assert [t.name for t in posts[1].tags] == ["python"]
        assert posts[2].tags == []
        assert posts[0].tags[0].pivot.taggable_id == 1

    def test_morphed_by_many(self, seeded: Engine) -> None:
        tags = Tag.query(seeded).with_("posts").get()
        assert [p.title for p in tags[0].posts] == ["p1", "p2"]
        assert [p.title for p in tags[1].posts] == ["p1"]

    def test_lazy_morph_to_many(self, seeded: Engine) -> None:
        assert [t.name for t in Post.find(seeded, 1).tags] == ["python", "sql"]


class TestNested:
    def test_nested_path_adds_one_query_per_level(self, seeded: Engine) -> None:
        users = by_name(User.query(seeded).with_("posts.comments").get())
        assert len(seeded.get_query_log()) == 3
        ann_posts = users["Ann"].posts
        assert [c.body for c in ann_posts[0].comments] == ["c1", "c2"]
        assert ann_posts[1].comments == []
        assert [c.body for c in users["Bob"].posts[0].comments] == ["c3"]

    def test_sibling_and_nested_paths(self, seeded: Engine) -> None:
        User.query(seeded).with_("posts.comments", "posts.author", "roles").get()
        # users, posts, comments, authors, pivot, roles
        assert len(seeded.get_query_log()) == 6

    def test_nested_through_pivot(self, seeded: Engine) -> None:
        roles = Role.query(seeded).with_("users.posts").get()
        assert [p.title for p in roles[0].users[0].posts] == ["p1", "p2"]

    def test_load_on_existing_entities(self, seeded: Engine) -> None:
        users = User.all(seeded)
        seeded.flush_query_log()
        eager_load(users, "posts.comments")
        assert len(seeded.get_query_log()) == 2
        assert users[0].relation_loaded("posts")

    def test_load_method(self, seeded: Engine) -> None:
        post = Post.find(seeded, 1).load("comments", "author")
        assert post.relation_loaded("comments")
        assert post.author.name == "Ann"


class TestEdgeCases:
    def test_empty_result_issues_no_eager_query(self, seeded: Engine) -> None:
        users = User.query(seeded).where("name", "nobody").with_("posts").get()
        assert users == []
        assert len(seeded.get_query_log()) == 1

    def test_unknown_relation(self, seeded: Engine) -> None:
        with pytest.raises(RelationNotFoundError, match="'friends' does not exist on User"):
            User.query(seeded).with_("friends").get()

    def test_unknown_nested_relation(self, seeded: Engine) -> None:
        with pytest.raises(RelationNotFoundError, match="'likes' does not exist on Post"):
            User.query(seeded).with_("posts.likes").get()
