"""Integration tests for writing through relations: pivot maintenance and
foreign key assignment."""

from __future__ import annotations

import pytest
from orm_models import Comment, Image, Post, Profile, Role, Tag, User, seed

from row_orm.core.engine import Engine


@pytest.fixture
def seeded(db: Engine) -> Engine:
    seed(db)
    return db


def pivot_ids(db: Engine, user_id: int) -> list[int]:
    return sorted(db.table("role_user").where("user_id", user_id).pluck("role_id"))


class TestPivotMaintenance:
    def test_attach_and_sync(self, seeded: Engine) -> None:
        roles = User.find(seeded, 3).relation("roles")
        assert roles.attach([1, 2])
        assert pivot_ids(seeded, 3) == [1, 2]

        changes = roles.sync([2, 3])
        assert changes == {"attached": [3], "detached": [1]}
        assert pivot_ids(seeded, 3) == [2, 3]

    def test_sync_without_detaching(self, seeded: Engine) -> None:
        roles = User.find(seeded, 1).relation("roles")
        assert roles.sync([3], detaching=False) == {"attached": [3], "detached": []}
        assert pivot_ids(seeded, 1) == [1, 2, 3]

    def test_sync_leaves_other_parents_alone(self, seeded: Engine) -> None:
        User.find(seeded, 1).relation("roles").sync([])
        assert pivot_ids(seeded, 1) == []
        assert pivot_ids(seeded, 2) == [1]

    def test_attach_accepts_entities_and_extra_columns(self, seeded: Engine) -> None:
        viewer = Role.find(seeded, 3)
        User.find(seeded, 3).relation("roles").attach(viewer, {"expires_at": "2040-01-01 00:00:00"})
        (role,) = User.find(seeded, 3).roles
        assert role.name == "viewer"
        assert role.pivot.expires_at == "2040-01-01 00:00:00"

    def test_attach_stamps_pivot_timestamps(self, seeded: Engine) -> None:
        User.find(seeded, 3).relation("roles").attach(1)
        (row,) = seeded.table("role_user").where("user_id", 3).get()
        assert row["created_at"] is not None
        assert row["created_at"] == row["updated_at"]

    def test_relation_without_timestamps_leaves_them_empty(self, seeded: Engine) -> None:
        Role.find(seeded, 3).relation("users").attach(3)
        (row,) = seeded.table("role_user").where("user_id", 3).get()
        assert row["created_at"] is None

    def test_attach_nothing(self, seeded: Engine) -> None:
        assert User.find(seeded, 3).relation("roles").attach([]) is False

    def test_detach(self, seeded: Engine) -> None:
        roles = User.find(seeded, 1).relation("roles")
        assert roles.detach(2) == 1
        assert pivot_ids(seeded, 1) == [1]
        assert roles.detach() == 1
        assert pivot_ids(seeded, 1) == []
        assert pivot_ids(seeded, 2) == [1]

    def test_update_existing_pivot(self, seeded: Engine) -> None:
        roles = User.find(seeded, 1).relation("roles")
        assert roles.update_existing_pivot(2, {"expires_at": "2035-06-01 00:00:00"}) == 1
        row = seeded.table("role_user").where("user_id", 1).where("role_id", 2).first()
        assert row["expires_at"] == "2035-06-01 00:00:00"
        assert row["updated_at"] is not None

    def test_where_pivot(self, seeded: Engine) -> None:
        roles = User.find(seeded, 1).relation("roles").where_pivot("expires_at", ">", "2029-12-31")
        assert [r.name for r in roles.get_results()] == ["admin"]

    def test_descriptor_is_unchanged_by_refinement(self, seeded: Engine) -> None:
        roles = User.find(seeded, 1).relation("roles")
        roles.where_pivot("role_id", 2)
        assert roles.pivot_wheres == ()
        assert len(roles.get_results()) == 2


class TestMorphPivot:
    def test_attach_writes_the_type_tag(self, seeded: Engine) -> None:
        Post.find(seeded, 3).relation("tags").attach(1)
        row = seeded.table("taggables").where("taggable_id", 3).first()
        assert row == {"tag_id": 1, "taggable_id": 3, "taggable_type": "post"}
        assert [t.name for t in Post.find(seeded, 3).tags] == ["python"]

    def test_inverse_attach(self, seeded: Engine) -> None:
        Tag.find(seeded, 2).relation("posts").attach(3)
        assert [p.title for p in Tag.find(seeded, 2).posts] == ["p1", "p3"]

    def test_detach_keeps_rows_of_other_types(self, seeded: Engine) -> None:
        assert Post.find(seeded, 1).relation("tags").detach() == 2
        remaining = seeded.table("taggables").where("taggable_id", 1).get()
        assert remaining == [{"tag_id": 2, "taggable_id": 1, "taggable_type": "User"}]

    def test_sync(self, seeded: Engine) -> None:
        tags = Post.find(seeded, 2).relation("tags")
        assert tags.sync([2]) == {"attached": [2], "detached": [1]}
        assert [t.name for t in Post.find(seeded, 2).tags] == ["sql"]


class TestForeignKeyWrites:
    def test_has_many_create(self, seeded: Engine) -> None:
        post = User.find(seeded, 3).relation("posts").create({"title": "p4"})
        assert post.exists
        assert post.user_id == 3
        assert [p.title for p in User.find(seeded, 3).posts] == ["p4"]

    def test_has_many_save(self, seeded: Engine) -> None:
        post = Post({"title": "loose", "user_id": 1})
        User.find(seeded, 2).relation("posts").save(post)
        assert Post.find(seeded, post.get_key()).user_id == 2

    def test_has_one_create(self, seeded: Engine) -> None:
        profile = User.find(seeded, 2).relation("profile").create(bio="hello")
        assert isinstance(profile, Profile)
        assert User.find(seeded, 2).profile.bio == "hello"

    def test_morph_many_create_sets_type(self, seeded: Engine) -> None:
        image = Post.find(seeded, 2).relation("images").create({"url": "p2.png"})
        assert image.imageable_type == "post"
        assert image.imageable_id == 2
        assert [i.url for i in Post.find(seeded, 2).images] == ["p2.png"]

    def test_belongs_to_associate(self, seeded: Engine) -> None:
        post = Post.find(seeded, 3)
        post.relation("author").associate(User.find(seeded, 3))
        assert post.get_dirty() == {"user_id": 3}
        post.save()
        assert Post.find(seeded, 3).author.name == "Cid"

    def test_belongs_to_dissociate(self, seeded: Engine) -> None:
        comment = Comment.find(seeded, 1)
        comment.relation("post").dissociate()
        assert comment.post_id is None
        assert comment.is_dirty("post_id")

    def test_morph_to_associate(self, seeded: Engine) -> None:
        image = Image.find(seeded, 1)
        image.relation("imageable").associate(Post.find(seeded, 2))
        image.save()

        reloaded = Image.find(seeded, 1)
        assert reloaded.imageable_type == "post"
        assert reloaded.imageable.title == "p2"

    def test_morph_to_associate_uses_class_name_without_alias(self, seeded: Engine) -> None:
        image = Image.find(seeded, 2)
        image.relation("imageable").associate(User.find(seeded, 2))
        assert image.imageable_type == "User"
        assert image.imageable_id == 2
