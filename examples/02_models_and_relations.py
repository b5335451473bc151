"""
Example 02: Models and Relations

This example demonstrates entity models, relation declarations and
batched eager loading.
"""

from row_orm import Blueprint, Engine, Model, Schema, relation


class User(Model):
    __fillable__ = ("name",)

    @relation
    def posts(self):
        return self.has_many(Post)

    @relation
    def roles(self):
        return self.belongs_to_many(Role).with_pivot("granted_by")


class Post(Model):
    __fillable__ = ("title", "user_id")
    __casts__ = {"published": "bool"}

    @relation
    def author(self):
        return self.belongs_to(User, "user_id")


class Role(Model):
    __timestamps__ = False


def create_tables(db: Engine) -> None:
    schema = Schema(db)

    def users(table: Blueprint) -> None:
        table.id()
        table.string("name")
        table.timestamps()

    def posts(table: Blueprint) -> None:
        table.id()
        table.integer("user_id")
        table.string("title")
        table.boolean("published")
        table.timestamps()

    def roles(table: Blueprint) -> None:
        table.id()
        table.string("name")

    def role_user(table: Blueprint) -> None:
        table.integer("user_id")
        table.integer("role_id")
        table.string("granted_by").nullable()

    schema.create("users", users)
    schema.create("posts", posts)
    schema.create("roles", roles)
    schema.create("role_user", role_user)


def main():
    db = Engine.connect(":memory:")
    create_tables(db)

    print("=== Models and Relations ===\n")

    # Saving entities and related rows
    alice = User.create(db, name="Alice")
    bob = User.create(db, name="Bob")
    alice.relation("posts").create({"title": "Hello"})
    alice.relation("posts").create({"title": "Again"})
    bob.relation("posts").create({"title": "First!"})

    admin = Role({"name": "admin"}, db=db)
    admin.save()
    alice.relation("roles").attach(admin, {"granted_by": "root"})

    # Dirty tracking
    post = Post.find(db, 1)
    post.published = True
    print(f"dirty before save: {post.get_dirty()}")
    post.save()
    print(f"dirty after save:  {post.get_dirty()}\n")

    # Eager loading: one query per relation, however many users there are
    db.enable_query_log()
    users = User.query(db).with_("posts", "roles").get()
    for user in users:
        titles = [p.title for p in user.posts]
        roles = [f"{r.name} (by {r.pivot.granted_by})" for r in user.roles]
        print(f"  - {user.name}: posts={titles} roles={roles}")
    print(f"\nqueries issued: {len(db.get_query_log())}")
    for entry in db.get_query_log():
        print(f"  {entry.sql}  {entry.bindings}")
    print()

    # Serialization
    print(Post.query(db).with_("author").first().to_json())

    db.close()


if __name__ == "__main__":
    main()
