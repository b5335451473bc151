"""
Example 03: Migrations and Seeders

This example demonstrates versioned schema migrations and database seeding.
"""

import tempfile
from pathlib import Path

from row_orm import Engine, Migrator, Seeder


class UserSeeder(Seeder):
    def run(self) -> None:
        self.engine.table("users").insert([{"name": "Alice"}, {"name": "Bob"}])


class DatabaseSeeder(Seeder):
    def run(self) -> None:
        self.call(UserSeeder)


def main():
    work_dir = Path(tempfile.mkdtemp())
    migrations_dir = work_dir / "migrations"
    migrations_dir.mkdir()

    # Create migration files
    (migrations_dir / "001_create_users.py").write_text('''
from row_orm import Migration


class CreateUsers(Migration):
    def up(self, schema):
        schema.create("users", lambda table: (table.id(), table.string("name")))

    def down(self, schema):
        schema.drop_if_exists("users")
''')

    (migrations_dir / "002_create_orders.py").write_text('''
from row_orm import Migration


class CreateOrders(Migration):
    def up(self, schema):
        def build(table):
            table.id()
            table.integer("user_id")
            table.decimal("total")
            table.foreign("user_id").references("id").on("users").cascade_on_delete()

        schema.create("orders", build)

    def down(self, schema):
        schema.drop_if_exists("orders")
''')

    db = Engine.connect(str(work_dir / "app.db"))
    migrator = Migrator(db, migrations_dir)

    print("=== Migrations and Seeders ===\n")

    print("1. Pending migrations:")
    for migration in migrator.pending():
        print(f"   - {migration.name}")
    print()

    print("2. Apply migrations:")
    for migration in migrator.run():
        print(f"   - {migration.name} (batch {migration.batch})")
    print()

    print("3. Seed:")
    DatabaseSeeder(db).run()
    print(f"   users: {db.table('users').pluck('name')}\n")

    print("4. Roll back the last batch:")
    for migration in migrator.rollback():
        print(f"   - {migration.name}")
    print(f"   pending now: {[m.name for m in migrator.pending()]}")

    db.close()


if __name__ == "__main__":
    main()
