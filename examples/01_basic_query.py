"""
Example 01: Basic Query Building

This example demonstrates the fluent query builder over plain tables.
"""

from row_orm import Blueprint, Engine, Schema, raw


def main():
    db = Engine.connect(":memory:")

    def build(table: Blueprint) -> None:
        table.id()
        table.string("name")
        table.string("email")
        table.boolean("active").default(True)
        table.integer("logins").default(0)

    Schema(db).create("users", build)

    db.table("users").insert(
        [
            {"name": "Alice", "email": "alice@example.com"},
            {"name": "Bob", "email": "bob@example.com"},
            {"name": "Charlie", "email": "charlie@example.com", "active": False},
        ]
    )

    print("=== Basic Query Building ===\n")

    # Rendering without executing
    query = db.table("users").where("active", True).where_in("id", [1, 2]).order_by("name")
    print(f"SQL:      {query.to_sql()}")
    print(f"Bindings: {query.get_bindings()}\n")

    # Reading rows
    for user in query.get():
        print(f"  - {user['name']} ({user['email']})")
    print()

    print(f"first():  {db.table('users').where('name', 'Bob').first()}")
    print(f"pluck():  {db.table('users').order_by('id').pluck('email')}")
    print(f"count():  {db.table('users').count()} total users\n")

    # Writing rows
    db.table("users").where("name", "Alice").increment("logins", 3)
    db.table("users").where("active", False).update({"name": raw("name || ' (inactive)'")})
    print(f"logins:   {db.table('users').sum('logins')}")
    print(f"renamed:  {db.table('users').find(3)['name']}\n")

    # Paging
    page = db.table("users").order_by("id").paginate(per_page=2, page=2)
    print(f"page {page.current_page()} of {page.last_page()}: {[u['name'] for u in page]}")

    db.close()


if __name__ == "__main__":
    main()
