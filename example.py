"""Example usage of the entity_tables library."""

import sqlite3

from entity_tables import generate_from_source

# Describe the entity graph using the model DSL
model_source = """
enum ArticleType { News, Blog, Review }

Article {
    articleId: number
    title: string
    @index url: string
    type: ArticleType
}

@entry
Phase {
    name: string
    phaseId: number
    articles: Article[]
    optionalFieldsWork?: boolean
    values: string[]
}
"""

model = generate_from_source(model_source)

print("Tables:")
for table in model.tables:
    print(f"  {table.name} ({table.kind.value})")

print("\nSchema:")
print(model.schema.script())

conn = sqlite3.connect(":memory:")
conn.execute("PRAGMA foreign_keys=ON")
conn.executescript(model.schema.script())

phase = {
    "name": "Introduction",
    "phaseId": 1,
    "values": ["hallo", "hoi", "hey"],
    "articles": [
        {"articleId": 10, "title": "Welcome", "url": "/welcome", "type": 0},
        {"articleId": 11, "title": "Getting started", "url": "/start", "type": 1},
    ],
}

print("Insert statements:")
for statement in model.queries.insert_phase(phase):
    print(f"  {statement}")
    conn.execute(statement)

print("\nArticles in database:")
for row in conn.execute("SELECT articleId, title, phaseId, arrayIndex FROM Article"):
    print(f"  {row}")

# Deleting the entry row cascades to its children
for statement in model.queries.delete_phase(1):
    conn.execute(statement)

remaining = conn.execute("SELECT COUNT(*) FROM Article").fetchone()[0]
print(f"\nArticles after delete_phase(1): {remaining}")

conn.close()
