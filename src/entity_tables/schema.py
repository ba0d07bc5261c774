"""Schema emitter: CREATE TABLE / CREATE INDEX statements for a table graph."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterator

from entity_tables.tables import Column, Index, Table, TableGraph

logger = logging.getLogger(__name__)

INDENT = "  "


@dataclass(frozen=True)
class SchemaStatement:
    """A named DDL statement."""

    name: str
    sql: str


@dataclass
class SchemaArtifact:
    """Ordered DDL statements: each table followed by its indices."""

    statements: list[SchemaStatement] = field(default_factory=list)

    def sql_list(self) -> list[str]:
        """Return the statements in execution order."""
        return [s.sql for s in self.statements]

    def names(self) -> list[str]:
        return [s.name for s in self.statements]

    def get(self, name: str) -> SchemaStatement | None:
        for statement in self.statements:
            if statement.name == name:
                return statement
        return None

    def script(self) -> str:
        """Return all statements as one script, e.g. for ``executescript``."""
        return "\n\n".join(self.sql_list()) + "\n" if self.statements else ""

    def __iter__(self) -> Iterator[SchemaStatement]:
        return iter(self.statements)

    def __len__(self) -> int:
        return len(self.statements)


class SchemaEmitter:
    """Renders a table graph as idempotent SQLite DDL."""

    def emit(self, graph: TableGraph) -> SchemaArtifact:
        """Emit the schema for every table in resolution order."""
        artifact = SchemaArtifact()
        for table in graph:
            artifact.statements.append(
                SchemaStatement(name=f"{table.name}_sql", sql=self.table_sql(table))
            )
            for number, index in enumerate(table.indices, start=1):
                index_name = self.index_name(table, number)
                artifact.statements.append(
                    SchemaStatement(
                        name=f"{index_name}_sql",
                        sql=self.index_sql(table, index_name, index),
                    )
                )
        logger.debug("Emitted %d schema statements", len(artifact))
        return artifact

    def table_sql(self, table: Table) -> str:
        """Render the CREATE TABLE statement of one table."""
        lines = [f"{INDENT}{self.column_sql(table, column)}" for column in table.columns.values()]
        for fk in table.foreign_keys:
            lines.append(
                f"{INDENT}FOREIGN KEY({fk.column_name}) "
                f"REFERENCES {fk.parent_table_name}({fk.parent_column_name}) ON DELETE CASCADE"
            )
        body = ",\n".join(lines)
        return f"CREATE TABLE IF NOT EXISTS {table.name} (\n{body}\n);"

    @staticmethod
    def column_sql(table: Table, column: Column) -> str:
        sql = f"{column.name} {column.data_type.value}"
        if column.name == table.primary_key:
            sql += " PRIMARY KEY"
        elif column.not_null:
            sql += " NOT NULL"
        else:
            sql += " DEFAULT NULL"
        if column.auto_increment:
            sql += " AUTOINCREMENT"
        if column.unique:
            sql += " UNIQUE"
        return sql

    @staticmethod
    def index_name(table: Table, number: int) -> str:
        return f"{table.name}_i{number}"

    @staticmethod
    def index_sql(table: Table, index_name: str, index: Index) -> str:
        unique = "UNIQUE " if index.unique else ""
        columns = ", ".join(index.column_names)
        return f"CREATE {unique}INDEX IF NOT EXISTS {index_name} ON {table.name}({columns});"


def emit_schema(graph: TableGraph) -> SchemaArtifact:
    """Emit the schema of a table graph."""
    return SchemaEmitter().emit(graph)
