"""Delete query generator.

Only entry tables get delete builders. Child rows go away through the
``ON DELETE CASCADE`` foreign keys of the schema, which requires
``PRAGMA foreign_keys=ON`` on the SQLite connection.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable

from entity_tables.queries.base import GeneratedQueries, QueryFunction, function_stem, plural
from entity_tables.sql import Assignment, DeleteStatement
from entity_tables.tables import SchemaResolutionError, Table, TableGraph

logger = logging.getLogger(__name__)


def require_primary_key(table: Table, purpose: str) -> str:
    """Return the primary key column name of an entry table, raising if it has none."""
    if table.primary_key is None:
        raise SchemaResolutionError(
            f"Entry table '{table.name}' has no primary key to {purpose} rows by"
        )
    return table.primary_key


class DeleteQueryGenerator:
    """Generates ``delete_<t>``, ``delete_<t>s`` and ``delete_all_<t>s`` for entry tables."""

    def __init__(self, graph: TableGraph) -> None:
        self.graph = graph

    def generate(self) -> GeneratedQueries:
        result = GeneratedQueries()
        for table in self.graph.entry_tables():
            require_primary_key(table, "delete")
            stem = function_stem(table.name)
            result.add(QueryFunction(f"delete_{stem}", table, self._single_builder(table)), export=True)
            result.add(
                QueryFunction(f"delete_{plural(stem)}", table, self._many_builder(table)), export=True
            )
            result.add(
                QueryFunction(f"delete_all_{plural(stem)}", table, self._all_builder(table)),
                export=True,
            )
        logger.debug("Generated %d delete functions", len(result.functions))
        return result

    def _single_builder(self, table: Table):
        key_column = table.get_column_or_raise(table.primary_key)

        def delete(key: Any) -> list[str]:
            if key is None:
                raise ValueError(f"Cannot delete from '{table.name}' without a key")
            return [DeleteStatement(table.name, where=[Assignment(key_column, key)]).render()]

        return delete

    def _many_builder(self, table: Table):
        delete = self._single_builder(table)

        def delete_many(keys: Iterable[Any]) -> list[str]:
            statements: list[str] = []
            for key in keys:
                statements.extend(delete(key))
            return statements

        return delete_many

    @staticmethod
    def _all_builder(table: Table):
        def delete_all() -> list[str]:
            return [DeleteStatement(table.name).render()]

        return delete_all
