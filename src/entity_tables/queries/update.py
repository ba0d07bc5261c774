"""Experimental update query generator.

``update_<t>(value, key)`` updates the defined scalar columns of an entry
row in place. For every relation or primitive array present in ``value``
the current child rows under ``key`` are deleted and the new ones
inserted, so no stale positions survive. Only generated when asked for
(``generate(..., include_update=True)``).
"""

from __future__ import annotations

import logging
from typing import Any, Iterable

from entity_tables.queries.base import (
    GeneratedQueries,
    QueryFunction,
    RowWriter,
    function_stem,
    plural,
    read_field,
)
from entity_tables.queries.delete import require_primary_key
from entity_tables.sql import Assignment, DeleteStatement, UpdateStatement, is_defined
from entity_tables.tables import ColumnKind, Table, TableGraph

logger = logging.getLogger(__name__)


class UpdateQueryGenerator:
    """Generates ``update_<t>`` and ``update_<t>s`` for entry tables."""

    def __init__(self, graph: TableGraph) -> None:
        self.graph = graph
        self.writer = RowWriter(graph)

    def generate(self) -> GeneratedQueries:
        result = GeneratedQueries()
        for table in self.graph.entry_tables():
            require_primary_key(table, "update")
            stem = function_stem(table.name)
            result.add(QueryFunction(f"update_{stem}", table, self._entry_builder(table)), export=True)
            result.add(
                QueryFunction(f"update_{plural(stem)}", table, self._many_builder(table)), export=True
            )
        logger.debug("Generated %d update functions", len(result.functions))
        return result

    def _entry_builder(self, table: Table):
        key_column = table.get_column_or_raise(table.primary_key)

        def update(value: Any, key: Any) -> list[str]:
            if key is None:
                raise ValueError(f"Cannot update '{table.name}' without a key")

            statement = UpdateStatement(table.name, where=[Assignment(key_column, key)])
            for column in table.columns.values():
                if column.kind is not ColumnKind.FROM_PROPERTY or column.name == table.primary_key:
                    continue
                field_value = read_field(value, column.name)
                if is_defined(field_value):
                    statement.assignments.append(Assignment(column, field_value))

            statements = [] if statement.is_empty else [statement.render()]
            statements.extend(self._replace_children(table, value, key))
            return statements

        return update

    def _many_builder(self, table: Table):
        update = self._entry_builder(table)

        def update_many(pairs: Iterable[tuple[Any, Any]]) -> list[str]:
            statements: list[str] = []
            for value, key in pairs:
                statements.extend(update(value, key))
            return statements

        return update_many

    def _replace_children(self, table: Table, value: Any, key: Any) -> list[str]:
        statements: list[str] = []

        for relation in table.entity.relations:
            if not is_defined(read_field(value, relation.property_name)):
                continue
            child_table = self.graph.get_or_raise(relation.child.name)
            link = self.writer.link_for(child_table, table, relation.property_name)
            parent_column = child_table.get_column_or_raise(link.column_name)
            statements.append(
                DeleteStatement(child_table.name, where=[Assignment(parent_column, key)]).render()
            )

        for array_table in self.graph.array_tables_of(table):
            if not is_defined(read_field(value, array_table.source_property.name)):
                continue
            parent_column = array_table.get_column_or_raise(table.primary_key)
            statements.append(
                DeleteStatement(array_table.name, where=[Assignment(parent_column, key)]).render()
            )

        statements.extend(self.writer.write_children(table, value, key))
        return statements
