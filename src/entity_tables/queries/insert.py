"""Insert query generator."""

from __future__ import annotations

import logging
from typing import Any, Iterable

from entity_tables.queries.base import (
    GeneratedQueries,
    QueryFunction,
    RowWriter,
    function_stem,
    plural,
)
from entity_tables.tables import Table, TableGraph

logger = logging.getLogger(__name__)


class InsertQueryGenerator:
    """Generates ``insert_*`` builders for every table of a graph.

    Entry tables get ``insert_<t>(value)`` and ``insert_<t>s(values)``
    (exported). Tables reached from a parent get
    ``insert_<t>_as_child(value, parent_key, array_index=None, use_replace=False, parent=None)``;
    basic array tables get ``insert_<t>_as_child(value, parent_key, array_index, use_replace=False)``.
    """

    def __init__(self, graph: TableGraph) -> None:
        self.graph = graph
        self.writer = RowWriter(graph)

    def generate(self) -> GeneratedQueries:
        result = GeneratedQueries()
        for table in self.graph:
            stem = function_stem(table.name)
            if table.is_basic_array:
                result.add(
                    QueryFunction(f"insert_{stem}_as_child", table, self._array_value_builder(table))
                )
                continue
            if table.is_entry:
                result.add(QueryFunction(f"insert_{stem}", table, self._entry_builder(table)), export=True)
                result.add(
                    QueryFunction(f"insert_{plural(stem)}", table, self._many_builder(table)),
                    export=True,
                )
            if table.is_child:
                result.add(QueryFunction(f"insert_{stem}_as_child", table, self._child_builder(table)))
        logger.debug("Generated %d insert functions", len(result.functions))
        return result

    def _entry_builder(self, table: Table):
        def insert(value: Any) -> list[str]:
            return self.writer.write(table, value)

        return insert

    def _many_builder(self, table: Table):
        def insert_many(values: Iterable[Any]) -> list[str]:
            statements: list[str] = []
            for value in values:
                statements.extend(self.writer.write(table, value))
            return statements

        return insert_many

    def _child_builder(self, table: Table):
        def insert_as_child(
            value: Any,
            parent_key: Any,
            array_index: int | None = None,
            use_replace: bool = False,
            parent: str | None = None,
        ) -> list[str]:
            if parent_key is None:
                raise ValueError(f"Rows of '{table.name}' need a parent key")
            link = table.parent_link(parent)
            if link.is_one_to_many and array_index is None:
                raise ValueError(
                    f"Rows of '{table.name}' under '{link.table_name}.{link.property_name}' "
                    "need an array index"
                )
            return self.writer.write(
                table,
                value,
                parent_key=parent_key,
                array_index=array_index if link.is_one_to_many else None,
                link=link,
                use_replace=use_replace,
            )

        return insert_as_child

    def _array_value_builder(self, table: Table):
        def insert_value_as_child(
            value: Any, parent_key: Any, array_index: int, use_replace: bool = False
        ) -> list[str]:
            return [
                self.writer.write_array_value(
                    table, value, parent_key, array_index, use_replace=use_replace
                )
            ]

        return insert_value_as_child
