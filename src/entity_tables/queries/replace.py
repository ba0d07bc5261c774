"""Replace query generator.

``replace_<t>(value, key)`` upserts a row by primary key with
``REPLACE INTO`` and re-writes every child present in ``value`` the same
way. Children are matched on their primary key, on the unique
(parent key, arrayIndex) pair, or on the parent key alone for a
one-to-one child.

What happens to children missing from ``value`` depends on the
connection. SQLite implements REPLACE as delete-then-insert:

- With foreign keys off (SQLite's default), rows the input does not
  mention are left in place, including positions past the end of a new,
  shorter list. Callers that need them gone delete the parent first.
- With ``PRAGMA foreign_keys=ON`` the delete of the parent row cascades,
  so the whole subtree is rewritten from ``value``. Children and
  primitive arrays not in ``value`` are removed.
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
)
from entity_tables.queries.delete import require_primary_key
from entity_tables.tables import Table, TableGraph

logger = logging.getLogger(__name__)


class ReplaceQueryGenerator:
    """Generates ``replace_<t>`` / ``replace_<t>s`` for entry tables and
    ``replace_<t>_as_child`` helpers for child and basic array tables.

    Rows left out of the input survive only with foreign keys off; with
    ``PRAGMA foreign_keys=ON`` a parent replace rewrites its whole subtree.
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
                    QueryFunction(f"replace_{stem}_as_child", table, self._array_builder(table))
                )
                continue
            if table.is_entry:
                require_primary_key(table, "replace")
                result.add(QueryFunction(f"replace_{stem}", table, self._entry_builder(table)), export=True)
                result.add(
                    QueryFunction(f"replace_{plural(stem)}", table, self._many_builder(table)),
                    export=True,
                )
            if table.is_child:
                result.add(
                    QueryFunction(f"replace_{stem}_as_child", table, self._child_builder(table))
                )
        logger.debug("Generated %d replace functions", len(result.functions))
        return result

    def _entry_builder(self, table: Table):
        def replace(value: Any, key: Any) -> list[str]:
            if key is None:
                raise ValueError(f"Cannot replace in '{table.name}' without a key")
            return self.writer.write(table, value, primary_key=key, use_replace=True)

        return replace

    def _many_builder(self, table: Table):
        replace = self._entry_builder(table)

        def replace_many(pairs: Iterable[tuple[Any, Any]]) -> list[str]:
            statements: list[str] = []
            for value, key in pairs:
                statements.extend(replace(value, key))
            return statements

        return replace_many

    def _child_builder(self, table: Table):
        def replace_as_child(
            value: Any,
            parent_key: Any,
            array_index: int | None = None,
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
                use_replace=True,
            )

        return replace_as_child

    def _array_builder(self, table: Table):
        def replace_values_as_child(values: Iterable[Any], parent_key: Any) -> list[str]:
            return self.writer.write_array(table, values, parent_key, use_replace=True)

        return replace_values_as_child
