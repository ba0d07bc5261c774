"""Shared pieces of the query generators.

The row writer turns one input value into an ordered statement list for a
table and recurses into its relation children and basic array tables. The
insert, replace and update generators all go through it.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable

from entity_tables.sql import InsertStatement, is_defined
from entity_tables.tables import (
    COL_ARRAY_INDEX,
    COL_ARRAY_VALUE,
    ColumnKind,
    ParentLink,
    Table,
    TableGraph,
)

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")


def function_stem(table_name: str) -> str:
    """Return the snake_case stem used in function names (``PhaseValues`` -> ``phase_values``)."""
    return _CAMEL_BOUNDARY.sub("_", table_name).lower()


def plural(stem: str) -> str:
    return f"{stem}s"


def read_field(source: Any, name: str) -> Any:
    """Read a field from a mapping or a plain object; absent reads as None."""
    if source is None:
        return None
    if isinstance(source, Mapping):
        return source.get(name)
    return getattr(source, name, None)


class QueryFunction:
    """A generated query builder bound to one table.

    Calling it returns the list of SQL statements to execute, in order.
    """

    def __init__(self, name: str, table: Table, body: Callable[..., list[str]]) -> None:
        self.__name__ = name
        self.name = name
        self.table = table
        self._body = body

    def __call__(self, *args: Any, **kwargs: Any) -> list[str]:
        return self._body(*args, **kwargs)

    def __repr__(self) -> str:
        return f"<query function {self.name} on {self.table.name}>"


@dataclass
class GeneratedQueries:
    """Functions produced by one generator plus the names it wants exported."""

    functions: dict[str, QueryFunction] = field(default_factory=dict)
    exports: list[str] = field(default_factory=list)

    def add(self, function: QueryFunction, export: bool = False) -> None:
        if function.name in self.functions:
            raise ValueError(f"Query function '{function.name}' is generated twice")
        self.functions[function.name] = function
        if export:
            self.exports.append(function.name)


class RowWriter:
    """Builds the statements that write one value (and its subtree) into tables."""

    def __init__(self, graph: TableGraph) -> None:
        self.graph = graph

    def write(
        self,
        table: Table,
        value: Any,
        *,
        parent_key: Any = None,
        array_index: int | None = None,
        link: ParentLink | None = None,
        primary_key: Any = None,
        use_replace: bool = False,
    ) -> list[str]:
        """Return the statements writing ``value`` into ``table`` and its children.

        Args:
            table: Target table (not a basic array table).
            value: Mapping or object holding the row's fields.
            parent_key: Primary key value of the parent row, for child rows.
            array_index: Position within the parent's list, for one-to-many rows.
            link: Parent link the row is written under (first link by default).
            primary_key: Overrides the primary key value read from ``value``.
            use_replace: Emit ``REPLACE INTO`` instead of ``INSERT INTO``.

        Returns:
            The statements, or an empty list if the row has no defined column.
        """
        statement = InsertStatement(table.name, replace=use_replace)

        if parent_key is not None:
            link = link or table.parent_link()
            statement.set(table.get_column_or_raise(link.column_name), parent_key)
            if array_index is not None:
                statement.set(table.get_column_or_raise(COL_ARRAY_INDEX), array_index)

        if primary_key is not None and table.primary_key is not None:
            statement.set(table.get_column_or_raise(table.primary_key), primary_key)

        for column in table.columns.values():
            if statement.has_column(column.name):
                continue
            if column.kind in (ColumnKind.FROM_PROPERTY, ColumnKind.GENERATED_PRIMARY_KEY):
                statement.set_if_defined(column, read_field(value, column.name))

        if statement.is_empty:
            return []

        statements = [statement.render()]
        key = statement.value_of(table.primary_key) if table.primary_key else None
        statements.extend(self.write_children(table, value, key, use_replace=use_replace))
        return statements

    def write_children(
        self, table: Table, value: Any, key: Any, *, use_replace: bool = False
    ) -> list[str]:
        """Return the statements for the relation children and basic arrays of a row."""
        statements: list[str] = []

        for relation in table.entity.relations:
            child_value = read_field(value, relation.property_name)
            if not is_defined(child_value):
                continue
            self._require_key(table, key, relation.property_name)
            child_table = self.graph.get_or_raise(relation.child.name)
            link = self.link_for(child_table, table, relation.property_name)
            if link.is_one_to_many:
                for index, item in enumerate(child_value):
                    statements.extend(
                        self.write(
                            child_table,
                            item,
                            parent_key=key,
                            array_index=index,
                            link=link,
                            use_replace=use_replace,
                        )
                    )
            else:
                statements.extend(
                    self.write(
                        child_table, child_value, parent_key=key, link=link, use_replace=use_replace
                    )
                )

        for array_table in self.graph.array_tables_of(table):
            values = read_field(value, array_table.source_property.name)
            if not is_defined(values):
                continue
            self._require_key(table, key, array_table.source_property.name)
            statements.extend(self.write_array(array_table, values, key, use_replace=use_replace))

        return statements

    def write_array(
        self, table: Table, values: Iterable[Any], parent_key: Any, *, use_replace: bool = False
    ) -> list[str]:
        """Return one statement per element of a primitive array, in index order."""
        return [
            self.write_array_value(table, item, parent_key, index, use_replace=use_replace)
            for index, item in enumerate(values)
        ]

    def write_array_value(
        self, table: Table, item: Any, parent_key: Any, array_index: int, *, use_replace: bool = False
    ) -> str:
        link = table.parent_link()
        statement = InsertStatement(table.name, replace=use_replace)
        statement.set(table.get_column_or_raise(COL_ARRAY_INDEX), array_index)
        statement.set(table.get_column_or_raise(COL_ARRAY_VALUE), item)
        statement.set(table.get_column_or_raise(link.column_name), parent_key)
        return statement.render()

    @staticmethod
    def link_for(child: Table, parent: Table, property_name: str) -> ParentLink:
        for link in child.parent_links:
            if link.table_name == parent.name and link.property_name == property_name:
                return link
        return child.parent_link(parent.name)

    @staticmethod
    def _require_key(table: Table, key: Any, property_name: str) -> None:
        if key is None:
            raise ValueError(
                f"Cannot write '{table.name}.{property_name}' without a value for "
                f"primary key '{table.primary_key}' of '{table.name}'"
            )
