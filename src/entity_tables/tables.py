"""Resolved table graph: tables, columns, keys and indices."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Iterator, Mapping

from entity_tables.entities import EntityDefinition, PropertyDefinition, RelationKind

# Names of the synthetic columns
COL_ARRAY_INDEX = "arrayIndex"
COL_ARRAY_VALUE = "value"


class SchemaResolutionError(ValueError):
    """Structural problem that makes the entity graph unmappable to tables."""


class DataType(Enum):
    """SQLite storage classes used for columns.

    See https://www.sqlite.org/datatype3.html
    """

    NULL = "NULL"
    INTEGER = "INTEGER"
    NUMERIC = "NUMERIC"
    REAL = "REAL"
    TEXT = "TEXT"


class ColumnKind(Enum):
    """Where a column's value comes from."""

    FROM_PROPERTY = "from_property"
    ARRAY_INDEX = "array_index"
    FOREIGN_KEY_FROM_PARENT = "foreign_key_from_parent"
    GENERATED_PRIMARY_KEY = "generated_primary_key"


class TableKind(Enum):
    """Role of a table in the graph."""

    DEFAULT = "default"
    BASIC_ARRAY = "basic_array"
    ADVANCED_ARRAY = "advanced_array"


@dataclass(frozen=True)
class Column:
    """A single table column.

    For FROM_PROPERTY columns ``prop`` is the source property. Basic array
    tables also point their ``value`` column at the array property.
    """

    name: str
    data_type: DataType
    kind: ColumnKind
    not_null: bool = True
    primary_key: bool = False
    auto_increment: bool = False
    unique: bool = False
    prop: PropertyDefinition | None = None


@dataclass(frozen=True)
class ForeignKey:
    """Column referencing the primary key of a parent table."""

    column_name: str
    parent_table_name: str
    parent_column_name: str


@dataclass(frozen=True)
class Index:
    """Index over one or more columns."""

    column_names: tuple[str, ...]
    unique: bool = False


@dataclass(frozen=True)
class ParentLink:
    """One way a table is reached from a parent table.

    ``column_name`` is the foreign key column in the child table; it has
    the same name as the parent's primary key column.
    """

    table_name: str
    column_name: str
    kind: RelationKind
    property_name: str

    @property
    def is_one_to_many(self) -> bool:
        return self.kind is RelationKind.ONE_TO_MANY


@dataclass(frozen=True)
class Table:
    """A resolved table.

    Tables are immutable once the resolver hands them out.
    """

    name: str
    kind: TableKind
    entity: EntityDefinition
    columns: Mapping[str, Column]
    primary_key: str | None = None
    foreign_keys: tuple[ForeignKey, ...] = ()
    indices: tuple[Index, ...] = ()
    array_table_names: tuple[str, ...] = ()
    parent_links: tuple[ParentLink, ...] = ()
    is_entry: bool = False
    source_property: PropertyDefinition | None = None  # basic array tables only

    def __post_init__(self) -> None:
        if not isinstance(self.columns, MappingProxyType):
            object.__setattr__(self, "columns", MappingProxyType(dict(self.columns)))

    @property
    def is_basic_array(self) -> bool:
        return self.kind is TableKind.BASIC_ARRAY

    @property
    def is_advanced_array(self) -> bool:
        return self.kind is TableKind.ADVANCED_ARRAY

    @property
    def is_child(self) -> bool:
        """Return whether the table is reached from at least one parent."""
        return bool(self.parent_links)

    @property
    def parent_table_name(self) -> str | None:
        """Name of the first parent table, if any."""
        return self.parent_links[0].table_name if self.parent_links else None

    @property
    def parent_table_primary_key(self) -> str | None:
        """Foreign key column referencing the first parent, if any."""
        return self.parent_links[0].column_name if self.parent_links else None

    def get_column(self, name: str) -> Column | None:
        return self.columns.get(name)

    def get_column_or_raise(self, name: str) -> Column:
        column = self.columns.get(name)
        if column is None:
            raise KeyError(f"Column '{name}' not found in table '{self.name}'")
        return column

    def property_columns(self) -> list[Column]:
        """Return the columns fed from entity properties, in declaration order."""
        return [c for c in self.columns.values() if c.kind is ColumnKind.FROM_PROPERTY]

    def parent_link(self, parent_table_name: str | None = None) -> ParentLink:
        """Return the link to the given parent table (the first link by default)."""
        if not self.parent_links:
            raise SchemaResolutionError(f"Table '{self.name}' has no parent table")
        if parent_table_name is None:
            return self.parent_links[0]
        for link in self.parent_links:
            if link.table_name == parent_table_name:
                return link
        raise SchemaResolutionError(
            f"Table '{self.name}' is not a child of table '{parent_table_name}'"
        )


@dataclass
class TableGraph:
    """All resolved tables, keyed by name, in resolution order."""

    _tables: dict[str, Table] = field(default_factory=dict)

    def add(self, table: Table) -> None:
        if table.name in self._tables:
            raise SchemaResolutionError(f"Table '{table.name}' is defined twice")
        self._tables[table.name] = table

    def get(self, name: str) -> Table | None:
        return self._tables.get(name)

    def get_or_raise(self, name: str) -> Table:
        """Get a table by name, raising if not found."""
        table = self._tables.get(name)
        if table is None:
            raise KeyError(f"Table '{name}' not found")
        return table

    def list_tables(self) -> list[str]:
        return list(self._tables.keys())

    def entry_tables(self) -> list[Table]:
        """Return the tables addressable without a parent."""
        return [t for t in self._tables.values() if t.is_entry and not t.is_basic_array]

    def children_of(self, table: Table) -> list[Table]:
        """Return the relation child tables of a table, in relation order."""
        if table.is_basic_array:
            return []
        return [self.get_or_raise(r.child.name) for r in table.entity.relations]

    def array_tables_of(self, table: Table) -> list[Table]:
        """Return the basic array tables owned by a table."""
        return [self.get_or_raise(name) for name in table.array_table_names]

    def __contains__(self, name: str) -> bool:
        return name in self._tables

    def __iter__(self) -> Iterator[Table]:
        return iter(self._tables.values())

    def __len__(self) -> int:
        return len(self._tables)
