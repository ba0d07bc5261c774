"""Resolve an entity graph into a table graph.

Resolution runs in two passes:

  1. Walk the entity graph depth-first from the roots and collect one
     builder per entity name. A builder accumulates every parent context
     the entity is reached from, so an entity used by several parents
     (or both as an entry and as a child) maps to a single table.
  2. Finalize each builder into an immutable Table, followed by the basic
     array tables for its primitive-array properties.

Because all parent contexts are known before any table is finalized, the
result does not depend on the order in which an entity's parents are
visited.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable

from entity_tables.config import DEFAULT_TAGS, Tags
from entity_tables.entities import (
    EntityDefinition,
    PropertyDefinition,
    RelationKind,
    ScalarType,
)
from entity_tables.tables import (
    COL_ARRAY_INDEX,
    COL_ARRAY_VALUE,
    Column,
    ColumnKind,
    DataType,
    ForeignKey,
    Index,
    ParentLink,
    SchemaResolutionError,
    Table,
    TableGraph,
    TableKind,
)

logger = logging.getLogger(__name__)


@dataclass
class _TableBuilder:
    """Mutable accumulator for one entity during the collect pass."""

    entity: EntityDefinition
    primary_key: str | None
    generated_primary_key: bool
    is_entry: bool
    parent_links: list[ParentLink] = field(default_factory=list)

    def add_parent(self, link: ParentLink) -> None:
        if link not in self.parent_links:
            self.parent_links.append(link)

    @property
    def has_one_to_many_parent(self) -> bool:
        return any(link.is_one_to_many for link in self.parent_links)

    @property
    def parent_columns_nullable(self) -> bool:
        """Foreign key and array index columns must allow NULL when a row
        can exist without one particular parent."""
        return self.is_entry or len(self.parent_links) > 1


class TableResolver:
    """Maps entities to tables, primary keys, foreign keys and indices."""

    def __init__(self, tags: Tags | None = None) -> None:
        """Initialize a resolver.

        Args:
            tags: Tag vocabulary used to recognise primary key, index,
                unique, auto increment and numeric-kind annotations.
        """
        self.tags = tags or DEFAULT_TAGS
        self._builders: dict[str, _TableBuilder] = {}

    def resolve(self, roots: Iterable[EntityDefinition]) -> TableGraph:
        """Resolve the root entities (and everything reachable) into tables.

        Roots are always entry tables, whether or not they carry the entry tag.

        Raises:
            SchemaResolutionError: On any structural problem. No partial
                graph is returned.
        """
        self._builders = {}
        roots = list(roots)
        for root in roots:
            self._collect(root, None)

        graph = TableGraph()
        for builder in self._builders.values():
            table = self._build_table(builder)
            graph.add(table)
            logger.debug(
                "Resolved table %s (%s, primary key %s)",
                table.name,
                table.kind.value,
                table.primary_key,
            )
            for array_table in self._build_basic_array_tables(builder, table):
                graph.add(array_table)
                logger.debug("Resolved basic array table %s", array_table.name)

        logger.info("Resolved %d tables from %d root entities", len(graph), len(roots))
        return graph

    # ------------------------------------------------------------------
    # Pass 1: collect
    # ------------------------------------------------------------------

    def _collect(self, entity: EntityDefinition, link: ParentLink | None) -> None:
        builder = self._builders.get(entity.name)
        if builder is not None:
            logger.debug("Revisiting entity %s", entity.name)
            builder.is_entry = builder.is_entry or entity.is_entry or link is None
            if link is not None:
                builder.add_parent(link)
            return

        if entity.is_composite and entity.relations:
            names = ", ".join(r.property_name for r in entity.relations)
            raise SchemaResolutionError(
                f"Composite entity '{entity.name}' has relation children ({names}); "
                "relations are only supported on concrete entities"
            )

        primary_key, generated = self._resolve_primary_key(entity)
        builder = _TableBuilder(
            entity=entity,
            primary_key=primary_key,
            generated_primary_key=generated,
            is_entry=entity.is_entry or link is None,
        )
        if link is not None:
            builder.add_parent(link)
        self._builders[entity.name] = builder

        for relation in entity.relations:
            if primary_key is None:
                raise SchemaResolutionError(
                    f"Entity '{entity.name}' needs a primary key to reference "
                    f"its children through '{relation.property_name}'"
                )
            self._collect(
                relation.child,
                ParentLink(
                    table_name=entity.name,
                    column_name=primary_key,
                    kind=relation.kind,
                    property_name=relation.property_name,
                ),
            )

    def _resolve_primary_key(self, entity: EntityDefinition) -> tuple[str | None, bool]:
        """Pick the primary key column name for an entity.

        Returns:
            Tuple of (column name or None, whether the column is generated).
        """
        properties = list(entity.properties.values())

        tagged = [p for p in properties if p.has_tag(self.tags.primary_key)]
        if len(tagged) > 1:
            names = ", ".join(p.name for p in tagged)
            raise SchemaResolutionError(
                f"Entity '{entity.name}' has an ambiguous primary key: "
                f"{names} are all tagged '{self.tags.primary_key}'"
            )
        if tagged:
            prop = tagged[0]
            if prop.is_array or not prop.is_basic:
                raise SchemaResolutionError(
                    f"Primary key '{entity.name}.{prop.name}' must be a single scalar value"
                )
            return prop.name, False

        numeric_ids = [
            p
            for p in properties
            if p.scalar_type is ScalarType.NUMBER and not p.is_array and p.name.endswith("Id")
        ]
        if len(numeric_ids) == 1:
            return numeric_ids[0].name, False

        if not entity.is_composite and (entity.relations or entity.has_array_properties()):
            return self._generated_key_name(entity), True

        return None, False

    @staticmethod
    def _generated_key_name(entity: EntityDefinition) -> str:
        prefix = f"{entity.name[0].lower()}{entity.name[1:]}Id"
        name = prefix
        counter = 1
        while name in entity.properties:
            counter += 1
            name = f"{prefix}_{counter}"
        return name

    # ------------------------------------------------------------------
    # Pass 2: finalize
    # ------------------------------------------------------------------

    def _build_table(self, builder: _TableBuilder) -> Table:
        entity = builder.entity
        primary_key = builder.primary_key
        columns: dict[str, Column] = {}

        if builder.generated_primary_key and primary_key is not None:
            columns[primary_key] = Column(
                name=primary_key,
                data_type=DataType.INTEGER,
                kind=ColumnKind.GENERATED_PRIMARY_KEY,
                primary_key=True,
                auto_increment=True,
            )

        for prop in entity.properties.values():
            if prop.is_array or not prop.is_basic:
                continue
            columns[prop.name] = self._property_column(
                entity, prop, is_primary_key=prop.name == primary_key
            )

        nullable = builder.parent_columns_nullable
        foreign_keys: list[ForeignKey] = []
        for link in builder.parent_links:
            existing = columns.get(link.column_name)
            if existing is None:
                columns[link.column_name] = Column(
                    name=link.column_name,
                    data_type=self._primary_key_type(self._builders[link.table_name]),
                    kind=ColumnKind.FOREIGN_KEY_FROM_PARENT,
                    not_null=not nullable,
                )
            elif existing.primary_key and (
                link.is_one_to_many or link.table_name == entity.name
            ):
                raise SchemaResolutionError(
                    f"Foreign key column '{link.column_name}' from '{link.table_name}' "
                    f"clashes with the primary key of '{entity.name}'"
                )

            for fk in foreign_keys:
                if fk.column_name == link.column_name and fk.parent_table_name != link.table_name:
                    raise SchemaResolutionError(
                        f"Column '{entity.name}.{link.column_name}' would reference both "
                        f"'{fk.parent_table_name}' and '{link.table_name}'"
                    )
            foreign_key = ForeignKey(
                column_name=link.column_name,
                parent_table_name=link.table_name,
                parent_column_name=link.column_name,
            )
            if foreign_key not in foreign_keys:
                foreign_keys.append(foreign_key)

        indices: list[Index] = []
        for prop in entity.properties.values():
            if (
                prop.has_tag(self.tags.index)
                and prop.name in columns
                and prop.name != primary_key
            ):
                indices.append(Index(column_names=(prop.name,)))

        if builder.has_one_to_many_parent:
            if COL_ARRAY_INDEX in columns:
                raise SchemaResolutionError(
                    f"Entity '{entity.name}' declares '{COL_ARRAY_INDEX}', which is "
                    "reserved for the position of one-to-many children"
                )
            columns[COL_ARRAY_INDEX] = Column(
                name=COL_ARRAY_INDEX,
                data_type=DataType.INTEGER,
                kind=ColumnKind.ARRAY_INDEX,
                not_null=not nullable,
            )

        # One row per parent position, or per parent for a one-to-one child
        for link in builder.parent_links:
            if link.is_one_to_many:
                index = Index(column_names=(link.column_name, COL_ARRAY_INDEX), unique=True)
            elif self._single_row_per_parent(builder, link, columns):
                index = Index(column_names=(link.column_name,), unique=True)
            else:
                continue
            if index not in indices:
                indices.append(index)

        array_table_names = tuple(
            self._basic_array_table_name(entity, prop)
            for prop in entity.basic_array_properties()
        )
        if array_table_names and primary_key is None:
            raise SchemaResolutionError(
                f"Entity '{entity.name}' owns array properties but has no primary key"
            )

        return Table(
            name=entity.name,
            kind=TableKind.ADVANCED_ARRAY if builder.has_one_to_many_parent else TableKind.DEFAULT,
            entity=entity,
            columns=columns,
            primary_key=primary_key,
            foreign_keys=tuple(foreign_keys),
            indices=tuple(indices),
            array_table_names=array_table_names,
            parent_links=tuple(builder.parent_links),
            is_entry=builder.is_entry,
        )

    @staticmethod
    def _single_row_per_parent(
        builder: _TableBuilder, link: ParentLink, columns: dict[str, Column]
    ) -> bool:
        """Return whether a one-to-one link's column should be declared unique.

        Not when the column is already unique (the child's own primary key)
        or when another link shares the column, since rows of the two links
        cannot be told apart.
        """
        column = columns[link.column_name]
        if column.primary_key or column.unique:
            return False
        shared = [other for other in builder.parent_links if other.column_name == link.column_name]
        return len(shared) == 1

    def _build_basic_array_tables(
        self, builder: _TableBuilder, owner: Table
    ) -> list[Table]:
        entity = builder.entity
        primary_key = owner.primary_key
        tables: list[Table] = []
        if primary_key is None:
            return tables

        if primary_key in (COL_ARRAY_INDEX, COL_ARRAY_VALUE):
            raise SchemaResolutionError(
                f"Primary key '{entity.name}.{primary_key}' clashes with a basic array column"
            )
        key_type = self._primary_key_type(builder)

        for prop in entity.basic_array_properties():
            name = self._basic_array_table_name(entity, prop)
            if name in self._builders:
                raise SchemaResolutionError(
                    f"Array table '{name}' for '{entity.name}.{prop.name}' clashes "
                    f"with entity '{name}'"
                )
            value_type = self._column_type(prop)
            if value_type is None:
                raise SchemaResolutionError(
                    f"Could not create value column for basic array table '{name}'"
                )
            columns = {
                COL_ARRAY_INDEX: Column(
                    name=COL_ARRAY_INDEX,
                    data_type=DataType.INTEGER,
                    kind=ColumnKind.ARRAY_INDEX,
                ),
                COL_ARRAY_VALUE: Column(
                    name=COL_ARRAY_VALUE,
                    data_type=value_type,
                    kind=ColumnKind.FROM_PROPERTY,
                    prop=prop,
                ),
                primary_key: Column(
                    name=primary_key,
                    data_type=key_type,
                    kind=ColumnKind.FOREIGN_KEY_FROM_PARENT,
                ),
            }
            tables.append(
                Table(
                    name=name,
                    kind=TableKind.BASIC_ARRAY,
                    entity=entity,
                    columns=columns,
                    foreign_keys=(
                        ForeignKey(
                            column_name=primary_key,
                            parent_table_name=entity.name,
                            parent_column_name=primary_key,
                        ),
                    ),
                    indices=(Index(column_names=(primary_key, COL_ARRAY_INDEX), unique=True),),
                    parent_links=(
                        ParentLink(
                            table_name=entity.name,
                            column_name=primary_key,
                            kind=RelationKind.ONE_TO_MANY,
                            property_name=prop.name,
                        ),
                    ),
                    source_property=prop,
                )
            )
        return tables

    # ------------------------------------------------------------------
    # Column typing
    # ------------------------------------------------------------------

    def _property_column(
        self, entity: EntityDefinition, prop: PropertyDefinition, is_primary_key: bool
    ) -> Column:
        data_type = self._column_type(prop)
        if data_type is None:
            raise SchemaResolutionError(
                f"Property '{entity.name}.{prop.name}' has no scalar type"
            )
        auto_increment = prop.has_tag(self.tags.auto_increment)
        if auto_increment and not (is_primary_key and data_type is DataType.INTEGER):
            raise SchemaResolutionError(
                f"'{entity.name}.{prop.name}' is tagged '{self.tags.auto_increment}' "
                "but is not an INTEGER primary key"
            )
        return Column(
            name=prop.name,
            data_type=data_type,
            kind=ColumnKind.FROM_PROPERTY,
            not_null=not prop.is_optional,
            primary_key=is_primary_key,
            auto_increment=auto_increment,
            unique=prop.has_tag(self.tags.unique),
            prop=prop,
        )

    def _column_type(self, prop: PropertyDefinition) -> DataType | None:
        if prop.scalar_type is ScalarType.BOOLEAN:
            return DataType.NUMERIC
        if prop.scalar_type is ScalarType.NUMBER:
            if prop.has_tag(self.tags.real):
                return DataType.REAL
            if prop.has_tag(self.tags.numeric):
                return DataType.NUMERIC
            return DataType.INTEGER
        if prop.scalar_type in (ScalarType.STRING, ScalarType.DATE):
            return DataType.TEXT
        return None

    def _primary_key_type(self, builder: _TableBuilder) -> DataType:
        if builder.primary_key is None:
            raise SchemaResolutionError(
                f"Entity '{builder.entity.name}' has no primary key to reference"
            )
        if builder.generated_primary_key:
            return DataType.INTEGER
        prop = builder.entity.properties[builder.primary_key]
        data_type = self._column_type(prop)
        if data_type is None:
            raise SchemaResolutionError(
                f"Primary key '{builder.entity.name}.{prop.name}' has no scalar type"
            )
        return data_type

    @staticmethod
    def _basic_array_table_name(entity: EntityDefinition, prop: PropertyDefinition) -> str:
        return f"{entity.name}{prop.name[0].upper()}{prop.name[1:]}"


def resolve_tables(
    roots: Iterable[EntityDefinition], tags: Tags | None = None
) -> TableGraph:
    """Resolve root entities into a table graph with a fresh resolver."""
    return TableResolver(tags).resolve(roots)
