"""Entity graph definitions consumed by the table resolver."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator


class ScalarType(Enum):
    """Scalar property types understood by the resolver."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "Date"


# Mapping from DSL type names to ScalarType values
SCALAR_TYPE_NAMES: dict[str, ScalarType] = {st.value: st for st in ScalarType}


class RelationKind(Enum):
    """How a child entity hangs off its parent."""

    ONE_TO_ONE = "one_to_one"
    ONE_TO_MANY = "one_to_many"


@dataclass
class PropertyDefinition:
    """A single property of an entity.

    A property without a scalar type refers to a child entity; the matching
    Relation on the owning entity carries the child.
    """

    name: str
    scalar_type: ScalarType | None = None
    is_array: bool = False
    is_optional: bool = False
    tags: frozenset[str] = field(default_factory=frozenset)

    @property
    def is_basic(self) -> bool:
        """Return whether this property holds scalar values."""
        return self.scalar_type is not None

    @property
    def is_basic_array(self) -> bool:
        """Return whether this property is an array of scalars."""
        return self.is_array and self.scalar_type is not None

    def has_tag(self, tag: str) -> bool:
        return tag in self.tags


@dataclass(eq=False)
class Relation:
    """A property whose value is another entity (or a list of them)."""

    kind: RelationKind
    property_name: str
    child: EntityDefinition


@dataclass(eq=False)
class EntityDefinition:
    """A declared data shape: scalar fields, array fields and relations."""

    name: str
    properties: dict[str, PropertyDefinition] = field(default_factory=dict)
    relations: list[Relation] = field(default_factory=list)
    is_entry: bool = False
    tags: frozenset[str] = field(default_factory=frozenset)

    @property
    def is_composite(self) -> bool:
        """Return whether this entity is a union of other entities."""
        return False

    def get_property(self, name: str) -> PropertyDefinition | None:
        """Get a property by name."""
        return self.properties.get(name)

    def add_property(self, prop: PropertyDefinition) -> None:
        """Add a property, replacing any earlier one with the same name."""
        self.properties[prop.name] = prop

    def add_relation(self, relation: Relation) -> None:
        """Add a relation, replacing any earlier one on the same property."""
        self.relations = [
            r for r in self.relations if r.property_name != relation.property_name
        ]
        self.relations.append(relation)

    def basic_array_properties(self) -> list[PropertyDefinition]:
        """Return the primitive-array properties in declaration order."""
        return [p for p in self.properties.values() if p.is_basic_array]

    def has_array_properties(self) -> bool:
        return any(p.is_array for p in self.properties.values())

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, properties={list(self.properties)!r})"


@dataclass(repr=False, eq=False)
class CompositeEntityDefinition(EntityDefinition):
    """A polymorphic entity formed from several member entities.

    The merged property map holds every member property (later members
    overwrite earlier ones on a name clash). All merged properties are
    optional because a value of the union only carries one member's fields.
    """

    members: list[EntityDefinition] = field(default_factory=list)

    @property
    def is_composite(self) -> bool:
        return True

    def populate(self, members: list[EntityDefinition]) -> None:
        """Set the members and rebuild the merged properties and relations."""
        flattened: list[EntityDefinition] = []
        for member in members:
            if isinstance(member, CompositeEntityDefinition):
                flattened.extend(member.members)
            else:
                flattened.append(member)
        self.members = flattened
        self.properties = {}
        self.relations = []
        for member in flattened:
            for prop in member.properties.values():
                self.add_property(
                    PropertyDefinition(
                        name=prop.name,
                        scalar_type=prop.scalar_type,
                        is_array=prop.is_array,
                        is_optional=True,
                        tags=prop.tags,
                    )
                )
            for relation in member.relations:
                self.add_relation(relation)

    @classmethod
    def from_members(
        cls,
        name: str,
        members: list[EntityDefinition],
        is_entry: bool = False,
    ) -> CompositeEntityDefinition:
        """Create a composite entity by merging the given members."""
        composite = cls(name=name, is_entry=is_entry)
        composite.populate(members)
        return composite


class EntityRegistry:
    """Registry of all declared entities, in declaration order."""

    def __init__(self) -> None:
        self._entities: dict[str, EntityDefinition] = {}

    def register(self, entity: EntityDefinition) -> None:
        """Register an entity definition."""
        if entity.name in self._entities:
            raise ValueError(f"Entity '{entity.name}' is already defined")
        self._entities[entity.name] = entity

    def get(self, name: str) -> EntityDefinition | None:
        """Get an entity by name."""
        return self._entities.get(name)

    def get_or_raise(self, name: str) -> EntityDefinition:
        """Get an entity by name, raising if not found."""
        entity = self._entities.get(name)
        if entity is None:
            raise KeyError(f"Entity '{name}' not found")
        return entity

    def entries(self) -> list[EntityDefinition]:
        """Return the entry entities, the roots handed to the resolver."""
        return [e for e in self._entities.values() if e.is_entry]

    def list_entities(self) -> list[str]:
        """List all registered entity names."""
        return list(self._entities.keys())

    def __contains__(self, name: str) -> bool:
        return name in self._entities

    def __iter__(self) -> Iterator[EntityDefinition]:
        return iter(self._entities.values())

    def __len__(self) -> int:
        return len(self._entities)
