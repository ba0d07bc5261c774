"""Parser for the model declaration DSL."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union

import ply.yacc as yacc

from entity_tables.config import DEFAULT_TAGS, Tags
from entity_tables.entities import (
    SCALAR_TYPE_NAMES,
    CompositeEntityDefinition,
    EntityDefinition,
    EntityRegistry,
    PropertyDefinition,
    Relation,
    RelationKind,
    ScalarType,
)
from entity_tables.parsing.model_lexer import ModelLexer


@dataclass
class TypeRef:
    """Reference to a type, possibly as an array."""

    name: str
    is_array: bool = False


@dataclass
class MemberSpec:
    """Specification for an entity member before resolution."""

    name: str
    type_ref: TypeRef
    is_optional: bool = False
    tags: list[str] = field(default_factory=list)
    lineno: int = 0


@dataclass
class EntitySpec:
    """Specification for an entity before resolution."""

    name: str
    members: list[MemberSpec]
    bases: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    lineno: int = 0


@dataclass
class EnumSpec:
    """Specification for an enum before resolution.

    Bare members count as integers.
    """

    name: str
    values: list[int | str]
    lineno: int = 0


@dataclass
class UnionMemberSpec:
    """One alternative of a union: a type name or a literal."""

    value: int | str
    is_literal: bool


@dataclass
class UnionSpec:
    """Specification for a union before resolution."""

    name: str
    members: list[UnionMemberSpec]
    tags: list[str] = field(default_factory=list)
    lineno: int = 0


@dataclass
class AliasSpec:
    """Specification for an alias before resolution."""

    name: str
    base_type_ref: TypeRef
    lineno: int = 0


Spec = Union[AliasSpec, EntitySpec, EnumSpec, UnionSpec]

# What a type name resolves to: a scalar or an entity, and whether it is an array
ResolvedType = tuple[Union[ScalarType, EntityDefinition], bool]


class ModelParser:
    """Parser for model declarations.

    Produces an EntityRegistry whose entry entities are the roots to hand
    to the table resolver.
    """

    tokens = ModelLexer.tokens

    def __init__(self, tags: Tags | None = None) -> None:
        self.tags = tags or DEFAULT_TAGS
        self.lexer = ModelLexer()
        self.lexer.build()
        self.parser: yacc.LRParser = None  # type: ignore
        self.registry: EntityRegistry = EntityRegistry()
        self._specs: list[Spec] = []
        self._named: dict[str, Spec] = {}
        self._resolved: dict[str, ResolvedType] = {}
        self._populated: set[str] = set()

    def p_schema(self, p: yacc.YaccProduction) -> None:
        """schema : statement_list"""
        p[0] = p[1]

    def p_schema_empty(self, p: yacc.YaccProduction) -> None:
        """schema : empty"""
        p[0] = []

    def p_statement_list_single(self, p: yacc.YaccProduction) -> None:
        """statement_list : statement"""
        p[0] = [p[1]]

    def p_statement_list_multiple(self, p: yacc.YaccProduction) -> None:
        """statement_list : statement_list statement"""
        p[0] = p[1]
        p[0].append(p[2])

    def p_statement(self, p: yacc.YaccProduction) -> None:
        """statement : alias_def
                     | entity_def
                     | enum_def
                     | union_def"""
        p[0] = p[1]

    def p_alias_def(self, p: yacc.YaccProduction) -> None:
        """alias_def : DEFINE IDENTIFIER AS type_ref"""
        p[0] = AliasSpec(name=p[2], base_type_ref=p[4], lineno=p.lineno(1))

    def p_entity_def(self, p: yacc.YaccProduction) -> None:
        """entity_def : tags IDENTIFIER extends_clause entity_body"""
        p[0] = EntitySpec(
            name=p[2], members=p[4], bases=p[3], tags=p[1], lineno=p.lineno(2)
        )

    def p_extends_clause(self, p: yacc.YaccProduction) -> None:
        """extends_clause : EXTENDS name_list"""
        p[0] = p[2]

    def p_extends_clause_empty(self, p: yacc.YaccProduction) -> None:
        """extends_clause : empty"""
        p[0] = []

    def p_name_list_single(self, p: yacc.YaccProduction) -> None:
        """name_list : IDENTIFIER"""
        p[0] = [p[1]]

    def p_name_list_multiple(self, p: yacc.YaccProduction) -> None:
        """name_list : name_list COMMA IDENTIFIER"""
        p[0] = p[1] + [p[3]]

    def p_entity_body(self, p: yacc.YaccProduction) -> None:
        """entity_body : LBRACE member_list RBRACE
                       | LBRACE member_list COMMA RBRACE"""
        p[0] = p[2]

    def p_entity_body_empty(self, p: yacc.YaccProduction) -> None:
        """entity_body : LBRACE RBRACE"""
        p[0] = []

    def p_member_list_single(self, p: yacc.YaccProduction) -> None:
        """member_list : member"""
        p[0] = [p[1]]

    def p_member_list_multiple(self, p: yacc.YaccProduction) -> None:
        """member_list : member_list member
                       | member_list COMMA member"""
        p[0] = p[1] + [p[len(p) - 1]]

    def p_member(self, p: yacc.YaccProduction) -> None:
        """member : tags IDENTIFIER optional_marker COLON type_ref"""
        p[0] = MemberSpec(
            name=p[2], type_ref=p[5], is_optional=p[3], tags=p[1], lineno=p.lineno(2)
        )

    def p_optional_marker(self, p: yacc.YaccProduction) -> None:
        """optional_marker : QUESTION"""
        p[0] = True

    def p_optional_marker_empty(self, p: yacc.YaccProduction) -> None:
        """optional_marker : empty"""
        p[0] = False

    def p_tags_empty(self, p: yacc.YaccProduction) -> None:
        """tags : empty"""
        p[0] = []

    def p_tags_multiple(self, p: yacc.YaccProduction) -> None:
        """tags : tags AT IDENTIFIER"""
        p[0] = p[1] + [p[3]]

    def p_enum_def(self, p: yacc.YaccProduction) -> None:
        """enum_def : ENUM IDENTIFIER LBRACE enum_member_list RBRACE
                    | ENUM IDENTIFIER LBRACE enum_member_list COMMA RBRACE"""
        values: list[int | str] = []
        next_value = 0
        for name, value in p[4]:
            if value is None:
                value = next_value
            if isinstance(value, int):
                next_value = value + 1
            values.append(value)
        p[0] = EnumSpec(name=p[2], values=values, lineno=p.lineno(1))

    def p_enum_member_list_single(self, p: yacc.YaccProduction) -> None:
        """enum_member_list : enum_member"""
        p[0] = [p[1]]

    def p_enum_member_list_multiple(self, p: yacc.YaccProduction) -> None:
        """enum_member_list : enum_member_list COMMA enum_member"""
        p[0] = p[1] + [p[3]]

    def p_enum_member_bare(self, p: yacc.YaccProduction) -> None:
        """enum_member : IDENTIFIER"""
        p[0] = (p[1], None)

    def p_enum_member_value(self, p: yacc.YaccProduction) -> None:
        """enum_member : IDENTIFIER EQUALS INTEGER
                       | IDENTIFIER EQUALS STRING"""
        p[0] = (p[1], p[3])

    def p_union_def(self, p: yacc.YaccProduction) -> None:
        """union_def : tags UNION IDENTIFIER EQUALS union_member_list"""
        p[0] = UnionSpec(name=p[3], members=p[5], tags=p[1], lineno=p.lineno(2))

    def p_union_member_list_single(self, p: yacc.YaccProduction) -> None:
        """union_member_list : union_member"""
        p[0] = [p[1]]

    def p_union_member_list_multiple(self, p: yacc.YaccProduction) -> None:
        """union_member_list : union_member_list PIPE union_member"""
        p[0] = p[1] + [p[3]]

    def p_union_member_type(self, p: yacc.YaccProduction) -> None:
        """union_member : IDENTIFIER"""
        p[0] = UnionMemberSpec(value=p[1], is_literal=False)

    def p_union_member_literal(self, p: yacc.YaccProduction) -> None:
        """union_member : STRING
                        | INTEGER"""
        p[0] = UnionMemberSpec(value=p[1], is_literal=True)

    def p_type_ref_simple(self, p: yacc.YaccProduction) -> None:
        """type_ref : IDENTIFIER"""
        p[0] = TypeRef(name=p[1], is_array=False)

    def p_type_ref_array(self, p: yacc.YaccProduction) -> None:
        """type_ref : IDENTIFIER LBRACKET RBRACKET"""
        p[0] = TypeRef(name=p[1], is_array=True)

    def p_empty(self, p: yacc.YaccProduction) -> None:
        """empty :"""
        p[0] = None

    def p_error(self, p: yacc.YaccProduction) -> None:
        if p:
            raise SyntaxError(f"Syntax error at '{p.value}' (line {p.lineno})")
        else:
            raise SyntaxError("Syntax error at end of input")

    def build(self, **kwargs: Any) -> None:
        """Build the parser."""
        self.parser = yacc.yacc(module=self, **kwargs)

    def parse(self, data: str) -> EntityRegistry:
        """Parse model declarations and return a populated EntityRegistry."""
        if self.parser is None:
            self.build(debug=False, write_tables=False)

        self.registry = EntityRegistry()
        self._named = {}
        self._resolved = {}
        self._populated = set()

        self.lexer.lexer.lineno = 1
        specs = self.parser.parse(data, lexer=self.lexer.lexer)
        self._specs = specs or []

        self._resolve_specs()
        return self.registry

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def _resolve_specs(self) -> None:
        """Resolve all specs into entity definitions using two-phase resolution.

        Phase 1: Register a stub for every entity and entity union so that
        self-referential and mutually referential entities can resolve.
        Phase 2: Populate entities (bases first), then unions (members first).
        """
        for spec in self._specs:
            if spec.name in SCALAR_TYPE_NAMES:
                raise ValueError(f"'{spec.name}' (line {spec.lineno}) redefines a built-in type")
            if spec.name in self._named:
                raise ValueError(f"Type '{spec.name}' (line {spec.lineno}) is already defined")
            self._named[spec.name] = spec

        # Phase 1: stubs, in declaration order
        for spec in self._specs:
            if isinstance(spec, EntitySpec):
                entity = EntityDefinition(
                    name=spec.name,
                    is_entry=self.tags.entry in spec.tags,
                    tags=frozenset(spec.tags),
                )
                self.registry.register(entity)
                self._resolved[spec.name] = (entity, False)
            elif isinstance(spec, UnionSpec) and not self._is_literal_union(spec):
                composite = CompositeEntityDefinition(
                    name=spec.name,
                    is_entry=self.tags.entry in spec.tags,
                    tags=frozenset(spec.tags),
                )
                self.registry.register(composite)
                self._resolved[spec.name] = (composite, False)

        # Phase 2: populate
        for spec in self._specs:
            if isinstance(spec, EntitySpec):
                self._populate_entity(spec, set())
        for spec in self._specs:
            if isinstance(spec, UnionSpec) and not self._is_literal_union(spec):
                self._populate_union(spec, set())
            elif isinstance(spec, (AliasSpec, EnumSpec, UnionSpec)):
                # Unused scalars and aliases are still checked
                self._resolve_name(spec.name, set())

    def _resolve_name(self, name: str, seen: set[str]) -> ResolvedType:
        """Resolve a type name to a scalar or entity, following aliases."""
        resolved = self._resolved.get(name)
        if resolved is not None:
            return resolved
        if name in SCALAR_TYPE_NAMES:
            return SCALAR_TYPE_NAMES[name], False

        spec = self._named.get(name)
        if spec is None:
            raise ValueError(f"Unknown type '{name}'")
        if name in seen:
            raise ValueError(f"Cannot resolve types: alias cycle through '{name}'")
        seen.add(name)

        if isinstance(spec, AliasSpec):
            target, is_array = self._resolve_name(spec.base_type_ref.name, seen)
            if is_array and spec.base_type_ref.is_array:
                raise ValueError(f"Alias '{name}' (line {spec.lineno}) is an array of arrays")
            resolved = (target, is_array or spec.base_type_ref.is_array)
        elif isinstance(spec, EnumSpec):
            resolved = (self._literal_type(name, spec.values, spec.lineno), False)
        elif isinstance(spec, UnionSpec):
            resolved = (
                self._literal_type(name, [m.value for m in spec.members], spec.lineno),
                False,
            )
        else:
            raise ValueError(f"Unknown type '{name}'")

        self._resolved[name] = resolved
        return resolved

    def _resolve_type_ref(self, type_ref: TypeRef, context: str) -> ResolvedType:
        try:
            target, is_array = self._resolve_name(type_ref.name, set())
        except ValueError as e:
            raise ValueError(f"{e} in {context}") from e
        if is_array and type_ref.is_array:
            raise ValueError(f"Arrays of arrays are not supported in {context}")
        return target, is_array or type_ref.is_array

    @staticmethod
    def _literal_type(name: str, values: list[int | str], lineno: int) -> ScalarType:
        if all(isinstance(v, int) for v in values):
            return ScalarType.NUMBER
        if all(isinstance(v, str) for v in values):
            return ScalarType.STRING
        raise ValueError(f"'{name}' (line {lineno}) mixes integer and string values")

    def _is_literal_union(self, spec: UnionSpec) -> bool:
        literals = [m.is_literal for m in spec.members]
        if all(literals):
            return True
        if any(literals):
            raise ValueError(
                f"Union '{spec.name}' (line {spec.lineno}) mixes literals and entities"
            )
        return False

    def _populate_entity(self, spec: EntitySpec, seen: set[str]) -> EntityDefinition:
        entity = self.registry.get_or_raise(spec.name)
        if spec.name in self._populated:
            return entity
        if spec.name in seen:
            raise ValueError(f"Cannot resolve types: inheritance cycle through '{spec.name}'")
        seen.add(spec.name)

        for base_name in spec.bases:
            base_spec = self._named.get(base_name)
            if not isinstance(base_spec, EntitySpec):
                raise ValueError(
                    f"Entity '{spec.name}' (line {spec.lineno}) extends '{base_name}', "
                    "which is not an entity"
                )
            base = self._populate_entity(base_spec, seen)
            for prop in base.properties.values():
                entity.add_property(prop)
            for relation in base.relations:
                entity.add_relation(relation)

        for member in spec.members:
            context = f"'{spec.name}.{member.name}' (line {member.lineno})"
            target, is_array = self._resolve_type_ref(member.type_ref, context)
            tags = frozenset(member.tags)
            if isinstance(target, ScalarType):
                entity.add_property(
                    PropertyDefinition(
                        name=member.name,
                        scalar_type=target,
                        is_array=is_array,
                        is_optional=member.is_optional,
                        tags=tags,
                    )
                )
                entity.relations = [
                    r for r in entity.relations if r.property_name != member.name
                ]
            else:
                entity.add_property(
                    PropertyDefinition(
                        name=member.name,
                        is_array=is_array,
                        is_optional=member.is_optional,
                        tags=tags,
                    )
                )
                entity.add_relation(
                    Relation(
                        kind=RelationKind.ONE_TO_MANY if is_array else RelationKind.ONE_TO_ONE,
                        property_name=member.name,
                        child=target,
                    )
                )

        self._populated.add(spec.name)
        return entity

    def _populate_union(self, spec: UnionSpec, seen: set[str]) -> CompositeEntityDefinition:
        composite = self.registry.get_or_raise(spec.name)
        assert isinstance(composite, CompositeEntityDefinition)
        if spec.name in self._populated:
            return composite
        if spec.name in seen:
            raise ValueError(f"Cannot resolve types: union cycle through '{spec.name}'")
        seen.add(spec.name)

        members: list[EntityDefinition] = []
        for member in spec.members:
            name = str(member.value)
            target, is_array = self._resolve_name(name, set())
            if isinstance(target, ScalarType) or is_array:
                raise ValueError(
                    f"Union '{spec.name}' (line {spec.lineno}) member '{name}' is not an entity"
                )
            if isinstance(target, CompositeEntityDefinition):
                target = self._populate_union(self._named[target.name], seen)
            members.append(target)

        composite.populate(members)
        self._populated.add(spec.name)
        return composite
