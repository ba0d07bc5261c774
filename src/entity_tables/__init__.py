"""Entity Tables - SQLite schemas and query builders from entity models."""

from entity_tables.config import DEFAULT_TAGS, Tags, load_tags
from entity_tables.entities import (
    CompositeEntityDefinition,
    EntityDefinition,
    EntityRegistry,
    PropertyDefinition,
    Relation,
    RelationKind,
    ScalarType,
)
from entity_tables.exports import QueryNamespace
from entity_tables.generator import (
    GeneratedModel,
    generate,
    generate_from_file,
    generate_from_source,
)
from entity_tables.manifest import build_manifest, write_manifest
from entity_tables.parsing import ModelParser
from entity_tables.resolver import TableResolver, resolve_tables
from entity_tables.schema import SchemaArtifact, SchemaEmitter, SchemaStatement
from entity_tables.tables import (
    Column,
    ColumnKind,
    DataType,
    ForeignKey,
    Index,
    SchemaResolutionError,
    Table,
    TableGraph,
    TableKind,
)

__all__ = [
    # Main API
    "generate",
    "generate_from_source",
    "generate_from_file",
    "GeneratedModel",
    "ModelParser",
    "QueryNamespace",
    # Configuration
    "Tags",
    "DEFAULT_TAGS",
    "load_tags",
    # Entity graph
    "ScalarType",
    "PropertyDefinition",
    "RelationKind",
    "Relation",
    "EntityDefinition",
    "CompositeEntityDefinition",
    "EntityRegistry",
    # Tables
    "TableResolver",
    "resolve_tables",
    "SchemaResolutionError",
    "DataType",
    "ColumnKind",
    "TableKind",
    "Column",
    "ForeignKey",
    "Index",
    "Table",
    "TableGraph",
    # Schema and manifest
    "SchemaEmitter",
    "SchemaArtifact",
    "SchemaStatement",
    "build_manifest",
    "write_manifest",
]

__version__ = "0.1.0"
