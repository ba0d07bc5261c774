"""Top-level driver: entity graph in, schema and query builders out."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable

from entity_tables.config import DEFAULT_TAGS, Tags
from entity_tables.entities import EntityDefinition, EntityRegistry
from entity_tables.exports import QueryNamespace
from entity_tables.manifest import build_manifest
from entity_tables.parsing import ModelParser
from entity_tables.queries import (
    DeleteQueryGenerator,
    InsertQueryGenerator,
    ReplaceQueryGenerator,
    UpdateQueryGenerator,
)
from entity_tables.resolver import TableResolver
from entity_tables.schema import SchemaArtifact, SchemaEmitter
from entity_tables.tables import TableGraph

logger = logging.getLogger(__name__)


@dataclass
class GeneratedModel:
    """Everything generated for one model.

    The statements in ``schema`` declare ``ON DELETE CASCADE`` foreign keys,
    which SQLite only enforces with ``PRAGMA foreign_keys=ON``. That pragma
    also decides what ``replace_*`` does with children missing from its
    input: with it on, the parent row is deleted and re-inserted, taking its
    subtree with it; with it off, those children are left in place.
    """

    tables: TableGraph
    schema: SchemaArtifact
    queries: QueryNamespace
    manifest: dict[str, Any]


def generate(
    entities: EntityRegistry | Iterable[EntityDefinition],
    tags: Tags | None = None,
    *,
    include_update: bool = False,
) -> GeneratedModel:
    """Resolve an entity graph and generate its schema and query builders.

    Args:
        entities: A registry (its entry entities become the roots) or the
            root entities themselves.
        tags: Tag vocabulary; defaults to ``DEFAULT_TAGS``.
        include_update: Also generate the experimental ``update_*`` builders.

    Raises:
        SchemaResolutionError: If the entity graph cannot be mapped to tables.
    """
    tags = tags or DEFAULT_TAGS
    roots = entities.entries() if isinstance(entities, EntityRegistry) else list(entities)
    if not roots:
        logger.warning("No entry entities to generate tables for")

    tables = TableResolver(tags).resolve(roots)
    schema = SchemaEmitter().emit(tables)

    generators = [
        InsertQueryGenerator(tables),
        DeleteQueryGenerator(tables),
        ReplaceQueryGenerator(tables),
    ]
    if include_update:
        generators.append(UpdateQueryGenerator(tables))
    queries = QueryNamespace.merge(generator.generate() for generator in generators)

    logger.info(
        "Generated %d tables, %d schema statements and %d exported query functions",
        len(tables),
        len(schema),
        len(queries),
    )
    return GeneratedModel(
        tables=tables,
        schema=schema,
        queries=queries,
        manifest=build_manifest(tables),
    )


def generate_from_source(
    source: str,
    tags: Tags | None = None,
    *,
    include_update: bool = False,
) -> GeneratedModel:
    """Parse a model written in the declaration language and generate from it."""
    tags = tags or DEFAULT_TAGS
    registry = ModelParser(tags).parse(source)
    return generate(registry, tags, include_update=include_update)


def generate_from_file(
    path: Path | str,
    tags: Tags | None = None,
    *,
    include_update: bool = False,
) -> GeneratedModel:
    """Parse a model file and generate from it."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Model file not found: {path}")
    return generate_from_source(path.read_text(), tags, include_update=include_update)
