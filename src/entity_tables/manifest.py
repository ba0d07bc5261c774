"""Table manifest: a JSON-compatible description of the resolved tables."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from entity_tables.tables import Table, TableGraph


def _serialize_table(table: Table) -> dict[str, Any]:
    return {
        "kind": table.kind.value,
        "entity": table.entity.name,
        "entry": table.is_entry,
        "primary_key": table.primary_key,
        "columns": [
            {
                "name": column.name,
                "type": column.data_type.value,
                "kind": column.kind.value,
                "not_null": column.not_null,
                "primary_key": column.primary_key,
                "auto_increment": column.auto_increment,
                "unique": column.unique,
            }
            for column in table.columns.values()
        ],
        "foreign_keys": [
            {
                "column": fk.column_name,
                "parent_table": fk.parent_table_name,
                "parent_column": fk.parent_column_name,
            }
            for fk in table.foreign_keys
        ],
        "indices": [
            {"columns": list(index.column_names), "unique": index.unique}
            for index in table.indices
        ],
        "parent_tables": [
            {
                "table": link.table_name,
                "column": link.column_name,
                "kind": link.kind.value,
                "property": link.property_name,
            }
            for link in table.parent_links
        ],
        "array_tables": list(table.array_table_names),
    }


def build_manifest(tables: TableGraph) -> dict[str, Any]:
    """Describe every table, in resolution order."""
    return {"tables": {table.name: _serialize_table(table) for table in tables}}


def write_manifest(tables: TableGraph, path: Path | str) -> Path:
    """Write the manifest of a table graph as JSON.

    Returns:
        The path written to.
    """
    path = Path(path)
    with open(path, "w") as f:
        json.dump(build_manifest(tables), f, indent=2)
    return path
