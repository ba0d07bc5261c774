"""Command-line tool: generate the schema of a model file."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from entity_tables.config import DEFAULT_TAGS, load_tags
from entity_tables.generator import GeneratedModel, generate_from_file
from entity_tables.manifest import write_manifest


def list_tables(model: GeneratedModel) -> None:
    """Print one line per table: name, kind and primary key."""
    print("Tables:")
    print("-" * 60)
    for table in model.tables:
        primary_key = table.primary_key or "-"
        entry = " (entry)" if table.is_entry else ""
        print(f"  {table.name:<30} {table.kind.value:<15} {primary_key}{entry}")


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Generate SQLite tables and query builders from a model file"
    )
    parser.add_argument(
        "model",
        type=Path,
        help="Path to the model declaration file",
    )
    parser.add_argument(
        "--tags",
        type=Path,
        default=None,
        help="JSON file mapping tag roles to tag names",
    )
    parser.add_argument(
        "--schema-out",
        type=Path,
        default=None,
        help="Write the schema script to this file instead of stdout",
    )
    parser.add_argument(
        "--manifest-out",
        type=Path,
        default=None,
        help="Write the table manifest (JSON) to this file",
    )
    parser.add_argument(
        "--list",
        action="store_true",
        help="List the resolved tables instead of printing the schema",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log resolution and generation details",
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if not args.model.exists():
        print(f"Error: Model file not found: {args.model}", file=sys.stderr)
        return 1

    try:
        tags = load_tags(args.tags) if args.tags is not None else DEFAULT_TAGS
        model = generate_from_file(args.model, tags)
    except (OSError, SyntaxError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.list:
        list_tables(model)
    elif args.schema_out is not None:
        args.schema_out.write_text(model.schema.script())
    else:
        print(model.schema.script(), end="")

    if args.manifest_out is not None:
        write_manifest(model.tables, args.manifest_out)

    return 0


if __name__ == "__main__":
    sys.exit(main())
