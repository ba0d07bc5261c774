"""Query builder generators for resolved table graphs."""

from entity_tables.queries.base import GeneratedQueries, QueryFunction, RowWriter, function_stem
from entity_tables.queries.delete import DeleteQueryGenerator
from entity_tables.queries.insert import InsertQueryGenerator
from entity_tables.queries.replace import ReplaceQueryGenerator
from entity_tables.queries.update import UpdateQueryGenerator

__all__ = [
    "DeleteQueryGenerator",
    "GeneratedQueries",
    "InsertQueryGenerator",
    "QueryFunction",
    "ReplaceQueryGenerator",
    "RowWriter",
    "UpdateQueryGenerator",
    "function_stem",
]
