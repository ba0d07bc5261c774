"""Parsing module for the model declaration DSL."""

from entity_tables.parsing.model_lexer import ModelLexer
from entity_tables.parsing.model_parser import ModelParser

__all__ = [
    "ModelLexer",
    "ModelParser",
]
