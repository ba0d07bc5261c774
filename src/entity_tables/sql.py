"""Structured DML statements and their SQL rendering.

Statements hold columns and typed Python values; ``render()`` is the single
place where values become SQL text. Escaping is the naive SQLite kind
(single quotes doubled), not parameter binding.
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from typing import Any

from entity_tables.entities import ScalarType
from entity_tables.tables import Column, DataType


def quote_text(text: str) -> str:
    """Wrap text in single quotes, doubling embedded quotes."""
    return "'" + text.replace("'", "''") + "'"


def is_defined(value: Any) -> bool:
    """Return whether an input value counts as present."""
    return value is not None


def format_value(value: Any, column: Column) -> str:
    """Render a Python value as a SQL literal for the given column.

    Dates render as ISO-8601 text, booleans as 1/0, TEXT columns as quoted
    strings and everything else through ``str()``.
    """
    if value is None:
        return "NULL"

    scalar_type = column.prop.scalar_type if column.prop is not None else None

    if isinstance(value, (datetime.date, datetime.datetime)):
        return quote_text(value.isoformat())
    if scalar_type is ScalarType.DATE:
        return quote_text(str(value))
    if isinstance(value, bool) or scalar_type is ScalarType.BOOLEAN:
        return "1" if value else "0"
    if column.data_type is DataType.TEXT:
        return quote_text(str(value))
    return str(value)


@dataclass(frozen=True)
class Assignment:
    """A column paired with the value it receives."""

    column: Column
    value: Any

    def render(self) -> str:
        return format_value(self.value, self.column)


@dataclass
class InsertStatement:
    """``INSERT INTO`` (or ``REPLACE INTO``) of a single row."""

    table: str
    assignments: list[Assignment] = field(default_factory=list)
    replace: bool = False

    def set(self, column: Column, value: Any) -> None:
        """Assign a value, replacing an earlier assignment to the same column."""
        self.assignments = [a for a in self.assignments if a.column.name != column.name]
        self.assignments.append(Assignment(column, value))

    def set_if_defined(self, column: Column, value: Any) -> bool:
        """Assign a value unless it is undefined. Returns whether it was set."""
        if not is_defined(value):
            return False
        self.set(column, value)
        return True

    def has_column(self, name: str) -> bool:
        return any(a.column.name == name for a in self.assignments)

    def value_of(self, name: str) -> Any:
        for assignment in self.assignments:
            if assignment.column.name == name:
                return assignment.value
        return None

    @property
    def is_empty(self) -> bool:
        return not self.assignments

    def render(self) -> str:
        if self.is_empty:
            raise ValueError(f"Nothing to insert into table '{self.table}'")
        verb = "REPLACE" if self.replace else "INSERT"
        columns = ", ".join(a.column.name for a in self.assignments)
        values = ", ".join(a.render() for a in self.assignments)
        return f"{verb} INTO {self.table}({columns}) VALUES({values});"


@dataclass
class UpdateStatement:
    """``UPDATE ... SET ... WHERE`` of the rows matching all conditions."""

    table: str
    assignments: list[Assignment] = field(default_factory=list)
    where: list[Assignment] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.assignments

    def render(self) -> str:
        if self.is_empty:
            raise ValueError(f"Nothing to update in table '{self.table}'")
        sets = ", ".join(f"{a.column.name}={a.render()}" for a in self.assignments)
        sql = f"UPDATE {self.table} SET {sets}"
        if self.where:
            sql += " WHERE " + _render_conditions(self.where)
        return sql + ";"


@dataclass
class DeleteStatement:
    """``DELETE FROM``, optionally restricted to rows matching all conditions."""

    table: str
    where: list[Assignment] = field(default_factory=list)

    def render(self) -> str:
        sql = f"DELETE FROM {self.table}"
        if self.where:
            sql += " WHERE " + _render_conditions(self.where)
        return sql + ";"


def _render_conditions(conditions: list[Assignment]) -> str:
    return " AND ".join(f"{c.column.name}={c.render()}" for c in conditions)
