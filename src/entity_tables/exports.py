"""Export registry: the consolidated namespace of generated query builders."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Iterable, Iterator

from entity_tables.queries.base import GeneratedQueries, QueryFunction


class QueryNamespace(Mapping):
    """Exported query builders by name, also reachable as attributes.

    ``queries["insert_phase"]`` and ``queries.insert_phase`` are the same
    callable. Helpers that are not exported (the ``..._as_child`` builders)
    are reachable through ``function()``.
    """

    def __init__(self) -> None:
        self._functions: dict[str, QueryFunction] = {}
        self._exports: list[str] = []

    @classmethod
    def merge(cls, results: Iterable[GeneratedQueries]) -> QueryNamespace:
        """Merge the output of several generators.

        Raises:
            ValueError: If two generators produce the same function name.
        """
        namespace = cls()
        for result in results:
            namespace.add(result)
        return namespace

    def add(self, result: GeneratedQueries) -> None:
        for name, function in result.functions.items():
            if name in self._functions:
                raise ValueError(f"Query function '{name}' is generated twice")
            self._functions[name] = function
        self._exports.extend(result.exports)

    def function(self, name: str) -> QueryFunction:
        """Get any generated function by name, exported or not."""
        function = self._functions.get(name)
        if function is None:
            raise KeyError(f"Query function '{name}' not found")
        return function

    def exported_names(self) -> list[str]:
        return list(self._exports)

    def all_names(self) -> list[str]:
        return list(self._functions)

    def __getitem__(self, name: str) -> QueryFunction:
        if name not in self._exports:
            raise KeyError(name)
        return self._functions[name]

    def __getattr__(self, name: str) -> QueryFunction:
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            return self[name]
        except KeyError:
            raise AttributeError(f"No exported query function '{name}'") from None

    def __iter__(self) -> Iterator[str]:
        return iter(self._exports)

    def __len__(self) -> int:
        return len(self._exports)

    def __contains__(self, name: object) -> bool:
        return name in self._exports

    def __repr__(self) -> str:
        return f"QueryNamespace({self._exports!r})"
