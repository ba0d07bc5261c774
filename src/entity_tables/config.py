"""Tag vocabulary configuration.

The resolver never looks at annotation syntax. It only checks whether a
property (or entity) carries one of the tag names configured here.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any


@dataclass(frozen=True)
class Tags:
    """Names of the seven semantic annotation roles."""

    entry: str = "entry"
    primary_key: str = "primary_key"
    index: str = "index"
    unique: str = "unique"
    auto_increment: str = "auto_increment"
    real: str = "real"
    numeric: str = "numeric"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Tags:
        """Create a vocabulary from a (possibly partial) mapping of role to tag name.

        Raises:
            ValueError: If the mapping names an unknown role or a non-string tag.
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown tag role(s): {', '.join(unknown)}")
        for role, tag in data.items():
            if not isinstance(tag, str) or not tag:
                raise ValueError(f"Tag for role '{role}' must be a non-empty string")
        return cls(**data)

    def to_dict(self) -> dict[str, str]:
        return asdict(self)


DEFAULT_TAGS = Tags()


def load_tags(path: Path | str) -> Tags:
    """Load a tag vocabulary from a JSON file.

    Args:
        path: JSON file holding an object of role -> tag name.

    Returns:
        The configured Tags; roles missing from the file keep their defaults.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Tag configuration not found: {path}")

    with open(path) as f:
        data = json.load(f)

    if not isinstance(data, dict):
        raise ValueError(f"Tag configuration in {path} must be a JSON object")
    return Tags.from_dict(data)
