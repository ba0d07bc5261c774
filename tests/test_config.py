"""Tests for the tag vocabulary configuration."""

import json

import pytest

from entity_tables.config import DEFAULT_TAGS, Tags, load_tags


class TestTags:
    """Tests for the Tags dataclass."""

    def test_defaults(self):
        """Test the default tag names."""
        assert DEFAULT_TAGS.entry == "entry"
        assert DEFAULT_TAGS.primary_key == "primary_key"
        assert DEFAULT_TAGS.auto_increment == "auto_increment"

    def test_from_dict_partial(self):
        """Test that missing roles keep their defaults."""
        tags = Tags.from_dict({"entry": "root", "primary_key": "id"})
        assert tags.entry == "root"
        assert tags.primary_key == "id"
        assert tags.index == "index"

    def test_from_dict_unknown_role(self):
        """Test that unknown roles are rejected."""
        with pytest.raises(ValueError, match="Unknown tag role"):
            Tags.from_dict({"entyr": "root"})

    def test_from_dict_empty_tag(self):
        """Test that empty tag names are rejected."""
        with pytest.raises(ValueError, match="non-empty string"):
            Tags.from_dict({"entry": ""})

    def test_round_trip_dict(self):
        """Test that to_dict feeds back into from_dict."""
        tags = Tags(entry="root")
        assert Tags.from_dict(tags.to_dict()) == tags


class TestLoadTags:
    """Tests for loading tags from JSON files."""

    def test_load(self, tmp_path):
        """Test loading a vocabulary file."""
        path = tmp_path / "tags.json"
        path.write_text(json.dumps({"entry": "sqlite_entry", "real": "sqlite_real"}))

        tags = load_tags(path)

        assert tags.entry == "sqlite_entry"
        assert tags.real == "sqlite_real"
        assert tags.unique == "unique"

    def test_missing_file(self, tmp_path):
        """Test that a missing file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            load_tags(tmp_path / "missing.json")

    def test_not_an_object(self, tmp_path):
        """Test that a non-object JSON document is rejected."""
        path = tmp_path / "tags.json"
        path.write_text("[1, 2]")
        with pytest.raises(ValueError, match="JSON object"):
            load_tags(path)
