"""Tests for document identity resolution."""

import json

import pytest

from memobook.identity import (
    FlatEntry,
    GroupEntry,
    IdentityResolver,
    ResolvedIdentity,
    bundled_mapping_path,
    parse_mapping,
)
from memobook.types import PATH_IDENTITY


class TestParseMapping:
    """Every accepted map shape normalizes to entries."""

    def test_flat_string_values(self):
        entries = parse_mapping({"/a.epub": "/canon.epub"})
        assert entries == [FlatEntry("/a.epub", "/canon.epub")]

    def test_flat_object_values(self):
        entries = parse_mapping({
            "/a.epub": {"identity": "/canon.epub", "display_name": "Canon", "aliases": ["/old.epub", 3, ""]},
        })
        assert entries == [FlatEntry("/a.epub", "/canon.epub", "Canon", ("/old.epub",))]

    def test_flat_object_alternate_keys(self):
        entries = parse_mapping({"/a.epub": {"target": "/t.epub", "name": "T"}})
        assert entries == [FlatEntry("/a.epub", "/t.epub", "T")]

    def test_flat_object_without_identity_maps_to_itself(self):
        entries = parse_mapping({"/a.epub": {"display_name": "A"}})
        assert entries == [FlatEntry("/a.epub", "/a.epub", "A")]

    def test_groups_array(self):
        entries = parse_mapping({"groups": [["/c.epub", "/copy.epub"], [], "junk"]})
        assert entries == [GroupEntry(("/c.epub", "/copy.epub"))]

    def test_top_level_array(self):
        entries = parse_mapping([["/c.epub", "/copy.epub"]])
        assert entries == [GroupEntry(("/c.epub", "/copy.epub"))]

    def test_invalid_values_skipped(self):
        entries = parse_mapping({"/a.epub": 12, "": "/x", "/b.epub": None})
        assert entries == []

    def test_scalar_top_level_rejected(self):
        with pytest.raises(ValueError):
            parse_mapping("just a string")


class TestIdentityResolver:

    def test_unmapped_locator_resolves_to_itself(self, tmp_path, empty_default_map):
        resolver = IdentityResolver(tmp_path / "missing.json", default_mapping_path=empty_default_map)
        assert resolver.resolve("/books/x.epub") == ResolvedIdentity("/books/x.epub", "x.epub")

    def test_empty_locator(self, empty_default_map):
        resolver = IdentityResolver(None, default_mapping_path=empty_default_map)
        assert resolver.resolve("") is None
        assert resolver.resolve(None) is None
        assert resolver.resolve_context(None) is None

    def test_group_members_share_identity(self, write_map, empty_default_map):
        """Locators listed together resolve to the first one."""
        path = write_map({"groups": [["/books/Foo.epub", "/books/Foo2.epub"]]})
        resolver = IdentityResolver(path, default_mapping_path=empty_default_map)

        first = resolver.resolve("/books/Foo.epub")
        second = resolver.resolve("/books/Foo2.epub")
        assert first == second
        assert first.identity == "/books/Foo.epub"
        assert first.display_name == "Foo.epub"

    def test_flat_display_name_and_aliases(self, write_map, empty_default_map):
        path = write_map({
            "/books/a.epub": {"identity": "/lib/a.epub", "display_name": "Book A", "aliases": ["/tmp/a.epub"]},
        })
        resolver = IdentityResolver(path, default_mapping_path=empty_default_map)

        assert resolver.resolve("/books/a.epub") == ResolvedIdentity("/lib/a.epub", "Book A")
        assert resolver.resolve("/tmp/a.epub") == ResolvedIdentity("/lib/a.epub", "Book A")

    def test_user_map_overrides_default(self, tmp_path, write_map):
        default = tmp_path / "default.json"
        default.write_text(json.dumps({
            "/books/a.epub": "/default/a.epub",
            "/books/b.epub": "/default/b.epub",
        }))
        user = write_map({"/books/a.epub": "/user/a.epub"})
        resolver = IdentityResolver(user, default_mapping_path=default)

        assert resolver.resolve("/books/a.epub").identity == "/user/a.epub"
        # Default entries not overridden still apply
        assert resolver.resolve("/books/b.epub").identity == "/default/b.epub"

    def test_malformed_user_map_is_skipped(self, write_map, empty_default_map, caplog):
        path = write_map("{ not json")
        resolver = IdentityResolver(path, default_mapping_path=empty_default_map)

        with caplog.at_level("WARNING", logger="memobook.identity"):
            resolved = resolver.resolve("/books/x.epub")

        assert resolved == ResolvedIdentity("/books/x.epub", "x.epub")
        assert "Unable to parse identity map" in caplog.text

    def test_malformed_user_map_keeps_default_entries(self, tmp_path, write_map):
        default = tmp_path / "default.json"
        default.write_text(json.dumps([["/canon.epub", "/copy.epub"]]))
        user = write_map("[[[")
        resolver = IdentityResolver(user, default_mapping_path=default)
        assert resolver.resolve("/copy.epub").identity == "/canon.epub"

    def test_map_read_once(self, write_map, empty_default_map):
        """Changes to the file are not seen until reload()."""
        path = write_map({"/a.epub": "/one.epub"})
        resolver = IdentityResolver(path, default_mapping_path=empty_default_map)
        assert resolver.resolve("/a.epub").identity == "/one.epub"

        path.write_text(json.dumps({"/a.epub": "/two.epub"}))
        assert resolver.resolve("/a.epub").identity == "/one.epub"

        resolver.reload()
        assert resolver.resolve("/a.epub").identity == "/two.epub"

    def test_resolve_context(self, write_map, empty_default_map):
        path = write_map({"groups": [["/c.epub", "/copy.epub"]]})
        resolver = IdentityResolver(path, default_mapping_path=empty_default_map)

        ctx = resolver.resolve_context("/copy.epub")
        assert ctx.identity == "/c.epub"
        assert ctx.identity_type == PATH_IDENTITY
        assert ctx.display_name == "c.epub"
        assert ctx.source_identity == "/copy.epub"

    def test_paths_exposed(self, tmp_path, empty_default_map):
        resolver = IdentityResolver(tmp_path / "user.json", default_mapping_path=empty_default_map)
        assert resolver.mapping_path == tmp_path / "user.json"
        assert resolver.default_mapping_path == empty_default_map


def test_bundled_map_is_valid():
    path = bundled_mapping_path()
    assert path.exists()
    parse_mapping(json.loads(path.read_text()))
