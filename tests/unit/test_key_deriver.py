#!/usr/bin/env python3
"""
Unit tests for cache key derivation
"""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from stylecache.errors import ConfigurationError
from stylecache.identity import Identity, StyleOverride
from stylecache.key_deriver import KeyDeriver


@pytest.fixture
def keys():
    return KeyDeriver()


class TestBaseKey:

    def test_base_key_format(self, keys):
        assert keys.base_key(Identity("gis", "parks")) == "map_style|gis|parks"

    def test_base_key_ignores_overrides(self, keys):
        """Test: filter and override never change the base key."""
        plain = Identity("gis", "parks")
        filtered = Identity("gis", "parks", sql="SELECT 1", override=StyleOverride("#parks {}"))
        assert keys.base_key(plain) == keys.base_key(filtered)

    @pytest.mark.parametrize("dbname,table", [("", "parks"), ("gis", ""), ("g|is", "parks"), ("gis", "..")])
    def test_invalid_identity_rejected(self, dbname, table):
        with pytest.raises(ConfigurationError):
            Identity(dbname, table)


class TestExtendedKey:

    def test_no_filter_no_override_has_no_extended_key(self, keys):
        """Test: a plain request resolves to the base key alone."""
        assert keys.extended_key("map_style|gis|parks") is None

    def test_same_filter_same_key(self, keys):
        """Test: the same filter always re-derives the same key."""
        base = "map_style|gis|parks"
        assert keys.extended_key(base, sql="SELECT * FROM parks") == keys.extended_key(base, sql="SELECT * FROM parks")

    def test_different_filters_different_keys(self, keys):
        base = "map_style|gis|parks"
        first = keys.extended_key(base, sql="SELECT * FROM parks WHERE a = 1")
        second = keys.extended_key(base, sql="SELECT * FROM parks WHERE a = 2")
        assert first != second

    def test_extended_key_starts_with_derived_prefix(self, keys):
        base = "map_style|gis|parks"
        key = keys.extended_key(base, sql="x", override=StyleOverride("#parks {}", "2.1.0"))
        assert key.startswith(keys.derived_prefix(base))

    def test_filter_and_override_segments_do_not_collide(self, keys):
        """Test: a filter whose text equals an override never shares its key."""
        base = "map_style|gis|parks"
        by_filter = keys.extended_key(base, sql="#parks {}")
        by_override = keys.extended_key(base, override=StyleOverride("#parks {}"))
        assert by_filter != by_override

    def test_override_version_changes_key(self, keys):
        base = "map_style|gis|parks"
        assert keys.extended_key(base, override=StyleOverride("#p {}", "2.0.0")) != \
            keys.extended_key(base, override=StyleOverride("#p {}", "2.1.0"))

    def test_empty_filter_is_present(self, keys):
        assert keys.extended_key("map_style|gis|parks", sql="") is not None

    def test_parse_round_trip(self, keys):
        """Test: segments are reversible."""
        base = "map_style|gis|parks"
        override = StyleOverride("#parks {line-color: red|blue;}", "2.1.0")
        key = keys.extended_key(base, sql="SELECT 'a|b'", override=override)

        assert keys.parse_extended_key(key) == (base, "SELECT 'a|b'", override)

    def test_parse_rejects_unknown_segment(self, keys):
        with pytest.raises(ValueError):
            keys.parse_extended_key("map_style|gis|parks|bogus:abc")
