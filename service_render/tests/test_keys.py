"""
Unit tests for cache key normalization.
"""

import pytest

from service_render.app.caching.keys import normalize_cache_key


class TestNormalizeCacheKey:
    """Test cases for normalize_cache_key."""

    @pytest.mark.parametrize(
        "path,expected",
        [
            ("/foo/bar", "_foo_bar"),
            ("/", "_"),
            ("", ""),
            ("/a b\tc\nd", "_a_b_c_d"),
            ("/search?q=hello world", "_search?q=hello_world"),
            ("/caffè/ünïcode", "_caffè_ünïcode"),
            ("no-separators", "no-separators"),
        ],
    )
    def test_replaces_separators_and_whitespace(self, path, expected):
        assert normalize_cache_key(path) == expected

    @pytest.mark.parametrize("path", ["/foo/bar", "", "  ", "/a/b c/", "_already_normal", "/x y"])
    def test_idempotent(self, path):
        once = normalize_cache_key(path)
        assert normalize_cache_key(once) == once

    def test_distinct_paths_may_collide(self):
        """Paths differing only in replaced characters share one entry."""
        assert normalize_cache_key("/a b") == normalize_cache_key("/a/b") == normalize_cache_key("_a_b")

    def test_other_characters_untouched(self):
        assert normalize_cache_key("/p?x=1&y=%20#frag") == "_p?x=1&y=%20#frag"
