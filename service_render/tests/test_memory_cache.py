"""
Unit tests for the volatile page cache tier.
"""

from service_render.app.caching.memory_cache import MemoryCache


class TestMemoryCache:
    """Test cases for MemoryCache."""

    def test_get_missing_returns_none(self):
        assert MemoryCache().get("_missing") is None

    def test_set_then_get(self):
        cache = MemoryCache()
        cache.set("_foo", "<html>1</html>")
        assert cache.get("_foo") == "<html>1</html>"

    def test_set_overwrites(self):
        cache = MemoryCache()
        cache.set("_foo", "old")
        cache.set("_foo", "new")
        assert cache.get("_foo") == "new"
        assert len(cache) == 1

    def test_empty_content_is_a_value(self):
        cache = MemoryCache()
        cache.set("_blank", "")
        assert cache.get("_blank") == ""
        assert "_blank" in cache

    def test_stores_by_reference(self):
        cache = MemoryCache()
        content = "<html>shared</html>"
        cache.set("_foo", content)
        assert cache.get("_foo") is content

    def test_delete_is_idempotent(self):
        cache = MemoryCache()
        cache.set("_foo", "x")
        cache.delete("_foo")
        cache.delete("_foo")
        assert cache.get("_foo") is None

    def test_keys_is_a_snapshot(self):
        cache = MemoryCache()
        cache.set("a_b", "1")
        cache.set("a_c", "2")

        keys = cache.keys()
        cache.set("x_y", "3")
        cache.delete("a_b")

        assert sorted(keys) == ["a_b", "a_c"]
        assert sorted(cache.keys()) == ["a_c", "x_y"]

    def test_clear(self):
        cache = MemoryCache()
        cache.set("a", "1")
        cache.clear()
        assert len(cache) == 0
