"""
Unit tests for page cache invalidation.
"""

import asyncio

import pytest

from service_render.app.caching.invalidator import CacheInvalidator
from service_render.app.caching.memory_cache import MemoryCache


@pytest.fixture
def memory():
    return MemoryCache()


def _seed(memory, store, *keys):
    for key in keys:
        memory.set(key, f"<html>{key}</html>")
        store.put(key, f"<html>{key}</html>")


class TestInvalidateKey:
    """Exact-key invalidation."""

    @pytest.mark.asyncio
    async def test_removes_from_both_tiers(self, memory, store):
        _seed(memory, store, "_foo_bar")
        invalidator = CacheInvalidator(memory, store)

        result = await invalidator.invalidate_key("/foo/bar")

        assert result.invalidated == ["_foo_bar"]
        assert result.durable_failures == []
        assert memory.get("_foo_bar") is None
        assert "_foo_bar" not in store.documents

    @pytest.mark.asyncio
    async def test_normalizes_raw_path(self, memory, store):
        _seed(memory, store, "_a_b")
        invalidator = CacheInvalidator(memory, store)

        await invalidator.invalidate_key("/a b")

        assert memory.get("_a_b") is None

    @pytest.mark.asyncio
    async def test_absent_key_is_noop(self, memory, store):
        invalidator = CacheInvalidator(memory, store)

        result = await invalidator.invalidate_key("/missing")

        assert result.invalidated == ["_missing"]
        assert result.durable_failures == []
        assert store.calls["delete"] == 1

    @pytest.mark.asyncio
    async def test_durable_failure_keeps_memory_delete(self, memory, store):
        _seed(memory, store, "_foo")
        store.fail_on.add("delete")
        invalidator = CacheInvalidator(memory, store)

        result = await invalidator.invalidate_key("/foo")

        assert memory.get("_foo") is None
        assert "_foo" in store.documents
        assert result.durable_failures == ["_foo"]

    @pytest.mark.asyncio
    async def test_records_metrics(self, memory, store, metrics):
        _seed(memory, store, "_foo", "_bar")
        store.fail_on.add("delete")
        invalidator = CacheInvalidator(memory, store, metrics=metrics)

        await invalidator.invalidate_key("/foo")

        registry = metrics.registry
        assert registry.get_sample_value("page_cache_invalidations_total", {"kind": "key"}) == 1.0
        assert registry.get_sample_value("durable_store_errors_total", {"operation": "delete"}) == 1.0
        assert registry.get_sample_value("page_cache_entries") == 1.0


class TestInvalidatePattern:
    """Substring invalidation."""

    @pytest.mark.asyncio
    async def test_matches_by_containment(self, memory, store):
        _seed(memory, store, "a_b", "a_c", "x_y")
        invalidator = CacheInvalidator(memory, store)

        result = await invalidator.invalidate_pattern("a_")

        assert sorted(result.invalidated) == ["a_b", "a_c"]
        assert memory.keys() == ["x_y"]
        assert sorted(store.documents) == ["x_y"]

    @pytest.mark.asyncio
    async def test_pattern_is_not_a_regex(self, memory, store):
        _seed(memory, store, "_p?x=1", "_px")
        invalidator = CacheInvalidator(memory, store)

        result = await invalidator.invalidate_pattern("?x")

        assert result.invalidated == ["_p?x=1"]
        assert memory.keys() == ["_px"]

    @pytest.mark.asyncio
    async def test_no_matches(self, memory, store):
        _seed(memory, store, "_foo")
        invalidator = CacheInvalidator(memory, store)

        result = await invalidator.invalidate_pattern("zzz")

        assert result.invalidated == []
        assert store.calls["delete"] == 0
        assert memory.get("_foo") is not None

    @pytest.mark.asyncio
    async def test_empty_pattern_matches_everything(self, memory, store):
        _seed(memory, store, "_a", "_b")
        invalidator = CacheInvalidator(memory, store)

        result = await invalidator.invalidate_pattern("")

        assert sorted(result.invalidated) == ["_a", "_b"]
        assert len(memory) == 0

    @pytest.mark.asyncio
    async def test_durable_only_entries_left_without_sweep(self, memory, store):
        store.put("_blog_old", "<html>old</html>")
        _seed(memory, store, "_blog_new")
        store.listing = True
        invalidator = CacheInvalidator(memory, store)

        result = await invalidator.invalidate_pattern("_blog_")

        assert result.invalidated == ["_blog_new"]
        assert "_blog_old" in store.documents
        assert store.calls["list"] == 0

    @pytest.mark.asyncio
    async def test_sweep_includes_durable_only_entries(self, memory, store):
        store.put("_blog_old", "<html>old</html>")
        store.put("_about", "<html>about</html>")
        _seed(memory, store, "_blog_new")
        store.listing = True
        invalidator = CacheInvalidator(memory, store, sweep_durable=True)

        result = await invalidator.invalidate_pattern("_blog_")

        assert sorted(result.invalidated) == ["_blog_new", "_blog_old"]
        assert sorted(store.documents) == ["_about"]

    @pytest.mark.asyncio
    async def test_sweep_skipped_when_store_cannot_list(self, memory, store):
        store.put("_blog_old", "<html>old</html>")
        invalidator = CacheInvalidator(memory, store, sweep_durable=True)

        result = await invalidator.invalidate_pattern("_blog_")

        assert result.invalidated == []
        assert store.calls["list"] == 0

    @pytest.mark.asyncio
    async def test_listing_failure_falls_back_to_memory_keys(self, memory, store):
        _seed(memory, store, "_blog_new")
        store.listing = True
        store.fail_on.add("list")
        invalidator = CacheInvalidator(memory, store, sweep_durable=True)

        result = await invalidator.invalidate_pattern("_blog_")

        assert result.invalidated == ["_blog_new"]
        assert memory.get("_blog_new") is None

    @pytest.mark.asyncio
    async def test_partial_durable_failure_reported(self, memory, store):
        _seed(memory, store, "a_b", "a_c")

        original_delete = store.delete

        async def flaky_delete(key):
            if key == "a_c":
                store.fail_on.add("delete")
            try:
                await original_delete(key)
            finally:
                store.fail_on.discard("delete")

        store.delete = flaky_delete
        invalidator = CacheInvalidator(memory, store)

        result = await invalidator.invalidate_pattern("a_")

        assert sorted(result.invalidated) == ["a_b", "a_c"]
        assert result.durable_failures == ["a_c"]
        assert len(memory) == 0


class TestPendingWrites:
    """Invalidation against background durable writes that have not landed."""

    @pytest.mark.asyncio
    async def test_pending_write_cancelled_before_delete(self, memory, store):
        memory.set("_foo", "<html>old</html>")
        release = asyncio.Event()

        async def late_write():
            await release.wait()
            store.put("_foo", "<html>old</html>")

        pending = {"_foo": asyncio.create_task(late_write())}
        invalidator = CacheInvalidator(memory, store, pending_writes=pending)

        await invalidator.invalidate_key("/foo")
        release.set()
        await asyncio.sleep(0)

        assert pending == {}
        assert "_foo" not in store.documents

    @pytest.mark.asyncio
    async def test_unrelated_pending_write_untouched(self, memory, store):
        _seed(memory, store, "_foo")
        release = asyncio.Event()
        other = asyncio.create_task(release.wait())
        pending = {"_bar": other}
        invalidator = CacheInvalidator(memory, store, pending_writes=pending)

        await invalidator.invalidate_key("/foo")

        assert pending == {"_bar": other}
        assert not other.cancelled()
        release.set()
        await other

    @pytest.mark.asyncio
    async def test_unexpected_delete_fault_reported(self, memory, store):
        _seed(memory, store, "_foo")

        async def timed_out_delete(key):
            raise asyncio.TimeoutError()

        store.delete = timed_out_delete
        invalidator = CacheInvalidator(memory, store)

        result = await invalidator.invalidate_key("/foo")

        assert result.durable_failures == ["_foo"]
        assert memory.get("_foo") is None
