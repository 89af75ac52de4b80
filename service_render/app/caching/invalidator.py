"""
Exact-key and substring invalidation across both page cache tiers.
"""

import asyncio
from typing import TYPE_CHECKING, Dict, List, Optional

from shared.logging import get_logger
from .durable_store import DurableStore
from .keys import normalize_cache_key
from .memory_cache import MemoryCache
from .models import InvalidationResult

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


class CacheInvalidator:
    """
    Removes entries from the volatile and durable tiers.

    Tier deletions are independent: a failed durable delete never restores
    the volatile entry and is not retried. Pattern invalidation enumerates
    the volatile tier's keys, so entries that only exist in the durable tier
    are left alone unless ``sweep_durable`` is enabled and the store can list
    its keys.

    ``pending_writes`` maps cache keys to background durable writes that have
    not landed yet. Those writes are cancelled before the durable delete so
    they cannot restore an invalidated entry.
    """

    def __init__(
        self,
        memory: MemoryCache,
        store: DurableStore,
        *,
        metrics: Optional["MetricsCollector"] = None,
        sweep_durable: bool = False,
        pending_writes: Optional[Dict[str, asyncio.Task]] = None,
    ):
        self.memory = memory
        self.store = store
        self.metrics = metrics
        self.sweep_durable = sweep_durable
        self.pending_writes = pending_writes if pending_writes is not None else {}
        self.logger = get_logger("render.invalidator")

    async def invalidate_key(self, raw_path: str) -> InvalidationResult:
        """Invalidate the entry a request path maps to. Absent keys are a no-op."""
        key = normalize_cache_key(raw_path)
        result = await self._invalidate([key], kind="key")
        self.logger.info("Cache invalidated", url=raw_path, key=key)
        return result

    async def invalidate_pattern(self, substring: str) -> InvalidationResult:
        """Invalidate every key containing ``substring`` (plain containment)."""
        keys = [key for key in self.memory.keys() if substring in key]

        if self.sweep_durable and self.store.supports_listing:
            try:
                durable_keys = await self.store.list_keys()
            except Exception as exc:
                self.logger.error("Durable key listing failed; sweeping volatile keys only", pattern=substring, error=str(exc))
                self._record_store_error("list")
            else:
                keys.extend(key for key in durable_keys if substring in key and key not in keys)

        result = await self._invalidate(keys, kind="pattern")
        for key in result.invalidated:
            self.logger.info("Cache invalidated for pattern", pattern=substring, key=key)
        return result

    async def _invalidate(self, keys: List[str], kind: str) -> InvalidationResult:
        # Volatile deletes all land before the first suspension point.
        for key in keys:
            self.memory.delete(key)

        await self._cancel_pending_writes(keys)
        outcomes = await asyncio.gather(*(self._delete_durable(key) for key in keys))
        result = InvalidationResult(
            invalidated=list(keys),
            durable_failures=[key for key, deleted in zip(keys, outcomes) if not deleted],
        )

        if self.metrics and keys:
            self.metrics.increment_counter("page_cache_invalidations_total", len(keys), kind=kind)
            self.metrics.set_gauge("page_cache_entries", len(self.memory))
        return result

    async def _delete_durable(self, key: str) -> bool:
        try:
            await self.store.delete(key)
            return True
        except Exception as exc:
            self.logger.error("Durable cache delete failed", key=key, error=str(exc))
            self._record_store_error("delete")
            return False

    async def _cancel_pending_writes(self, keys: List[str]) -> None:
        tasks = [self.pending_writes.pop(key) for key in keys if key in self.pending_writes]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            self.logger.info("Cancelled pending durable writes", count=len(tasks))

    def _record_store_error(self, operation: str) -> None:
        if self.metrics:
            self.metrics.increment_counter("durable_store_errors_total", operation=operation)
