"""
Read-through / write-through page cache orchestrator.
"""

import asyncio
import inspect
import time
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, TYPE_CHECKING, Union

from shared.logging import get_logger
from shared.retry import RetryConfig, RetryError, retry_on_exception
from shared.tracing import get_tracer
from ..exceptions import RenderError, StoreError
from .durable_store import DurableStore
from .hot_pages import HotPageLoader
from .invalidator import CacheInvalidator
from .keys import normalize_cache_key
from .memory_cache import MemoryCache
from .models import CacheEntry, InvalidationResult

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


# Called as render(path) or, with a base-href override, render(path, base_href).
Renderer = Callable[..., Union[Awaitable[str], str]]

WRITE_MODE_INLINE = "inline"
WRITE_MODE_BACKGROUND = "background"


class PageCacheManager:
    """
    Two-tier cache in front of the page renderer.

    ``resolve`` consults the volatile tier, then the durable tier (backfilling
    memory on a hit), and on a full miss renders the page and populates both
    tiers. Durable-tier faults never reach the caller: a failed read counts as
    a miss and a failed write only skips persistence. Renderer faults
    propagate as ``RenderError``.

    With ``single_flight`` enabled, concurrent misses for one key share a
    single durable lookup and render. In ``background`` write mode the durable
    write leaves the request path and is retried with backoff. Invalidating a
    key cancels its pending background write.
    """

    def __init__(
        self,
        store: DurableStore,
        renderer: Optional[Renderer] = None,
        *,
        memory: Optional[MemoryCache] = None,
        metrics: Optional["MetricsCollector"] = None,
        single_flight: bool = True,
        durable_write_mode: str = WRITE_MODE_INLINE,
        write_retry: Optional[RetryConfig] = None,
        sweep_durable_on_pattern: bool = False,
        hot_pages: Optional[HotPageLoader] = None,
        warm_concurrency: int = 5,
    ):
        if durable_write_mode not in (WRITE_MODE_INLINE, WRITE_MODE_BACKGROUND):
            raise ValueError(f"Unknown durable write mode: {durable_write_mode}")

        self.store = store
        self.renderer = renderer
        self.memory = memory if memory is not None else MemoryCache()
        self.metrics = metrics
        self.single_flight = single_flight
        self.durable_write_mode = durable_write_mode
        self.write_retry = write_retry or RetryConfig(max_attempts=3, base_delay=0.5, max_delay=10.0)
        self.hot_pages = hot_pages or HotPageLoader()
        # Background durable writes by cache key, shared with the invalidator.
        self._pending_writes: Dict[str, asyncio.Task] = {}
        self.logger = get_logger("render.cache_manager")
        self.tracer = get_tracer(__name__)
        self.invalidator = CacheInvalidator(
            self.memory,
            store,
            metrics=metrics,
            sweep_durable=sweep_durable_on_pattern,
            pending_writes=self._pending_writes,
        )

        self._warm_semaphore = asyncio.Semaphore(max(1, warm_concurrency))
        self._in_flight: Dict[str, asyncio.Future] = {}
        self._stats: Dict[str, int] = {
            "memory_hits": 0,
            "durable_hits": 0,
            "misses": 0,
            "renders": 0,
            "render_errors": 0,
            "durable_read_errors": 0,
            "durable_write_errors": 0,
            "single_flight_joins": 0,
        }

    async def resolve(
        self,
        request_path: str,
        renderer: Optional[Renderer] = None,
        base_href: Optional[str] = None,
    ) -> str:
        """Return the page for ``request_path``, rendering it only on a full miss."""
        key = normalize_cache_key(request_path)

        with self.tracer.start_as_current_span("page_cache.resolve") as span:
            span.set_attribute("page_cache.key", key)

            cached = self.memory.get(key)
            if cached is not None:
                self._stats["memory_hits"] += 1
                self._record_lookup("memory", "hit")
                span.set_attribute("page_cache.result", "memory_hit")
                self.logger.debug("Memory cache hit", url=request_path)
                return cached

            self._record_lookup("memory", "miss")
            render = renderer or self.renderer
            if render is None:
                raise RenderError("No renderer configured", {"url": request_path})

            if not self.single_flight:
                return await self._load(key, request_path, render, base_href, span)

            pending = self._in_flight.get(key)
            if pending is not None:
                self._stats["single_flight_joins"] += 1
                span.set_attribute("page_cache.result", "joined")
                self.logger.debug("Joining in-flight render", url=request_path, key=key)
                return await asyncio.shield(pending)

            future = asyncio.get_running_loop().create_future()
            self._in_flight[key] = future
            try:
                content = await self._load(key, request_path, render, base_href, span)
            except asyncio.CancelledError:
                self._fail_waiters(future, RenderError("Render was cancelled", {"url": request_path}))
                raise
            except Exception as exc:
                self._fail_waiters(future, exc)
                raise
            else:
                future.set_result(content)
                return content
            finally:
                self._in_flight.pop(key, None)

    async def _load(
        self,
        key: str,
        request_path: str,
        render: Renderer,
        base_href: Optional[str],
        span: Any,
    ) -> str:
        """Durable lookup, then render and populate on a miss."""
        content = await self._read_durable(key)
        if content is not None:
            self.memory.set(key, content)
            self._stats["durable_hits"] += 1
            self._update_size_gauge()
            span.set_attribute("page_cache.result", "durable_hit")
            self.logger.info("Durable cache hit", url=request_path)
            return content

        self._stats["misses"] += 1
        span.set_attribute("page_cache.result", "miss")
        content = await self._render(request_path, render, base_href)
        await self._populate(key, request_path, content)
        return content

    async def _read_durable(self, key: str) -> Optional[str]:
        try:
            record = await self.store.get(key)
        except Exception as exc:
            self._stats["durable_read_errors"] += 1
            self._record_store_error("get")
            self.logger.warning("Durable cache read failed; treating as miss", key=key, error=str(exc))
            return None

        content = record.content() if record is not None else None
        if record is not None and content is None:
            self.logger.warning("Malformed durable cache record; treating as miss", key=key)
        self._record_lookup("durable", "hit" if content is not None else "miss")
        return content

    async def _render(self, request_path: str, render: Renderer, base_href: Optional[str] = None) -> str:
        start = time.perf_counter()
        try:
            result = render(request_path) if base_href is None else render(request_path, base_href)
            if inspect.isawaitable(result):
                result = await result
        except RenderError:
            self._record_render("error", start)
            raise
        except Exception as exc:
            self._record_render("error", start)
            self.logger.error("Page render failed", url=request_path, error=str(exc))
            raise RenderError(str(exc) or type(exc).__name__, {"url": request_path}) from exc

        if not isinstance(result, str):
            self._record_render("error", start)
            raise RenderError("Renderer returned non-text content", {"url": request_path, "type": type(result).__name__})

        self._record_render("ok", start)
        return result

    async def _populate(self, key: str, request_path: str, content: str) -> None:
        self.memory.set(key, content)
        self._update_size_gauge()
        entry = CacheEntry(content=content, source_url=request_path)

        if self.durable_write_mode == WRITE_MODE_BACKGROUND:
            superseded = self._pending_writes.get(key)
            if superseded is not None:
                superseded.cancel()
            task = asyncio.create_task(self._write_durable_with_retry(key, entry))
            self._pending_writes[key] = task
            task.add_done_callback(lambda done, key=key: self._forget_write(key, done))
            return

        try:
            await self.store.set(key, entry)
        except Exception as exc:
            self._stats["durable_write_errors"] += 1
            self._record_store_error("set")
            self.logger.error("Error saving page to durable cache", url=request_path, key=key, error=str(exc))
            return

        self.logger.info("Page saved to cache", url=request_path)

    async def _write_durable_with_retry(self, key: str, entry: CacheEntry) -> None:
        write = retry_on_exception((StoreError,), config=self.write_retry)(self.store.set)
        try:
            await write(key, entry)
        except RetryError as exc:
            self._stats["durable_write_errors"] += 1
            self._record_store_error("set")
            self.logger.error(
                "Error saving page to durable cache",
                url=entry.source_url,
                key=key,
                attempts=exc.attempts,
                error=str(exc.last_exception),
            )
            return
        except Exception as exc:
            self._stats["durable_write_errors"] += 1
            self._record_store_error("set")
            self.logger.error("Error saving page to durable cache", url=entry.source_url, key=key, error=str(exc))
            return

        self.logger.info("Page saved to cache", url=entry.source_url)

    def _forget_write(self, key: str, task: asyncio.Task) -> None:
        if self._pending_writes.get(key) is task:
            del self._pending_writes[key]

    @staticmethod
    def _fail_waiters(future: asyncio.Future, exc: BaseException) -> None:
        if future.done():
            return
        future.set_exception(exc)
        # Marks the exception as retrieved when no request joined this render.
        future.exception()

    async def invalidate_key(self, raw_path: str) -> InvalidationResult:
        return await self.invalidator.invalidate_key(raw_path)

    async def invalidate_pattern(self, substring: str) -> InvalidationResult:
        return await self.invalidator.invalidate_pattern(substring)

    async def warm(self, paths: Iterable[str], renderer: Optional[Renderer] = None) -> Dict[str, Any]:
        """
        Resolve each path through the cache with bounded concurrency.

        Returns a summary with planned and warmed counts and per-path errors.
        """
        planned: List[str] = list(dict.fromkeys(paths))
        summary: Dict[str, Any] = {"planned": len(planned), "warmed": 0, "errors": []}

        if not planned:
            self.logger.info("No pages to warm; cache warm skipped")
            return summary

        async def _warm_one(path: str) -> str:
            async with self._warm_semaphore:
                await self.resolve(path, renderer)
            return path

        results = await asyncio.gather(*(_warm_one(path) for path in planned), return_exceptions=True)
        for path, outcome in zip(planned, results):
            if isinstance(outcome, Exception):
                self.logger.error("Cache warm failed", url=path, error=str(outcome))
                summary["errors"].append({"url": path, "error": str(outcome)})
            else:
                summary["warmed"] += 1

        self.logger.info(
            "Cache warm completed",
            planned=summary["planned"],
            warmed=summary["warmed"],
            errors=len(summary["errors"]),
        )
        return summary

    async def warm_hot_pages(self) -> Dict[str, Any]:
        """Warm the pages listed in the hot page file."""
        return await self.warm(self.hot_pages.paths())

    async def drain(self) -> None:
        """Wait for outstanding background durable writes."""
        while self._pending_writes:
            await asyncio.gather(*list(self._pending_writes.values()), return_exceptions=True)

    async def close(self) -> None:
        await self.drain()
        await self.store.close()

    def get_stats(self) -> Dict[str, Any]:
        """Cache counters since process start."""
        lookups = self._stats["memory_hits"] + self._stats["durable_hits"] + self._stats["misses"]
        hits = self._stats["memory_hits"] + self._stats["durable_hits"]
        return {
            **self._stats,
            "memory_entries": len(self.memory),
            "hit_ratio": hits / lookups if lookups else 0.0,
            "in_flight": len(self._in_flight),
            "pending_durable_writes": len(self._pending_writes),
            "durable_backend": self.store.name,
            "durable_write_mode": self.durable_write_mode,
            "single_flight": self.single_flight,
            "hot_pages": len(self.hot_pages.paths()),
        }

    def _record_lookup(self, tier: str, result: str) -> None:
        if self.metrics:
            self.metrics.increment_counter("page_cache_lookups_total", tier=tier, result=result)

    def _record_render(self, status: str, start: float) -> None:
        if status == "ok":
            self._stats["renders"] += 1
        else:
            self._stats["render_errors"] += 1
        if self.metrics:
            self.metrics.increment_counter("page_renders_total", status=status)
            self.metrics.observe_histogram("page_render_duration_seconds", time.perf_counter() - start)

    def _record_store_error(self, operation: str) -> None:
        if self.metrics:
            self.metrics.increment_counter("durable_store_errors_total", operation=operation)

    def _update_size_gauge(self) -> None:
        if self.metrics:
            self.metrics.set_gauge("page_cache_entries", len(self.memory))
