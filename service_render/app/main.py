"""
Page render service: serves server-rendered pages through the two-tier cache.
"""

import asyncio
import os
from typing import List, Optional

from fastapi import Request
from fastapi.responses import HTMLResponse
from pydantic import BaseModel, Field

from shared.base_service import BaseService
from shared.config import ServiceConfig, get_config
from shared.errors import ValidationError
from shared.metrics import MetricsCollector
from shared.retry import RetryConfig
from .caching.cache_manager import PageCacheManager, Renderer
from .caching.durable_store import DurableStore, create_durable_store
from .caching.hot_pages import HotPageLoader
from .caching.models import InvalidationResult
from .rendering.client import RenderClient

SERVICE_NAME = "render"
DEFAULT_PORT = 4000


class InvalidationRequest(BaseModel):
    """Body of a cache invalidation request."""

    url: Optional[str] = None
    pattern: Optional[str] = None


class WarmRequest(BaseModel):
    """Body of a cache warm request. An empty list warms the hot page file."""

    paths: List[str] = Field(default_factory=list)


class RenderService(BaseService):
    """Page render service implementation."""

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        *,
        store: Optional[DurableStore] = None,
        renderer: Optional[Renderer] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        config = config or get_config(SERVICE_NAME, int(os.getenv("RENDER_PORT", DEFAULT_PORT)))
        super().__init__(SERVICE_NAME, config.port, config=config, metrics=metrics)

        self.render_client = RenderClient(
            self.config.renderer_url,
            base_href=self.config.base_href,
            timeout=self.config.renderer_timeout,
        )
        self.store = store or create_durable_store(self.config)
        self.cache_manager = PageCacheManager(
            self.store,
            renderer or self.render_client,
            metrics=self.metrics,
            single_flight=self.config.single_flight,
            durable_write_mode=self.config.durable_write_mode,
            write_retry=RetryConfig(max_attempts=self.config.durable_write_attempts, base_delay=0.5, max_delay=10.0),
            sweep_durable_on_pattern=self.config.pattern_sweep_durable,
            hot_pages=HotPageLoader(self.config.hot_pages_file),
            warm_concurrency=self.config.warm_concurrency,
        )
        self._warm_task: Optional[asyncio.Task] = None

        self._setup_cache_routes()
        # Registered last so it never shadows the routes above.
        self._setup_page_routes()

    async def startup(self) -> None:
        if self.cache_manager.hot_pages.paths():
            self._warm_task = asyncio.create_task(self.cache_manager.warm_hot_pages())
            self.logger.info("Scheduled hot page warm-up", pages=len(self.cache_manager.hot_pages.paths()))

    async def shutdown(self) -> None:
        if self._warm_task is not None and not self._warm_task.done():
            self._warm_task.cancel()
            await asyncio.gather(self._warm_task, return_exceptions=True)
        await self.cache_manager.close()
        await self.render_client.close()

    async def _check_dependencies(self) -> dict:
        return {
            "durable_store": "ok" if await self.store.ping() else "error",
            "renderer": "open" if self.render_client.circuit_breaker.is_open() else "ok",
        }

    def _setup_cache_routes(self):
        """Cache administration routes."""

        @self.app.post("/api/cache/invalidate")
        async def invalidate_cache(body: Optional[InvalidationRequest] = None):
            """Invalidate by exact path and/or by key substring."""
            if body is None or not (body.url or body.pattern):
                raise ValidationError(
                    "Either 'url' or 'pattern' must be provided",
                    {"fields": ["url", "pattern"]},
                )

            result = InvalidationResult()
            if body.url:
                result = result.merge(await self.cache_manager.invalidate_key(body.url))
            if body.pattern:
                result = result.merge(await self.cache_manager.invalidate_pattern(body.pattern))

            return {"success": True, **result.to_dict()}

        @self.app.get("/api/cache/stats")
        async def cache_stats():
            """Cache counters and collaborator state."""
            return {
                **self.cache_manager.get_stats(),
                "renderer_circuit": self.render_client.circuit_breaker.get_state(),
            }

        @self.app.post("/api/cache/warm")
        async def warm_cache(body: Optional[WarmRequest] = None):
            """Render the given paths, or the hot page list, into the cache."""
            if body is not None and body.paths:
                return await self.cache_manager.warm(body.paths)
            return await self.cache_manager.warm_hot_pages()

    def _setup_page_routes(self):
        """Catch-all page route."""

        @self.app.get("/{path:path}", response_class=HTMLResponse)
        async def serve_page(request: Request):
            request_path = request.url.path
            if request.url.query:
                request_path = f"{request_path}?{request.url.query}"

            content = await self.cache_manager.resolve(request_path)
            return HTMLResponse(content)


def create_app():
    """Create the FastAPI application."""
    return RenderService().app


if __name__ == "__main__":
    RenderService().run()
