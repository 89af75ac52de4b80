"""
HTTP client for the upstream server-side renderer.
"""

from typing import Optional

import httpx

from shared.circuit_breaker import CircuitBreaker, CircuitBreakerOpenException
from shared.logging import get_logger
from ..exceptions import RenderError


class RenderClient:
    """
    Asks the SSR upstream to render a page.

    The upstream receives ``POST /render`` with ``{"url", "baseHref"}`` and
    answers with the page markup as the response body. Render calls are not
    retried; a failure belongs to the request that triggered it.
    """

    def __init__(
        self,
        renderer_url: str,
        *,
        base_href: str = "/",
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = renderer_url.rstrip('/')
        self.base_href = base_href
        self.timeout = timeout
        self.logger = get_logger("render.renderer_client")
        self._client = client
        self.circuit_breaker = CircuitBreaker(
            failure_threshold=5,
            recovery_timeout=30.0,
            name="renderer",
        )

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout)
        return self._client

    async def render(self, path: str, base_href: Optional[str] = None) -> str:
        """Render ``path`` and return its markup."""
        payload = {"url": path, "baseHref": base_href if base_href is not None else self.base_href}

        async def _request() -> str:
            response = await self._get_client().post("/render", json=payload)

            if response.status_code == 200:
                self.logger.debug("Page rendered", url=path, bytes=len(response.content))
                return response.text

            self.logger.error(
                "Render request failed",
                url=path,
                status_code=response.status_code,
                response=response.text[:500]
            )
            raise RenderError(
                f"Unexpected status {response.status_code}",
                {"url": path, "status_code": response.status_code}
            )

        try:
            return await self.circuit_breaker.call(_request)
        except RenderError:
            raise
        except CircuitBreakerOpenException as exc:
            self.logger.warning("Renderer circuit open; rejecting render", url=path)
            raise RenderError(str(exc), {"url": path}) from exc
        except httpx.HTTPError as exc:
            self.logger.error("Renderer transport error", url=path, error=str(exc))
            raise RenderError(str(exc) or type(exc).__name__, {"url": path}) from exc

    async def __call__(self, path: str, base_href: Optional[str] = None) -> str:
        return await self.render(path, base_href)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
