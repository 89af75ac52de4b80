"""
Unit tests for the upstream renderer client.
"""

import json

import httpx
import pytest

from service_render.app.exceptions import RenderError
from service_render.app.rendering.client import RenderClient


def _client_for(handler):
    transport = httpx.MockTransport(handler)
    http_client = httpx.AsyncClient(base_url="http://renderer:3000", transport=transport)
    return RenderClient("http://renderer:3000/", base_href="/app/", client=http_client)


class TestRenderClient:
    """Test cases for RenderClient."""

    @pytest.mark.asyncio
    async def test_render_posts_url_and_base_href(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, text="<html>rendered</html>")

        client = _client_for(handler)

        assert await client.render("/foo?x=1") == "<html>rendered</html>"
        assert seen[0].method == "POST"
        assert seen[0].url.path == "/render"
        assert json.loads(seen[0].content) == {"url": "/foo?x=1", "baseHref": "/app/"}

    @pytest.mark.asyncio
    async def test_callable_interface(self):
        client = _client_for(lambda request: httpx.Response(200, text="ok"))

        assert await client("/foo") == "ok"

    @pytest.mark.asyncio
    async def test_non_200_raises_render_error(self):
        client = _client_for(lambda request: httpx.Response(500, text="boom"))

        with pytest.raises(RenderError) as exc_info:
            await client.render("/foo")

        assert exc_info.value.details["status_code"] == 500

    @pytest.mark.asyncio
    async def test_transport_error_raises_render_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = _client_for(handler)

        with pytest.raises(RenderError) as exc_info:
            await client.render("/foo")

        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    @pytest.mark.asyncio
    async def test_circuit_opens_after_repeated_failures(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(503, text="unavailable")

        client = _client_for(handler)

        for _ in range(5):
            with pytest.raises(RenderError):
                await client.render("/foo")

        assert client.circuit_breaker.is_open()
        with pytest.raises(RenderError):
            await client.render("/foo")
        assert len(calls) == 5

    @pytest.mark.asyncio
    async def test_close(self):
        client = _client_for(lambda request: httpx.Response(200, text="ok"))

        await client.close()

        assert client._client is None
