"""
Shared fixtures for render service tests.
"""

from typing import Any, Dict, List, Optional, Set

import pytest
from prometheus_client import CollectorRegistry

from service_render.app.caching.durable_store import DurableStore
from service_render.app.caching.models import CacheEntry, DurableRecord
from service_render.app.exceptions import StoreError
from shared.metrics import MetricsCollector


class FakeDurableStore(DurableStore):
    """In-memory durable store with call counters and failure injection."""

    name = "fake"

    def __init__(self):
        self.documents: Dict[str, Dict[str, Any]] = {}
        self.calls: Dict[str, int] = {"get": 0, "set": 0, "delete": 0, "list": 0}
        self.fail_on: Set[str] = set()
        self.set_failures_remaining = 0
        self.listing = False
        self.healthy = True
        self.closed = False

    def _maybe_fail(self, operation: str, key: Optional[str] = None):
        if operation in self.fail_on:
            raise StoreError(f"{operation} unavailable", {"key": key})

    async def get(self, key: str) -> Optional[DurableRecord]:
        self.calls["get"] += 1
        self._maybe_fail("get", key)
        document = self.documents.get(key)
        if document is None:
            return None
        return DurableRecord(exists=True, payload=dict(document))

    async def set(self, key: str, entry: CacheEntry) -> None:
        self.calls["set"] += 1
        self._maybe_fail("set", key)
        if self.set_failures_remaining > 0:
            self.set_failures_remaining -= 1
            raise StoreError("transient write failure", {"key": key})
        document = entry.to_document()
        document["timestamp"] = 1700000000000
        self.documents[key] = document

    async def delete(self, key: str) -> None:
        self.calls["delete"] += 1
        self._maybe_fail("delete", key)
        self.documents.pop(key, None)

    @property
    def supports_listing(self) -> bool:
        return self.listing

    async def list_keys(self) -> List[str]:
        self.calls["list"] += 1
        self._maybe_fail("list")
        return list(self.documents)

    async def ping(self) -> bool:
        return self.healthy

    async def close(self) -> None:
        self.closed = True

    def put(self, key: str, content: Any, source_url: str = "/") -> None:
        self.documents[key] = {"content": content, "sourceUrl": source_url, "createdAt": 1, "timestamp": 2}


class RecordingRenderer:
    """Async renderer that records calls and returns numbered pages."""

    def __init__(self, template: str = "<html>{count}</html>"):
        self.template = template
        self.calls: List[str] = []
        self.error: Optional[Exception] = None

    async def __call__(self, path: str) -> str:
        self.calls.append(path)
        if self.error is not None:
            raise self.error
        return self.template.format(count=len(self.calls), path=path)


@pytest.fixture
def store():
    return FakeDurableStore()


@pytest.fixture
def renderer():
    return RecordingRenderer()


@pytest.fixture
def metrics():
    return MetricsCollector("render", CollectorRegistry())
