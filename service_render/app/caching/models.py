"""
Data carried between the page cache tiers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import time

CONTENT_FIELD = "content"
SOURCE_URL_FIELD = "sourceUrl"
CREATED_AT_FIELD = "createdAt"
TIMESTAMP_FIELD = "timestamp"


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class CacheEntry:
    """A rendered page as written to the durable tier."""

    content: str
    source_url: str
    created_at: int = field(default_factory=_now_ms)

    def to_document(self) -> Dict[str, Any]:
        """Document fields owned by the writer. The store adds ``timestamp``."""
        return {
            CONTENT_FIELD: self.content,
            SOURCE_URL_FIELD: self.source_url,
            CREATED_AT_FIELD: self.created_at,
        }


@dataclass(frozen=True)
class DurableRecord:
    """
    Result of a durable-tier lookup.

    A record is only a hit when it exists and its payload carries string
    content. Partially written or foreign-shaped documents read as misses.
    """

    exists: bool
    payload: Optional[Dict[str, Any]] = None

    @property
    def is_hit(self) -> bool:
        return (
            self.exists
            and isinstance(self.payload, dict)
            and isinstance(self.payload.get(CONTENT_FIELD), str)
        )

    def content(self) -> Optional[str]:
        """Return the cached content, or None when the record is not a hit."""
        if not self.is_hit:
            return None
        return self.payload[CONTENT_FIELD]  # type: ignore[index]

    def to_entry(self) -> Optional[CacheEntry]:
        if not self.is_hit:
            return None
        payload = self.payload or {}
        created_at = payload.get(CREATED_AT_FIELD)
        return CacheEntry(
            content=payload[CONTENT_FIELD],
            source_url=str(payload.get(SOURCE_URL_FIELD, "")),
            created_at=int(created_at) if isinstance(created_at, (int, float)) else 0,
        )

    @property
    def timestamp(self) -> Any:
        """Store-assigned write time, in whatever form the backend returns it."""
        if not isinstance(self.payload, dict):
            return None
        return self.payload.get(TIMESTAMP_FIELD)


@dataclass
class InvalidationResult:
    """Keys removed by an invalidation call."""

    invalidated: List[str] = field(default_factory=list)
    durable_failures: List[str] = field(default_factory=list)

    def merge(self, other: "InvalidationResult") -> "InvalidationResult":
        return InvalidationResult(
            invalidated=self.invalidated + [key for key in other.invalidated if key not in self.invalidated],
            durable_failures=self.durable_failures + [key for key in other.durable_failures if key not in self.durable_failures],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "invalidated": list(self.invalidated),
            "durable_failures": list(self.durable_failures),
        }
