"""
Process-local page cache tier.
"""

from typing import Dict, List, Optional


class MemoryCache:
    """
    In-memory mapping from cache key to rendered content.

    There is no TTL, capacity bound or eviction: entries stay until they are
    deleted or the process exits. Values are stored by reference and never
    copied. All operations are synchronous, so under a single event loop
    each call is atomic with respect to other requests.
    """

    def __init__(self):
        self._entries: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._entries.get(key)

    def set(self, key: str, content: str) -> None:
        self._entries[key] = content

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def keys(self) -> List[str]:
        """Snapshot of the current keys."""
        return list(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)
