"""
Durable page cache tier contract.
"""

from typing import TYPE_CHECKING, List, Optional

from .models import CacheEntry, DurableRecord

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.config import BaseConfig


class DurableStore:
    """
    Remote document store keyed identically to the volatile tier.

    Every operation may raise ``StoreError`` on transport, auth or
    serialization failure. A missing document is a normal result: ``get``
    returns ``None`` and ``delete`` succeeds.
    """

    name = "durable"

    async def get(self, key: str) -> Optional[DurableRecord]:
        raise NotImplementedError

    async def set(self, key: str, entry: CacheEntry) -> None:
        raise NotImplementedError

    async def delete(self, key: str) -> None:
        raise NotImplementedError

    @property
    def supports_listing(self) -> bool:
        return False

    async def list_keys(self) -> List[str]:
        """Enumerate stored keys. Only backends with ``supports_listing``."""
        raise NotImplementedError(f"{type(self).__name__} cannot enumerate keys")

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        return None


def create_durable_store(config: "BaseConfig") -> DurableStore:
    """Build the durable store selected by ``durable_backend``."""
    backend = config.durable_backend.lower()

    if backend == "redis":
        from .redis_store import RedisDocumentStore
        return RedisDocumentStore(config.redis_url, collection=config.cache_collection)

    if backend == "firestore":
        from .firestore_store import FirestoreDocumentStore
        return FirestoreDocumentStore(
            collection=config.cache_collection,
            project=config.firebase_project_id or None,
            credentials_info=config.firebase_credentials() if config.firebase_private_key else None,
        )

    raise ValueError(f"Unknown durable backend: {config.durable_backend}")
