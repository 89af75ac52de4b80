"""
Redis-backed durable page cache tier.
"""

from typing import Any, Dict, List, Optional

import redis.asyncio as redis

from shared.logging import get_logger
from ..exceptions import StoreError
from .durable_store import DurableStore
from .models import CacheEntry, DurableRecord, CREATED_AT_FIELD, TIMESTAMP_FIELD

# Replaces the whole document and stamps it with the server clock (ms).
_WRITE_DOCUMENT_SCRIPT = """
local now = redis.call('TIME')
redis.call('DEL', KEYS[1])
redis.call('HSET', KEYS[1], 'content', ARGV[1], 'sourceUrl', ARGV[2], 'createdAt', ARGV[3],
           'timestamp', tonumber(now[1]) * 1000 + math.floor(tonumber(now[2]) / 1000))
return 1
"""


class RedisDocumentStore(DurableStore):
    """
    One Redis hash per cache key, all under a single ``<collection>:`` prefix.

    Hash fields mirror the document layout used by every durable backend:
    ``content``, ``sourceUrl``, ``createdAt`` and the store-assigned
    ``timestamp``.
    """

    name = "redis"

    def __init__(self, redis_url: str, collection: str = "cache", client: Optional[redis.Redis] = None):
        self.redis_url = redis_url
        self.collection = collection
        self.logger = get_logger("render.durable.redis")
        self._redis: Optional[redis.Redis] = client
        self._write_script = None

    async def _get_redis(self) -> redis.Redis:
        """Get Redis connection."""
        if self._redis is None:
            self._redis = redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                health_check_interval=30
            )
        return self._redis

    def _document_key(self, key: str) -> str:
        return f"{self.collection}:{key}"

    async def get(self, key: str) -> Optional[DurableRecord]:
        try:
            client = await self._get_redis()
            data = await client.hgetall(self._document_key(key))
        except Exception as exc:
            raise StoreError(f"Failed to read cache document: {exc}", {"key": key}) from exc

        if not data:
            return None

        return DurableRecord(exists=True, payload=self._decode(data))

    async def set(self, key: str, entry: CacheEntry) -> None:
        try:
            client = await self._get_redis()
            if self._write_script is None:
                self._write_script = client.register_script(_WRITE_DOCUMENT_SCRIPT)
            await self._write_script(
                keys=[self._document_key(key)],
                args=[entry.content, entry.source_url, entry.created_at],
            )
        except Exception as exc:
            raise StoreError(f"Failed to write cache document: {exc}", {"key": key}) from exc

        self.logger.debug("Stored cache document", key=key)

    async def delete(self, key: str) -> None:
        try:
            client = await self._get_redis()
            await client.delete(self._document_key(key))
        except Exception as exc:
            raise StoreError(f"Failed to delete cache document: {exc}", {"key": key}) from exc

    @property
    def supports_listing(self) -> bool:
        return True

    async def list_keys(self) -> List[str]:
        prefix = self._document_key("")
        keys: List[str] = []
        try:
            client = await self._get_redis()
            async for document_key in client.scan_iter(match=f"{prefix}*", count=500):
                keys.append(document_key[len(prefix):])
        except Exception as exc:
            raise StoreError(f"Failed to enumerate cache documents: {exc}") from exc
        return keys

    async def ping(self) -> bool:
        try:
            client = await self._get_redis()
            return bool(await client.ping())
        except Exception as exc:
            self.logger.warning("Redis ping failed", error=str(exc))
            return False

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None
            self._write_script = None

    @staticmethod
    def _decode(data: Dict[str, Any]) -> Dict[str, Any]:
        """Restore numeric fields that Redis hands back as strings."""
        payload = dict(data)
        for field_name in (CREATED_AT_FIELD, TIMESTAMP_FIELD):
            value = payload.get(field_name)
            if isinstance(value, str):
                try:
                    payload[field_name] = int(value)
                except ValueError:
                    pass
        return payload
