"""
Firestore-backed durable page cache tier.
"""

import inspect
from typing import Any, Dict, List, Optional

from google.cloud import firestore
from google.oauth2 import service_account

from shared.logging import get_logger
from ..exceptions import StoreError
from .durable_store import DurableStore
from .models import CacheEntry, DurableRecord, TIMESTAMP_FIELD


class FirestoreDocumentStore(DurableStore):
    """One Firestore document per cache key in a single flat collection."""

    name = "firestore"

    def __init__(
        self,
        collection: str = "cache",
        *,
        project: Optional[str] = None,
        credentials_info: Optional[Dict[str, Any]] = None,
        client: Optional[firestore.AsyncClient] = None,
    ):
        self.collection = collection
        self.project = project
        self.logger = get_logger("render.durable.firestore")
        self._credentials_info = credentials_info
        self._client = client

    def _get_client(self) -> firestore.AsyncClient:
        if self._client is None:
            credentials = None
            if self._credentials_info:
                credentials = service_account.Credentials.from_service_account_info(self._credentials_info)
            self._client = firestore.AsyncClient(project=self.project, credentials=credentials)
            self.logger.info("Firestore client initialised", project=self.project, collection=self.collection)
        return self._client

    def _document(self, key: str):
        return self._get_client().collection(self.collection).document(key)

    async def get(self, key: str) -> Optional[DurableRecord]:
        try:
            snapshot = await self._document(key).get()
        except Exception as exc:
            raise StoreError(f"Failed to read cache document: {exc}", {"key": key}) from exc

        if not snapshot.exists:
            return None

        return DurableRecord(exists=True, payload=snapshot.to_dict())

    async def set(self, key: str, entry: CacheEntry) -> None:
        document = entry.to_document()
        document[TIMESTAMP_FIELD] = firestore.SERVER_TIMESTAMP
        try:
            await self._document(key).set(document)
        except Exception as exc:
            raise StoreError(f"Failed to write cache document: {exc}", {"key": key}) from exc

        self.logger.debug("Stored cache document", key=key)

    async def delete(self, key: str) -> None:
        try:
            await self._document(key).delete()
        except Exception as exc:
            raise StoreError(f"Failed to delete cache document: {exc}", {"key": key}) from exc

    @property
    def supports_listing(self) -> bool:
        return True

    async def list_keys(self) -> List[str]:
        keys: List[str] = []
        try:
            async for reference in self._get_client().collection(self.collection).list_documents():
                keys.append(reference.id)
        except Exception as exc:
            raise StoreError(f"Failed to enumerate cache documents: {exc}") from exc
        return keys

    async def ping(self) -> bool:
        try:
            await self._get_client().collection(self.collection).limit(1).get()
            return True
        except Exception as exc:
            self.logger.warning("Firestore ping failed", error=str(exc))
            return False

    async def close(self) -> None:
        if self._client is not None:
            result = self._client.close()
            if inspect.isawaitable(result):
                await result
            self._client = None
