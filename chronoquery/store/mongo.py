"""MongoDB-backed document store (Motor, async PyMongo).

A single shared client with connection pooling, created lazily.  Every
driver failure is re-raised as StoreError so callers only deal with the
compiler's own error kinds.
"""
from __future__ import annotations

from typing import Any

from motor.motor_asyncio import AsyncIOMotorClient
from pymongo.errors import PyMongoError

from chronoquery.compiler.pipeline_builder import PipelineDescription
from chronoquery.core.config import get_settings
from chronoquery.core.errors import StoreError
from chronoquery.core.logging import get_logger
from chronoquery.store.base import FindOptions

logger = get_logger(__name__)


class MotorDocumentStore:
    """DocumentStore over one MongoDB database; namespaces map to collections."""

    def __init__(self, client: AsyncIOMotorClient, database: str):
        self._client = client
        self._db = client[database]

    def _collection(self, namespace: str):
        return self._db[namespace]

    async def insert_one(self, namespace: str, document: dict[str, Any]) -> Any:
        try:
            result = await self._collection(namespace).insert_one(document)
        except PyMongoError as exc:
            raise StoreError(f"insert_one into '{namespace}' failed: {exc}") from exc
        return result.inserted_id

    async def aggregate(self, namespace: str, pipeline: PipelineDescription) -> list[dict[str, Any]]:
        try:
            cursor = self._collection(namespace).aggregate(pipeline.to_mongo())
            rows = await cursor.to_list(length=None)
        except PyMongoError as exc:
            raise StoreError(f"aggregate on '{namespace}' failed: {exc}") from exc
        logger.info("aggregate namespace=%s returned %d rows", namespace, len(rows))
        return rows

    async def find(self, namespace: str, filter: dict[str, Any], options: FindOptions) -> list[dict[str, Any]]:
        try:
            cursor = self._collection(namespace).find(
                filter,
                sort=options.sort or None,
                limit=options.limit or 0,  # 0 = no limit
            )
            docs = await cursor.to_list(length=None)
        except PyMongoError as exc:
            raise StoreError(f"find on '{namespace}' failed: {exc}") from exc
        logger.info("find namespace=%s returned %d documents", namespace, len(docs))
        return docs

    def close(self) -> None:
        self._client.close()


_store: MotorDocumentStore | None = None


def get_store() -> MotorDocumentStore:
    """Return the shared Mongo-backed store (lazy-created, cached)."""
    global _store
    if _store is None:
        settings = get_settings()
        client = AsyncIOMotorClient(settings.mongo_uri, tz_aware=True)
        _store = MotorDocumentStore(client, settings.mongo_db)
        logger.info("Mongo client created  db=%s", settings.mongo_db)
    return _store
