"""
Purpose:
- Persist {imageData, caption, style, context} records and list the newest ones.
- Two backends behind one async interface:
    MemoryHistoryStore : process-local, default for dev and tests; keeps only the newest HISTORY_MAX
    MongoHistoryStore  : pymongo async client, one collection of immutable documents

Contract:
- save(image) -> id
- list(limit=20) -> newest first, never more than HISTORY_MAX
- backend failures raise PersistenceError
"""

from __future__ import annotations
import itertools
import logging
import threading
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol

from pymongo import AsyncMongoClient, DESCENDING
from pymongo.errors import PyMongoError

from ..core.errors import PersistenceError
from ..core.settings import settings
from .schema import HistoryRecord, NewImage

logger = logging.getLogger(__name__)

HISTORY_MAX = 20

_STORE_SINGLETON = None  # cached instance
_STORE_LOCK = threading.Lock()


def _clamp(limit: Optional[int]) -> int:
    if limit is None:
        return min(settings.history_limit, HISTORY_MAX)
    return max(1, min(int(limit), HISTORY_MAX))


def _now() -> datetime:
    return datetime.now(timezone.utc)


class HistoryStore(Protocol):
    name: str

    async def save(self, image: NewImage) -> str: ...

    async def list(self, limit: Optional[int] = None) -> List[HistoryRecord]: ...

    async def status(self) -> Dict[str, Any]: ...

    async def aclose(self) -> None: ...


class MemoryHistoryStore:
    name = "memory"

    def __init__(self, retain: int = HISTORY_MAX) -> None:
        self._docs: List[dict] = []
        self._retain = max(1, retain)
        # tie-breaker for records created within the same clock tick
        self._seq = itertools.count()

    async def save(self, image: NewImage) -> str:
        doc = image.to_document(created_at=_now())
        doc["_id"] = uuid.uuid4().hex
        doc["_seq"] = next(self._seq)
        self._docs.append(doc)
        # older entries can never be listed again; drop them with their image payloads
        del self._docs[:-self._retain]
        return doc["_id"]

    async def list(self, limit: Optional[int] = None) -> List[HistoryRecord]:
        ordered = sorted(self._docs, key=lambda d: (d["createdAt"], d["_seq"]), reverse=True)
        return [HistoryRecord.from_document(d) for d in ordered[: _clamp(limit)]]

    async def status(self) -> Dict[str, Any]:
        return {"backend": self.name, "ok": True, "count": len(self._docs)}

    async def aclose(self) -> None:
        return None


class MongoHistoryStore:
    name = "mongo"

    def __init__(self, collection=None, client: Optional[AsyncMongoClient] = None):
        if collection is None:
            client = client or AsyncMongoClient(settings.mongo_uri, tz_aware=True)
            collection = client[settings.mongo_database][settings.mongo_collection]
        self._client = client
        self._coll = collection

    async def save(self, image: NewImage) -> str:
        try:
            result = await self._coll.insert_one(image.to_document(created_at=_now()))
        except PyMongoError as e:
            logger.error("history save failed: %r", e)
            raise PersistenceError("Failed to save image") from e
        return str(result.inserted_id)

    async def list(self, limit: Optional[int] = None) -> List[HistoryRecord]:
        n = _clamp(limit)
        try:
            cursor = self._coll.find({}).sort("createdAt", DESCENDING).limit(n)
            docs = await cursor.to_list(length=n)
        except PyMongoError as e:
            logger.error("history list failed: %r", e)
            raise PersistenceError("Failed to fetch image history") from e
        return [HistoryRecord.from_document(d) for d in docs[:n]]

    async def status(self) -> Dict[str, Any]:
        if self._client is None:
            return {"backend": self.name, "ok": True, "note": "external collection"}
        try:
            await self._client.admin.command("ping")
            return {"backend": self.name, "ok": True, "database": settings.mongo_database}
        except PyMongoError as e:
            return {"backend": self.name, "ok": False, "error": repr(e)}

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.close()


def get_history_store() -> HistoryStore:
    """
    Return the cached store for settings.history_backend. Creation is serialized
    because FastAPI resolves sync dependencies on its threadpool.
    """
    global _STORE_SINGLETON
    if _STORE_SINGLETON is not None:
        return _STORE_SINGLETON
    with _STORE_LOCK:
        if _STORE_SINGLETON is None:
            if settings.history_backend == "mongo":
                _STORE_SINGLETON = MongoHistoryStore()
            else:
                _STORE_SINGLETON = MemoryHistoryStore()
            logger.info("history backend: %s", _STORE_SINGLETON.name)
    return _STORE_SINGLETON


async def reset_history_store() -> None:
    global _STORE_SINGLETON
    if _STORE_SINGLETON is not None:
        await _STORE_SINGLETON.aclose()
    _STORE_SINGLETON = None
