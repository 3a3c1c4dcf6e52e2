"""
queue_store.py — Durable key-value storage for the offline submission queue.

Two interchangeable backends behind the QueueStore interface:

  InMemoryQueueStore  dict + asyncio.Lock. Tests, and agents that accept
                      losing the queue on restart.
  MongoQueueStore     Motor collection keyed by local_id (`_id`), with
                      secondary indexes on `synced` and (`created_at`, `seq`).
                      `seq` is an ObjectId stamped at insert; it orders
                      entries that share a millisecond timestamp.
                      Point it at a mongod on the field device / gateway.

Every state change of a single entry (claim, release, synced flag) is one
atomic operation: a locked dict swap in memory, one find_one_and_update in
MongoDB. Readers never see a half-applied transition.

Driver failures surface as StorageError; callers must not swallow them.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo import ASCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from app.core.errors import StorageError
from app.models.offline import QueueEntry
from app.models.report import ReportPayload

logger = logging.getLogger(__name__)


class ClaimOutcome(str, Enum):
    CLAIMED = "claimed"
    BUSY = "busy"          # another coordinator holds a live claim
    SYNCED = "synced"      # already delivered
    MISSING = "missing"    # purged or never existed


class QueueStore(ABC):
    """Storage contract for the submission queue. All methods may raise StorageError."""

    @abstractmethod
    async def add(self, entry: QueueEntry) -> None:
        """Insert a new entry; a duplicate local_id is a StorageError."""

    @abstractmethod
    async def get(self, local_id: str) -> Optional[QueueEntry]: ...

    @abstractmethod
    async def put(self, entry: QueueEntry) -> None:
        """Insert or replace."""

    @abstractmethod
    async def delete(self, local_id: str) -> None: ...

    @abstractmethod
    async def all(self) -> list[QueueEntry]: ...

    @abstractmethod
    async def find_by_synced(self, synced: bool) -> list[QueueEntry]:
        """Entries with the given flag, oldest first."""

    @abstractmethod
    async def find_created_between(self, start: datetime, end: datetime) -> list[QueueEntry]: ...

    @abstractmethod
    async def delete_synced(self) -> int: ...

    @abstractmethod
    async def set_synced(self, local_id: str) -> Optional[bool]:
        """Flag as synced and clear any claim. Returns the previous flag, None if missing."""

    @abstractmethod
    async def try_claim(self, local_id: str, now: datetime, lease: timedelta) -> ClaimOutcome: ...

    @abstractmethod
    async def release(self, local_id: str) -> None: ...


# ── In-memory backend ─────────────────────────────────────────────────────────

class InMemoryQueueStore(QueueStore):
    def __init__(self) -> None:
        self._entries: dict[str, QueueEntry] = {}  # insertion-ordered
        self._lock = asyncio.Lock()

    async def add(self, entry: QueueEntry) -> None:
        async with self._lock:
            if entry.local_id in self._entries:
                raise StorageError(f"Duplicate queue entry {entry.local_id}")
            self._entries[entry.local_id] = entry

    async def get(self, local_id: str) -> Optional[QueueEntry]:
        async with self._lock:
            return self._entries.get(local_id)

    async def put(self, entry: QueueEntry) -> None:
        async with self._lock:
            self._entries[entry.local_id] = entry

    async def delete(self, local_id: str) -> None:
        async with self._lock:
            self._entries.pop(local_id, None)

    async def all(self) -> list[QueueEntry]:
        async with self._lock:
            return list(self._entries.values())

    async def find_by_synced(self, synced: bool) -> list[QueueEntry]:
        async with self._lock:
            return [e for e in self._entries.values() if e.synced is synced]

    async def find_created_between(self, start: datetime, end: datetime) -> list[QueueEntry]:
        async with self._lock:
            return [e for e in self._entries.values() if start <= e.created_at <= end]

    async def delete_synced(self) -> int:
        async with self._lock:
            doomed = [k for k, e in self._entries.items() if e.synced]
            for k in doomed:
                del self._entries[k]
            return len(doomed)

    async def set_synced(self, local_id: str) -> Optional[bool]:
        async with self._lock:
            entry = self._entries.get(local_id)
            if entry is None:
                return None
            self._entries[local_id] = entry.model_copy(update={"synced": True, "claimed_at": None})
            return entry.synced

    async def try_claim(self, local_id: str, now: datetime, lease: timedelta) -> ClaimOutcome:
        async with self._lock:
            entry = self._entries.get(local_id)
            if entry is None:
                return ClaimOutcome.MISSING
            if entry.synced:
                return ClaimOutcome.SYNCED
            if entry.claimed_at is not None and entry.claimed_at > now - lease:
                return ClaimOutcome.BUSY
            self._entries[local_id] = entry.model_copy(update={"claimed_at": now})
            return ClaimOutcome.CLAIMED

    async def release(self, local_id: str) -> None:
        async with self._lock:
            entry = self._entries.get(local_id)
            if entry is not None and entry.claimed_at is not None:
                self._entries[local_id] = entry.model_copy(update={"claimed_at": None})


# ── MongoDB backend ───────────────────────────────────────────────────────────

def _entry_to_doc(entry: QueueEntry) -> dict:
    return {
        "_id": entry.local_id,
        "payload": entry.payload.model_dump(mode="json"),
        "synced": entry.synced,
        "created_at": entry.created_at,
        "claimed_at": entry.claimed_at,
    }


def _doc_to_entry(doc: dict) -> QueueEntry:
    return QueueEntry(
        local_id=doc["_id"],
        payload=ReportPayload.model_validate(doc["payload"]),
        synced=bool(doc.get("synced", False)),
        created_at=doc["created_at"],
        claimed_at=doc.get("claimed_at"),
    )


class MongoQueueStore(QueueStore):
    _ORDER = [("created_at", ASCENDING), ("seq", ASCENDING)]

    def __init__(self, collection: AsyncIOMotorCollection) -> None:
        self.collection = collection

    async def ensure_indexes(self) -> None:
        try:
            await self.collection.create_index([("synced", ASCENDING)])
            await self.collection.create_index(self._ORDER)
        except PyMongoError as exc:
            raise StorageError(f"Could not create queue indexes: {exc}") from exc

    async def _find(self, query: dict) -> list[QueueEntry]:
        try:
            cursor = self.collection.find(query).sort(self._ORDER)
            return [_doc_to_entry(doc) async for doc in cursor]
        except PyMongoError as exc:
            raise StorageError(f"Queue read failed: {exc}") from exc

    async def add(self, entry: QueueEntry) -> None:
        try:
            await self.collection.insert_one({**_entry_to_doc(entry), "seq": ObjectId()})
        except DuplicateKeyError as exc:
            raise StorageError(f"Duplicate queue entry {entry.local_id}") from exc
        except PyMongoError as exc:
            raise StorageError(f"Queue write failed: {exc}") from exc

    async def get(self, local_id: str) -> Optional[QueueEntry]:
        try:
            doc = await self.collection.find_one({"_id": local_id})
        except PyMongoError as exc:
            raise StorageError(f"Queue read failed: {exc}") from exc
        return _doc_to_entry(doc) if doc else None

    async def put(self, entry: QueueEntry) -> None:
        try:
            fields = _entry_to_doc(entry)
            del fields["_id"]
            await self.collection.update_one(
                {"_id": entry.local_id},
                {"$set": fields, "$setOnInsert": {"seq": ObjectId()}},
                upsert=True,
            )
        except PyMongoError as exc:
            raise StorageError(f"Queue write failed: {exc}") from exc

    async def delete(self, local_id: str) -> None:
        try:
            await self.collection.delete_one({"_id": local_id})
        except PyMongoError as exc:
            raise StorageError(f"Queue delete failed: {exc}") from exc

    async def all(self) -> list[QueueEntry]:
        return await self._find({})

    async def find_by_synced(self, synced: bool) -> list[QueueEntry]:
        return await self._find({"synced": synced})

    async def find_created_between(self, start: datetime, end: datetime) -> list[QueueEntry]:
        return await self._find({"created_at": {"$gte": start, "$lte": end}})

    async def delete_synced(self) -> int:
        try:
            result = await self.collection.delete_many({"synced": True})
        except PyMongoError as exc:
            raise StorageError(f"Queue purge failed: {exc}") from exc
        return result.deleted_count

    async def set_synced(self, local_id: str) -> Optional[bool]:
        try:
            before = await self.collection.find_one_and_update(
                {"_id": local_id},
                {"$set": {"synced": True, "claimed_at": None}},
                return_document=ReturnDocument.BEFORE,
            )
        except PyMongoError as exc:
            raise StorageError(f"Queue write failed: {exc}") from exc
        return None if before is None else bool(before.get("synced", False))

    async def try_claim(self, local_id: str, now: datetime, lease: timedelta) -> ClaimOutcome:
        try:
            claimed = await self.collection.find_one_and_update(
                {
                    "_id": local_id,
                    "synced": False,
                    "$or": [{"claimed_at": None}, {"claimed_at": {"$lte": now - lease}}],
                },
                {"$set": {"claimed_at": now}},
            )
            if claimed is not None:
                return ClaimOutcome.CLAIMED
            doc = await self.collection.find_one({"_id": local_id})
        except PyMongoError as exc:
            raise StorageError(f"Queue claim failed: {exc}") from exc
        if doc is None:
            return ClaimOutcome.MISSING
        return ClaimOutcome.SYNCED if doc.get("synced") else ClaimOutcome.BUSY

    async def release(self, local_id: str) -> None:
        try:
            await self.collection.update_one({"_id": local_id}, {"$set": {"claimed_at": None}})
        except PyMongoError as exc:
            raise StorageError(f"Queue write failed: {exc}") from exc
