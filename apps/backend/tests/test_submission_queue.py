"""
test_submission_queue.py — Offline enqueue, listing, synced flag and purge.

Run:
    cd apps/backend
    pytest tests/test_submission_queue.py -v
"""

import re
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from app.core.errors import ReportValidationError, StorageError, SyncConflict
from app.offline.queue_store import InMemoryQueueStore
from app.offline.submission_queue import SubmissionQueue, new_local_id

PAYLOAD = {
    "latitude": 13.05,
    "longitude": 80.28,
    "hazard_type": "coastal-flooding",
    "description": "Sea water entering the fishing hamlet",
}


class FakeClock:
    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture()
def clock():
    return FakeClock(datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc))


@pytest.fixture()
def queue(clock):
    return SubmissionQueue(InMemoryQueueStore(), lease_seconds=60, clock=clock)


class TestEnqueue:

    async def test_returns_namespaced_local_id(self, queue):
        local_id = await queue.enqueue(PAYLOAD)
        assert re.fullmatch(r"offline_\d+_[0-9a-f]{9}", local_id)

    def test_local_ids_are_unique(self):
        assert len({new_local_id() for _ in range(200)}) == 200

    async def test_new_entry_is_unsynced(self, queue):
        local_id = await queue.enqueue(PAYLOAD)
        [entry] = await queue.list_unsynced()
        assert entry.local_id == local_id
        assert entry.synced is False
        assert entry.payload.description == PAYLOAD["description"]

    @pytest.mark.parametrize("missing", ["latitude", "longitude", "hazard_type"])
    async def test_missing_required_field_is_rejected(self, queue, missing):
        payload = {k: v for k, v in PAYLOAD.items() if k != missing}
        with pytest.raises(ReportValidationError):
            await queue.enqueue(payload)
        assert await queue.get_all() == []

    async def test_latitude_zero_is_valid(self, queue):
        await queue.enqueue({**PAYLOAD, "latitude": 0.0})
        assert len(await queue.get_all()) == 1

    async def test_storage_failure_is_raised(self):
        store = InMemoryQueueStore()
        store.add = AsyncMock(side_effect=StorageError("disk full"))
        with pytest.raises(StorageError):
            await SubmissionQueue(store).enqueue(PAYLOAD)


class TestListing:

    async def test_list_created_between(self, queue, clock):
        first = await queue.enqueue(PAYLOAD)
        clock.advance(hours=2)
        second = await queue.enqueue(PAYLOAD)
        clock.advance(hours=2)
        await queue.enqueue(PAYLOAD)

        start = datetime(2026, 3, 1, 8, 0, tzinfo=timezone.utc)
        found = await queue.list_created_between(start, start + timedelta(hours=3, minutes=30))
        assert [e.local_id for e in found] == [first, second]


class TestMarkSynced:

    async def test_synced_entry_leaves_unsynced_list_but_stays_stored(self, queue):
        local_id = await queue.enqueue(PAYLOAD)
        assert await queue.mark_synced(local_id) is True

        assert await queue.list_unsynced() == []
        [entry] = await queue.get_all()
        assert entry.synced is True

    async def test_mark_synced_is_idempotent(self, queue):
        local_id = await queue.enqueue(PAYLOAD)
        await queue.mark_synced(local_id)
        assert await queue.mark_synced(local_id) is False
        assert len(await queue.get_all()) == 1

    async def test_mark_unknown_entry(self, queue):
        assert await queue.mark_synced("offline_0_missing") is False

    async def test_purge_removes_only_synced(self, queue):
        keep = await queue.enqueue(PAYLOAD)
        drop = await queue.enqueue(PAYLOAD)
        await queue.mark_synced(drop)

        assert await queue.purge_synced() == 1
        assert [e.local_id for e in await queue.get_all()] == [keep]


class TestClaim:

    async def test_claim_blocks_second_claim_until_lease_expires(self, queue, clock):
        local_id = await queue.enqueue(PAYLOAD)
        assert await queue.claim(local_id) is True
        assert await queue.claim(local_id) is False
        clock.advance(seconds=61)
        assert await queue.claim(local_id) is True

    async def test_release_allows_reclaim(self, queue):
        local_id = await queue.enqueue(PAYLOAD)
        await queue.claim(local_id)
        await queue.release(local_id)
        assert await queue.claim(local_id) is True

    async def test_claiming_synced_entry_is_conflict(self, queue):
        local_id = await queue.enqueue(PAYLOAD)
        await queue.mark_synced(local_id)
        with pytest.raises(SyncConflict) as exc_info:
            await queue.claim(local_id)
        assert exc_info.value.local_id == local_id
