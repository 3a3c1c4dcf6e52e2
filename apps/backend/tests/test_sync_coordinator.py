"""
test_sync_coordinator.py — Draining the offline queue when connectivity returns.

The ingestion endpoint is an httpx.MockTransport, so the real
IngestionClient request/response handling runs in every test.

Run:
    cd apps/backend
    pytest tests/test_sync_coordinator.py -v
"""

import asyncio
import json

import httpx
import pytest

from app.offline.connectivity import ConnectivityMonitor
from app.offline.ingestion_client import IngestionClient
from app.offline.queue_store import InMemoryQueueStore
from app.offline.submission_queue import SubmissionQueue
from app.offline.sync_coordinator import SyncCoordinator

PAYLOAD = {
    "latitude": 19.80,
    "longitude": 85.82,
    "hazard_type": "unusual-tide",
    "description": "Tide pulled back far beyond the usual line",
}


class FakeServer:
    """Records POSTed reports; can be told to fail specific requests."""

    def __init__(self, fail_status: int | None = None, fail_first: int = 0, delay: float = 0.0):
        self.received = []
        self.fail_status = fail_status
        self.fail_first = fail_first
        self.delay = delay

    async def handler(self, request: httpx.Request) -> httpx.Response:
        if request.url.path == "/health":
            return httpx.Response(200, json={"status": "ok"})
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_status and (self.fail_first == 0 or len(self.received) < self.fail_first):
            self.received.append(None)
            return httpx.Response(self.fail_status, json={"detail": "unavailable"})
        body = json.loads(request.content)
        self.received.append(body)
        return httpx.Response(201, json={"id": f"{len(self.received):024x}", **body})

    def client(self) -> IngestionClient:
        return IngestionClient(base_url="http://server", transport=httpx.MockTransport(self.handler))


@pytest.fixture()
def queue():
    return SubmissionQueue(InMemoryQueueStore())


class TestSync:

    async def test_offline_entry_synced_after_connectivity_restored(self, queue):
        server = FakeServer()
        coordinator = SyncCoordinator(queue, server.client())
        local_id = await queue.enqueue(PAYLOAD)

        result = await coordinator.on_connectivity_restored()

        assert result.synced == 1
        assert server.received[0]["hazard_type"] == "unusual-tide"
        assert await queue.list_unsynced() == []
        [entry] = await queue.get_all()
        assert entry.local_id == local_id and entry.synced is True

        await queue.purge_synced()
        assert await queue.get_all() == []

    async def test_entries_submitted_in_queue_order(self, queue):
        server = FakeServer()
        for i in range(3):
            await queue.enqueue({**PAYLOAD, "description": f"report number {i}"})

        await SyncCoordinator(queue, server.client()).sync()
        assert [r["description"] for r in server.received] == [f"report number {i}" for i in range(3)]

    async def test_failed_submission_stays_queued(self, queue):
        server = FakeServer(fail_status=503)
        coordinator = SyncCoordinator(queue, server.client())
        await queue.enqueue(PAYLOAD)

        result = await coordinator.sync()

        assert result.failed == 1 and result.synced == 0
        [entry] = await queue.list_unsynced()
        assert entry.claimed_at is None  # released for the next attempt

    async def test_one_failure_does_not_block_the_rest(self, queue):
        server = FakeServer(fail_status=500, fail_first=1)
        for i in range(3):
            await queue.enqueue({**PAYLOAD, "description": f"report number {i}"})

        result = await SyncCoordinator(queue, server.client()).sync()
        assert (result.synced, result.failed) == (2, 1)
        assert len(await queue.list_unsynced()) == 1

    async def test_failed_entry_retried_on_next_signal(self, queue):
        failing = FakeServer(fail_status=502)
        await queue.enqueue(PAYLOAD)
        await SyncCoordinator(queue, failing.client()).sync()

        healthy = FakeServer()
        result = await SyncCoordinator(queue, healthy.client()).on_connectivity_restored()
        assert result.synced == 1
        assert await queue.list_unsynced() == []

    async def test_network_error_counts_as_failure(self, queue):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = IngestionClient(base_url="http://server", transport=httpx.MockTransport(refuse))
        await queue.enqueue(PAYLOAD)
        result = await SyncCoordinator(queue, client).sync()
        assert result.failed == 1
        assert len(await queue.list_unsynced()) == 1

    async def test_unexpected_client_error_only_fails_that_entry(self, queue):
        server = FakeServer()
        calls = []

        async def flaky(request):
            calls.append(request)
            if len(calls) == 1:
                raise RuntimeError("decoder blew up")
            return await server.handler(request)

        client = IngestionClient(base_url="http://server", transport=httpx.MockTransport(flaky))
        for i in range(3):
            await queue.enqueue({**PAYLOAD, "description": f"report number {i}"})

        result = await SyncCoordinator(queue, client).sync()

        assert (result.synced, result.failed) == (2, 1)
        [left] = await queue.list_unsynced()
        assert left.payload.description == "report number 0"
        assert left.claimed_at is None

    async def test_non_object_response_body_still_counts_as_delivered(self, queue):
        def list_body(request):
            return httpx.Response(201, json=["created"])

        client = IngestionClient(base_url="http://server", transport=httpx.MockTransport(list_body))
        await queue.enqueue(PAYLOAD)

        result = await SyncCoordinator(queue, client).sync()

        assert result.synced == 1
        assert await queue.list_unsynced() == []

    async def test_empty_queue(self, queue):
        result = await SyncCoordinator(queue, FakeServer().client()).sync()
        assert (result.synced, result.failed, result.skipped) == (0, 0, 0)


class TestConcurrency:

    async def test_restored_signal_is_single_flight(self, queue):
        server = FakeServer(delay=0.05)
        coordinator = SyncCoordinator(queue, server.client())
        await queue.enqueue(PAYLOAD)

        first = coordinator.on_connectivity_restored()
        second = coordinator.on_connectivity_restored()
        assert first is second
        await first
        assert len(server.received) == 1

    async def test_two_coordinators_never_post_the_same_entry(self, queue):
        server = FakeServer(delay=0.02)
        await queue.enqueue(PAYLOAD)
        await queue.enqueue({**PAYLOAD, "description": "second queued report"})

        a = SyncCoordinator(queue, server.client())
        b = SyncCoordinator(queue, server.client())
        results = await asyncio.gather(a.sync(), b.sync())

        assert len(server.received) == 2
        assert sum(r.synced for r in results) == 2
        assert sum(r.skipped for r in results) == 2

    async def test_entry_synced_elsewhere_is_skipped(self, queue):
        server = FakeServer()
        coordinator = SyncCoordinator(queue, server.client())
        local_id = await queue.enqueue(PAYLOAD)

        listed = await queue.list_unsynced()
        await queue.mark_synced(local_id)
        queue.list_unsynced = lambda: _returning(listed)  # stale listing

        result = await coordinator.sync()
        assert result.skipped == 1
        assert server.received == []


async def _returning(value):
    return value


class TestConnectivityMonitor:

    async def test_first_successful_probe_triggers_sync(self, queue):
        server = FakeServer()
        client = server.client()
        monitor = ConnectivityMonitor(client, SyncCoordinator(queue, client), interval=1)
        await queue.enqueue(PAYLOAD)

        assert await monitor.check() is True
        await monitor.coordinator._current
        assert await queue.list_unsynced() == []

    async def test_only_offline_to_online_transition_triggers(self, queue):
        client = FakeServer().client()
        monitor = ConnectivityMonitor(client, SyncCoordinator(queue, client), interval=1)

        assert monitor.set_online(True) is not None
        await monitor.coordinator._current
        assert monitor.set_online(True) is None
        assert monitor.set_online(False) is None
        assert monitor.is_online is False
        restored = monitor.set_online(True)
        assert restored is not None
        await restored

    async def test_unreachable_server_is_offline(self, queue):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = IngestionClient(base_url="http://server", transport=httpx.MockTransport(refuse))
        monitor = ConnectivityMonitor(client, SyncCoordinator(queue, client), interval=1)
        assert await monitor.check() is False
        assert monitor.is_online is False
