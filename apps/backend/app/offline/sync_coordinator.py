"""
sync_coordinator.py — Drains the offline queue into the ingestion endpoint.

Per entry:   Queued ──claim──▶ Submitting ──2xx──▶ Synced
                                   │
                                   └──error──▶ Queued (claim released)

Rules:
  - Strictly sequential: one entry at a time, in queue order.
  - sync() is serialised by an asyncio.Lock; on_connectivity_restored() is
    single-flight and hands back the task already running, if any.
  - The in-flight claim stops a second coordinator (another process on the
    same store) from posting the same entry concurrently.
  - A failed entry is released and the pass moves on to the next one. Any
    exception from the client counts as a failure of that entry only. The
    entry waits for the next connectivity signal; there is no retry loop
    and no backoff timer.
  - Entries are never deleted here; purge_synced() is the caller's call.
"""

import asyncio
import logging

import httpx

from app.core.errors import SyncConflict
from app.models.offline import SyncResult
from app.offline.ingestion_client import IngestionClient
from app.offline.submission_queue import SubmissionQueue

logger = logging.getLogger(__name__)


class SyncCoordinator:
    def __init__(self, queue: SubmissionQueue, client: IngestionClient) -> None:
        self.queue = queue
        self.client = client
        self._lock = asyncio.Lock()
        self._current: asyncio.Task | None = None
        self.last_result: SyncResult | None = None

    @property
    def is_syncing(self) -> bool:
        return self._current is not None and not self._current.done()

    def on_connectivity_restored(self) -> asyncio.Task:
        """Start a sync pass in the background, or return the one already running."""
        if self.is_syncing:
            logger.debug("Sync already in progress; joining the running pass")
            return self._current

        self._current = asyncio.get_running_loop().create_task(self.sync(), name="offline-sync")
        self._current.add_done_callback(self._on_sync_done)
        return self._current

    async def sync(self) -> SyncResult:
        async with self._lock:
            result = SyncResult()
            entries = await self.queue.list_unsynced()
            if not entries:
                self.last_result = result
                return result

            logger.info("Syncing %d offline report(s)", len(entries))
            for entry in entries:
                try:
                    if not await self.queue.claim(entry.local_id):
                        result.skipped += 1
                        continue
                except SyncConflict:
                    # Another coordinator delivered it since we listed; nothing to do.
                    logger.debug("Entry %s already synced elsewhere", entry.local_id)
                    result.skipped += 1
                    continue

                delivered = False
                try:
                    created = await self.client.submit(entry.payload)
                    delivered = True
                except httpx.HTTPError as exc:
                    logger.warning("Failed to sync report %s: %s", entry.local_id, exc)
                    result.failed += 1
                except Exception:
                    # One bad entry must not stop the rest of the queue from draining.
                    logger.exception("Unexpected error syncing report %s", entry.local_id)
                    result.failed += 1
                finally:
                    if not delivered:
                        await self.queue.release(entry.local_id)

                if delivered:
                    await self.queue.mark_synced(entry.local_id)
                    result.synced += 1
                    logger.debug("Entry %s synced as server report %s", entry.local_id, created.get("id"))

            self.last_result = result
            return result

    def _on_sync_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            logger.warning("Offline sync was cancelled")
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Offline sync failed: %s", exc, exc_info=exc)
            return
        result = task.result()
        if result.synced:
            logger.info("Synced %d offline report(s)", result.synced)
        if result.failed:
            logger.warning("%d offline report(s) still queued after sync", result.failed)
