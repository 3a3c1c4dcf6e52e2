"""
submission_queue.py — Offline-safe write path for hazard reports.

The queue is constructed around an explicit QueueStore handle and passed
to whoever needs it (FieldReporter, SyncCoordinator, a UI listing). There
is no global queue: tests build one over InMemoryQueueStore.

Lifecycle of an entry:

    enqueue()        synced=False          (local_id = "offline_<ms>_<rand>")
    claim()          claimed_at=now        (coordinator is submitting it)
    release()        claimed_at=None       (submission failed, stays queued)
    mark_synced()    synced=True           (still stored, still listed by get_all)
    purge_synced()   deleted               (explicit maintenance only)
"""

import logging
import time
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

from pydantic import ValidationError

from app.core.config import settings
from app.core.errors import ReportValidationError, SyncConflict
from app.models.offline import QueueEntry
from app.models.report import ReportPayload
from app.offline.queue_store import ClaimOutcome, QueueStore

logger = logging.getLogger(__name__)


def coerce_payload(payload: ReportPayload | dict[str, Any]) -> ReportPayload:
    """Validate a raw submission; missing location or hazard_type is rejected here."""
    if isinstance(payload, ReportPayload):
        return payload
    try:
        return ReportPayload.model_validate(payload)
    except ValidationError as exc:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in exc.errors())
        raise ReportValidationError(f"Invalid hazard report ({fields})") from exc


def new_local_id() -> str:
    return f"offline_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


class SubmissionQueue:
    def __init__(
        self,
        store: QueueStore,
        lease_seconds: float | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.store = store
        self.lease = timedelta(
            seconds=lease_seconds if lease_seconds is not None else settings.sync_claim_lease_seconds
        )
        self._clock = clock or (lambda: datetime.now(tz=timezone.utc))

    async def enqueue(self, payload: ReportPayload | dict[str, Any]) -> str:
        """
        Persist a report locally and return its local_id.

        Raises:
            ReportValidationError: payload lacks a required field; nothing is stored.
            StorageError: the store rejected the write. Never swallowed.
        """
        report = coerce_payload(payload)
        entry = QueueEntry(local_id=new_local_id(), payload=report, created_at=self._clock())
        await self.store.add(entry)
        logger.info("Report queued offline as %s (%s)", entry.local_id, report.hazard_type.value)
        return entry.local_id

    async def list_unsynced(self) -> list[QueueEntry]:
        return await self.store.find_by_synced(False)

    async def get_all(self) -> list[QueueEntry]:
        return await self.store.all()

    async def list_created_between(self, start: datetime, end: datetime) -> list[QueueEntry]:
        return await self.store.find_created_between(start, end)

    async def mark_synced(self, local_id: str) -> bool:
        """
        Flag an entry as delivered. Idempotent.

        Returns True when this call made the transition, False when the entry
        was already synced or no longer exists.
        """
        previous = await self.store.set_synced(local_id)
        if previous is None:
            logger.warning("mark_synced: no queue entry %s", local_id)
            return False
        if previous:
            logger.debug("mark_synced: %s was already synced", local_id)
            return False
        return True

    async def purge_synced(self) -> int:
        removed = await self.store.delete_synced()
        if removed:
            logger.info("Purged %d synced queue entr%s", removed, "y" if removed == 1 else "ies")
        return removed

    async def claim(self, local_id: str) -> bool:
        """
        Mark an entry in-flight for this coordinator.

        Returns False when another coordinator holds a live claim (or the
        entry is gone).

        Raises:
            SyncConflict: the entry has already been synced.
        """
        outcome = await self.store.try_claim(local_id, self._clock(), self.lease)
        if outcome is ClaimOutcome.SYNCED:
            raise SyncConflict(local_id)
        return outcome is ClaimOutcome.CLAIMED

    async def release(self, local_id: str) -> None:
        await self.store.release(local_id)
