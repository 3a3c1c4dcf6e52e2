"""
field_reporter.py — The submission path a field device calls.

    online  → POST straight to the ingestion endpoint
    offline → SubmissionQueue.enqueue()

A POST that fails on the network, or with a 5xx, falls back to the queue
as well: the report is kept locally rather than lost. A 4xx means the
server rejected the report itself, so it is surfaced instead of queued
(it would never sync).
"""

import logging
from typing import Any

import httpx

from app.core.errors import ReportValidationError
from app.models.offline import SubmissionOutcome
from app.models.report import ReportPayload
from app.offline.connectivity import ConnectivityMonitor
from app.offline.ingestion_client import IngestionClient
from app.offline.submission_queue import SubmissionQueue, coerce_payload

logger = logging.getLogger(__name__)


class FieldReporter:
    def __init__(
        self,
        queue: SubmissionQueue,
        client: IngestionClient,
        monitor: ConnectivityMonitor | None = None,
    ) -> None:
        self.queue = queue
        self.client = client
        self.monitor = monitor

    async def submit(self, payload: ReportPayload | dict[str, Any]) -> SubmissionOutcome:
        """
        Deliver or queue a report.

        Raises:
            ReportValidationError: missing/invalid fields, or rejected by the server.
            StorageError: offline and the local queue could not store it.
        """
        report = coerce_payload(payload)

        if self.monitor is not None and not self.monitor.is_online:
            return await self._queue(report)

        try:
            created = await self.client.submit(report)
        except httpx.TransportError as exc:
            logger.warning("Ingestion endpoint unreachable (%s); queueing report", exc)
            if self.monitor is not None:
                self.monitor.set_online(False)
            return await self._queue(report)
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code >= 500:
                logger.warning("Ingestion endpoint error %d; queueing report", exc.response.status_code)
                return await self._queue(report)
            raise ReportValidationError(
                f"Server rejected report ({exc.response.status_code}): {exc.response.text[:200]}"
            ) from exc

        return SubmissionOutcome(queued=False, server_id=str(created.get("id")) if created.get("id") else None)

    async def _queue(self, report: ReportPayload) -> SubmissionOutcome:
        local_id = await self.queue.enqueue(report)
        return SubmissionOutcome(queued=True, local_id=local_id)
