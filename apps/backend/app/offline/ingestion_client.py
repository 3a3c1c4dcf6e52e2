"""
IngestionClient — HTTP client for the TideWatch ingestion endpoint.

Used by the field agent: FieldReporter posts directly when online, the
SyncCoordinator drains the offline queue through the same call, and the
ConnectivityMonitor probes /health.

Errors are NOT swallowed here. submit() raises httpx.HTTPError
(HTTPStatusError for non-2xx, TransportError for network failures) and the
caller decides whether the report stays queued.
"""

import logging
from typing import Any

import httpx

from app.core.config import settings
from app.models.report import ReportPayload

logger = logging.getLogger(__name__)

REPORTS_PATH = "/api/v1/reports"
HEALTH_PATH = "/health"


class IngestionClient:
    """
    Thin async wrapper around POST /api/v1/reports.

    `transport` is forwarded to httpx.AsyncClient so tests can plug in an
    httpx.MockTransport or an ASGITransport pointing at the app itself.
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = (base_url or settings.ingestion_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.ingestion_timeout_seconds
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout, transport=self._transport)

    async def submit(self, payload: ReportPayload) -> dict[str, Any]:
        """
        Create a report on the server.

        Returns:
            The created record (includes the server-assigned id).

        Raises:
            httpx.HTTPStatusError: server answered with a non-2xx status.
            httpx.TransportError: server unreachable / timed out.
        """
        async with self._client() as client:
            response = await client.post(REPORTS_PATH, json=payload.model_dump(mode="json"))
            response.raise_for_status()
            try:
                body = response.json()
            except ValueError:
                logger.warning("Ingestion endpoint returned a non-JSON body (status %d)", response.status_code)
                return {}
            if not isinstance(body, dict):
                logger.warning("Ingestion endpoint returned a %s body, expected an object", type(body).__name__)
                return {}
            return body

    async def is_reachable(self) -> bool:
        """True when GET /health answers 200."""
        try:
            async with self._client() as client:
                response = await client.get(HEALTH_PATH)
            return response.status_code == 200
        except httpx.HTTPError as exc:
            logger.debug("Health probe failed: %s", exc)
            return False
