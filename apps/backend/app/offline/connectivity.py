"""
connectivity.py — Online/offline tracking for the field agent.

ConnectivityMonitor polls the server's /health endpoint and turns each
offline → online transition into one SyncCoordinator.on_connectivity_restored()
call. The first successful probe also counts as "restored", so a queue left
over from a previous session is drained on startup.

External signals (an OS network callback, a failed POST) can feed the same
state machine through set_online().
"""

import asyncio
import logging

from app.core.config import settings
from app.offline.ingestion_client import IngestionClient
from app.offline.sync_coordinator import SyncCoordinator

logger = logging.getLogger(__name__)


class ConnectivityMonitor:
    def __init__(
        self,
        client: IngestionClient,
        coordinator: SyncCoordinator,
        interval: float | None = None,
    ) -> None:
        self.client = client
        self.coordinator = coordinator
        self.interval = interval if interval is not None else settings.connectivity_probe_interval_seconds
        self.online: bool | None = None  # None until the first probe

    @property
    def is_online(self) -> bool:
        return bool(self.online)

    def set_online(self, online: bool) -> asyncio.Task | None:
        """Record the connectivity state; returns the sync task when it just came back."""
        was_online = self.online
        self.online = online

        if online and not was_online:
            logger.info("Connectivity restored — syncing offline queue")
            return self.coordinator.on_connectivity_restored()
        if not online and was_online is not False:
            logger.warning("Connectivity lost — new reports will be queued locally")
        return None

    async def check(self) -> bool:
        reachable = await self.client.is_reachable()
        self.set_online(reachable)
        return reachable

    async def run(self) -> None:
        """Probe forever; cancel the task to stop."""
        logger.info("Connectivity monitor probing %s every %.0fs", self.client.base_url, self.interval)
        while True:
            await self.check()
            await asyncio.sleep(self.interval)
