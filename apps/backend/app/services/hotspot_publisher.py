"""
hotspot_publisher.py — Holds the latest hotspot list and tells listeners when it changes.

Recomputation is pull-based and debounced:

    notify_changed(source)   called on every change to the report set
        │  (each call pushes the deadline back by debounce_seconds)
        ▼
    quiet window elapses → reports = await source() → cluster_reports()
        ▼
    list replaced wholesale → every listener called with the new list

A change that arrives while a recompute is running schedules exactly one
more pass, so the published list never lags behind the last change.

The background refresh is an explicit asyncio.Task; its failure is logged
by a done-callback and can be awaited with flush().
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Awaitable, Callable, Sequence

from app.core.config import settings
from app.models.hotspot import Hotspot
from app.models.report import Report
from app.services.hotspot_engine import cluster_reports

logger = logging.getLogger(__name__)

ReportSource = Callable[[], Awaitable[Sequence[Report]]]
HotspotListener = Callable[[list[Hotspot]], None]


class HotspotPublisher:
    def __init__(
        self,
        debounce_seconds: float | None = None,
        radius_km: float | None = None,
    ) -> None:
        self.debounce_seconds = (
            debounce_seconds if debounce_seconds is not None else settings.hotspot_debounce_seconds
        )
        self.radius_km = radius_km if radius_km is not None else settings.hotspot_radius_km
        self._hotspots: list[Hotspot] = []
        self._last_computed: datetime | None = None
        self._listeners: list[HotspotListener] = []
        self._source: ReportSource | None = None
        self._last_change = 0.0
        self._pending: asyncio.Task | None = None

    # ── Consumer interface ────────────────────────────────────────────────────

    def current_hotspots(self) -> list[Hotspot]:
        return list(self._hotspots)

    @property
    def last_computed(self) -> datetime | None:
        return self._last_computed

    def add_listener(self, listener: HotspotListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: HotspotListener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    # ── Producer interface ────────────────────────────────────────────────────

    def notify_changed(self, source: ReportSource) -> None:
        """Schedule a debounced recompute from `source` (the latest source wins)."""
        loop = asyncio.get_running_loop()
        self._source = source
        self._last_change = loop.time()
        pending = self._pending
        if pending is None or pending.done() or pending.get_loop() is not loop:
            self._pending = loop.create_task(self._debounced_refresh())
            self._pending.add_done_callback(self._on_refresh_done)

    async def refresh(self, source: ReportSource) -> list[Hotspot]:
        """Recompute immediately, bypassing the debounce window."""
        reports = await source()
        return self._publish(reports)

    async def flush(self) -> None:
        """Wait for any scheduled recompute to finish."""
        if self._pending is not None and not self._pending.done():
            await asyncio.shield(self._pending)

    async def close(self) -> None:
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
            try:
                await self._pending
            except asyncio.CancelledError:
                pass

    # ── Internals ─────────────────────────────────────────────────────────────

    async def _debounced_refresh(self) -> None:
        loop = asyncio.get_running_loop()
        while True:
            while (remaining := self._last_change + self.debounce_seconds - loop.time()) > 0:
                await asyncio.sleep(remaining)

            started_from = self._last_change
            source = self._source
            reports = await source()
            self._publish(reports)

            if self._last_change == started_from:
                return

    def _publish(self, reports: Sequence[Report]) -> list[Hotspot]:
        # No await in here: the swap and the listener fan-out happen as one step.
        hotspots = cluster_reports(reports, radius_km=self.radius_km)
        self._hotspots = hotspots
        self._last_computed = datetime.now(tz=timezone.utc)
        logger.info("Hotspots recomputed: %d hotspot(s) from %d report(s)", len(hotspots), len(reports))
        for listener in list(self._listeners):
            try:
                listener(list(hotspots))
            except Exception:
                logger.exception("Hotspot listener %r failed", listener)
        return hotspots

    @staticmethod
    def _on_refresh_done(task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Debounced hotspot refresh failed: %s", exc, exc_info=exc)


# Module-level singleton: routes and the WebSocket stream share one publisher
hotspot_publisher = HotspotPublisher()


def get_hotspot_publisher() -> HotspotPublisher:
    """
    FastAPI dependency — resolve the publisher at call time.

    Looked up through the module attribute so tests can swap in a fresh
    instance (with a short debounce window) per test.
    """
    return hotspot_publisher
