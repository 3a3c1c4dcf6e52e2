"""
hotspots.py — Hotspot routes for the map layer.

Routes:
  GET  /api/v1/hotspots           — latest published hotspot list
  POST /api/v1/hotspots/refresh   — recompute now from the full report set
  WS   /api/v1/hotspots/stream    — pushes every new list as it is published

HOW THE DATA FLOWS
──────────────────
1. Every ingested or re-classified report calls publisher.notify_changed().
2. After a quiet window (HOTSPOT_DEBOUNCE_SECONDS) the publisher loads all
   reports, runs cluster_reports() and swaps in the new list.
3. GET returns whatever list is current; the stream forwards each swap.

TESTING
───────
  pytest apps/backend/tests/test_hotspots.py -v
  wscat -c ws://localhost:8000/api/v1/hotspots/stream
"""

import asyncio
import json
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, WebSocketDisconnect

from app.core.database import get_db
from app.models.hotspot import Hotspot, HotspotListResponse
from app.services.hotspot_publisher import HotspotPublisher, get_hotspot_publisher
from app.services.report_repository import load_reports

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/hotspots", tags=["hotspots"])


def _snapshot(publisher: HotspotPublisher, limit: int | None = None) -> HotspotListResponse:
    hotspots = publisher.current_hotspots()
    total = len(hotspots)
    if limit is not None:
        hotspots = hotspots[:limit]
    return HotspotListResponse(hotspots=hotspots, total=total, last_computed=publisher.last_computed)


@router.get("", response_model=HotspotListResponse)
async def get_hotspots(
    limit: int | None = Query(default=None, ge=1, le=500, description="Return only the N most intense"),
    publisher: HotspotPublisher = Depends(get_hotspot_publisher),
):
    return _snapshot(publisher, limit)


@router.post("/refresh", response_model=HotspotListResponse)
async def refresh_hotspots(
    db=Depends(get_db),
    publisher: HotspotPublisher = Depends(get_hotspot_publisher),
):
    """Recompute immediately (bypasses the debounce window)."""
    if db is None:
        raise HTTPException(status_code=503, detail="Database unavailable")
    await publisher.refresh(lambda: load_reports(db))
    return _snapshot(publisher)


def _encode(hotspots: list[Hotspot]) -> str:
    return json.dumps({
        "type": "hotspots",
        "total": len(hotspots),
        "hotspots": [h.model_dump(mode="json") for h in hotspots],
    })


@router.websocket("/stream")
async def hotspot_stream(websocket: WebSocket):
    """
    Send the current list on connect, then one message per recomputation.

    Message format (JSON string):
      {"type": "hotspots", "total": 2, "hotspots": [ {...Hotspot...}, ... ]}
    """
    publisher = get_hotspot_publisher()
    await websocket.accept()

    updates: asyncio.Queue[list[Hotspot]] = asyncio.Queue(maxsize=16)

    def _listener(hotspots: list[Hotspot]) -> None:
        if updates.full():
            updates.get_nowait()  # drop the stale list; only the newest matters
        updates.put_nowait(hotspots)

    publisher.add_listener(_listener)
    try:
        await websocket.send_text(_encode(publisher.current_hotspots()))
        while True:
            hotspots = await updates.get()
            await websocket.send_text(_encode(hotspots))
    except WebSocketDisconnect:
        logger.info("Hotspot WebSocket client disconnected")
    except Exception as exc:
        logger.warning("Hotspot WebSocket error: %s", exc)
    finally:
        publisher.remove_listener(_listener)
