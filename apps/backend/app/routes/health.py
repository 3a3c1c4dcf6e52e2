"""
Health check endpoint.

Used by:
  - Docker HEALTHCHECK instruction
  - The field agent's ConnectivityMonitor, which treats any 200 as "online"
  - Monitoring tools

The API answers 200 even when MongoDB is unreachable; `database` tells the
two cases apart. `hotspots` and `classifications_in_flight` give a quick
view of the background pipeline.
"""

import logging

from fastapi import APIRouter
from pydantic import BaseModel

from app.core import database as db_module
from app.core.config import settings
from app.services.classification_worker import get_classification_worker
from app.services.hotspot_publisher import get_hotspot_publisher

logger = logging.getLogger(__name__)
router = APIRouter()


class HealthResponse(BaseModel):
    status: str
    version: str
    database: str  # "connected" | "disconnected"
    environment: str
    hotspots: int
    classifications_in_flight: int


async def _database_status() -> str:
    # Module reference so tests can patch db_module.db_client
    client = db_module.db_client.client
    if client is None:
        return "disconnected"
    try:
        await client.admin.command("ping")
    except Exception as exc:
        logger.warning("DB ping failed: %s", exc)
        return "disconnected"
    return "connected"


@router.get("", response_model=HealthResponse, summary="API health check")
async def health_check() -> HealthResponse:
    return HealthResponse(
        status="ok",
        version="0.1.0",
        database=await _database_status(),
        environment=settings.environment,
        hotspots=len(get_hotspot_publisher().current_hotspots()),
        classifications_in_flight=get_classification_worker().in_flight,
    )
