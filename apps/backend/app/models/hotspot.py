"""
hotspot.py — Pydantic models for the hotspot API.

A Hotspot is derived data: it is rebuilt from the full report set on every
recomputation and replaced wholesale, never patched.

  • latitude / longitude  flat mean of member coordinates
  • intensity             0–10, see hotspot_engine.compute_intensity()
  • radius                rendering hint in degrees, 0.01–0.1
  • level                 LOW | MODERATE | HIGH | CRITICAL (map colour band)
"""

from datetime import datetime

from pydantic import BaseModel, Field


class Hotspot(BaseModel):
    """A geographic cluster of at least three hazard reports."""

    id: str
    latitude: float
    longitude: float
    intensity: int = Field(ge=0, le=10)
    radius: float
    report_count: int = Field(ge=3)
    avg_severity: float
    hazard_types: list[str]
    level: str
    last_updated: datetime


class HotspotListResponse(BaseModel):
    """Response body for GET /api/v1/hotspots."""

    hotspots: list[Hotspot]
    total: int
    last_computed: datetime | None = None
