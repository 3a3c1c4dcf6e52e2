"""
report.py — Pydantic schemas for ocean-hazard reports.

ReportPayload   — what a field user submits (ingestion body, also queued offline)
Report          — a persisted report as seen by the classifier and the clusterer
ReportListResponse — archive listing

Report is frozen: the classifier never edits a report in place,
it builds a new one with apply_classification(). A clustering pass that is
holding the old object keeps seeing a consistent pre-classification state.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.classification import ClassificationResult


class HazardType(str, Enum):
    HIGH_WAVES = "high-waves"
    TSUNAMI_SIGHTING = "tsunami-sighting"
    COASTAL_FLOODING = "coastal-flooding"
    COASTAL_EROSION = "coastal-erosion"
    UNUSUAL_TIDE = "unusual-tide"
    OTHER = "other"


class ReportStatus(str, Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"


# ── Ingestion payload ─────────────────────────────────────────────────────────

class ReportPayload(BaseModel):
    """Body of POST /api/v1/reports. Location and hazard_type are mandatory."""

    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    hazard_type: HazardType
    description: Optional[str] = Field(default=None, max_length=5000)
    image_url: Optional[str] = None
    video_url: Optional[str] = None
    severity: Optional[int] = Field(default=None, ge=1, le=10)  # submitter's own estimate
    language: str = Field(default="en", min_length=2, max_length=8)
    user_id: Optional[str] = None


# ── Stored report ─────────────────────────────────────────────────────────────

class Report(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    latitude: float
    longitude: float
    hazard_type: HazardType
    description: Optional[str] = None
    severity_score: Optional[int] = Field(default=None, ge=1, le=10)
    status: ReportStatus = ReportStatus.PENDING
    created_at: datetime = Field(default_factory=lambda: datetime.now(tz=timezone.utc))
    language: str = "en"
    image_url: Optional[str] = None
    video_url: Optional[str] = None
    user_id: Optional[str] = None
    ai_reasoning: Optional[str] = None


class ReportListResponse(BaseModel):
    items: list[Report]
    total: int


def apply_classification(report: Report, result: ClassificationResult) -> Report:
    """
    Return a copy of `report` with the classifier's verdict applied.

    Valid hazards take the classifier's severity and become VERIFIED;
    anything else is REJECTED with its severity left untouched.
    """
    if result.is_valid_hazard:
        return report.model_copy(update={
            "severity_score": result.severity_score,
            "ai_reasoning": result.reasoning,
            "status": ReportStatus.VERIFIED,
        })
    return report.model_copy(update={"status": ReportStatus.REJECTED})


def classification_update(result: ClassificationResult) -> dict:
    """The same verdict as apply_classification(), as a single MongoDB $set body."""
    if result.is_valid_hazard:
        return {
            "severity_score": result.severity_score,
            "ai_reasoning": result.reasoning,
            "status": ReportStatus.VERIFIED.value,
        }
    return {"status": ReportStatus.REJECTED.value}
