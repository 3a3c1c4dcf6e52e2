"""
report_repository.py — MongoDB <-> Report conversion and report-set loading.

The clusterer only ever sees Report objects produced here, each one a
frozen snapshot of a document at read time.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import HTTPException

from app.models.classification import ClassificationResult
from app.models.report import Report, ReportPayload, ReportStatus, classification_update

logger = logging.getLogger(__name__)

REPORTS = "reports"


def doc_to_report(doc: dict) -> Report:
    return Report(
        id=str(doc["_id"]),
        latitude=doc["latitude"],
        longitude=doc["longitude"],
        hazard_type=doc["hazard_type"],
        description=doc.get("description"),
        severity_score=doc.get("severity_score"),
        status=doc.get("status", ReportStatus.PENDING.value),
        created_at=doc.get("created_at", datetime.now(tz=timezone.utc)),
        language=doc.get("language", "en"),
        image_url=doc.get("image_url"),
        video_url=doc.get("video_url"),
        user_id=doc.get("user_id"),
        ai_reasoning=doc.get("ai_reasoning"),
    )


def payload_to_doc(payload: ReportPayload) -> dict[str, Any]:
    return {
        "latitude": payload.latitude,
        "longitude": payload.longitude,
        "hazard_type": payload.hazard_type.value,
        "description": payload.description,
        "image_url": payload.image_url,
        "video_url": payload.video_url,
        "severity_score": payload.severity or 1,
        "language": payload.language,
        "user_id": payload.user_id,
        "status": ReportStatus.PENDING.value,
        "created_at": datetime.now(tz=timezone.utc),
    }


def validate_oid(report_id: str) -> ObjectId:
    try:
        return ObjectId(report_id)
    except InvalidId:
        raise HTTPException(status_code=422, detail="Invalid report ID format")


async def insert_report(db, payload: ReportPayload) -> Report:
    doc = payload_to_doc(payload)
    result = await db[REPORTS].insert_one(doc)
    doc["_id"] = result.inserted_id
    return doc_to_report(doc)


async def load_reports(db, status: Optional[str] = None, limit: int = 0) -> list[Report]:
    """All reports, newest first. Malformed documents are skipped with a warning."""
    query: dict = {}
    if status:
        query["status"] = status
    cursor = db[REPORTS].find(query).sort("created_at", -1)
    if limit:
        cursor = cursor.limit(limit)

    reports = []
    async for doc in cursor:
        try:
            reports.append(doc_to_report(doc))
        except Exception as exc:
            logger.warning("Skipping malformed report doc %s: %s", doc.get("_id"), exc)
    return reports


async def apply_classification_to_doc(db, report_id: str, result: ClassificationResult) -> None:
    """Write the verdict in one $set, so readers see all of it or none of it."""
    await db[REPORTS].update_one(
        {"_id": ObjectId(report_id)},
        {"$set": classification_update(result)},
    )
