"""
reports.py — Hazard report ingestion and archive routes.

Routes:
  POST /api/v1/reports           — ingest a report (201, classification runs in background)
  GET  /api/v1/reports           — list reports, newest first (optional status filter)
  GET  /api/v1/reports/{id}      — get a single report

The POST handler stores the report with status "pending" and returns
immediately. The ClassificationWorker then fills in severity/status and
nudges the hotspot publisher.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from app.core.database import get_db
from app.models.report import Report, ReportListResponse, ReportPayload, ReportStatus
from app.services.classification_worker import ClassificationWorker, get_classification_worker
from app.services.hotspot_publisher import HotspotPublisher, get_hotspot_publisher
from app.services.report_repository import (
    REPORTS,
    doc_to_report,
    insert_report,
    load_reports,
    validate_oid,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/reports", tags=["reports"])


@router.post("", response_model=Report, status_code=201)
async def create_report(
    payload: ReportPayload,
    db=Depends(get_db),
    worker: ClassificationWorker = Depends(get_classification_worker),
    publisher: HotspotPublisher = Depends(get_hotspot_publisher),
):
    """Store a new hazard report and schedule its classification."""
    if db is None:
        raise HTTPException(status_code=503, detail="Database unavailable")

    try:
        report = await insert_report(db, payload)
    except Exception as exc:
        logger.error("POST /api/v1/reports insert failed: %s", exc)
        raise HTTPException(status_code=500, detail=f"Failed to create report: {exc}")

    logger.info("Report %s ingested (%s at %.4f, %.4f)",
                report.id, report.hazard_type.value, report.latitude, report.longitude)

    worker.submit(db, report)
    publisher.notify_changed(lambda: load_reports(db))
    return report


@router.get("", response_model=ReportListResponse)
async def list_reports(
    status: Optional[ReportStatus] = Query(default=None),
    limit: int = Query(default=100, ge=1, le=1000),
    db=Depends(get_db),
):
    """Return reports, newest first."""
    if db is None:
        return ReportListResponse(items=[], total=0)

    query = {"status": status.value} if status else {}
    total = await db[REPORTS].count_documents(query)
    items = await load_reports(db, status=status.value if status else None, limit=limit)
    return ReportListResponse(items=items, total=total)


@router.get("/{report_id}", response_model=Report)
async def get_report(report_id: str, db=Depends(get_db)):
    """Retrieve a single report by ID."""
    if db is None:
        raise HTTPException(status_code=503, detail="Database unavailable")

    oid = validate_oid(report_id)
    doc = await db[REPORTS].find_one({"_id": oid})
    if not doc:
        raise HTTPException(status_code=404, detail="Report not found")

    return doc_to_report(doc)
