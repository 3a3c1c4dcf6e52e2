"""
offline.py — Models for the field agent's offline submission queue.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from app.models.report import ReportPayload


class QueueEntry(BaseModel):
    """
    A report captured while offline.

    local_id is namespaced ("offline_<ms>_<rand>") so it can never collide
    with a server id. claimed_at marks an entry a coordinator is currently
    submitting; it is cleared on release and ignored once its lease expires.
    """

    model_config = ConfigDict(frozen=True)

    local_id: str
    payload: ReportPayload
    synced: bool = False
    created_at: datetime
    claimed_at: Optional[datetime] = None


class SyncResult(BaseModel):
    synced: int = 0
    failed: int = 0
    skipped: int = 0  # claimed by another coordinator


class SubmissionOutcome(BaseModel):
    """What FieldReporter.submit() did with a report."""

    queued: bool
    local_id: Optional[str] = None
    server_id: Optional[str] = None
