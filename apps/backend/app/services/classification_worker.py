"""
classification_worker.py — Background classification of freshly ingested reports.

POST /api/v1/reports answers as soon as the report is stored; classification
runs afterwards as an explicit asyncio.Task owned by this worker:

  submit(db, report)
    └─ task: classify(description, language)
             → one $set update on the report document
             → hotspot publisher notified (debounced recompute)

Every task is tracked until it finishes. Failures are logged by the
done-callback instead of vanishing, and drain() lets shutdown (and tests)
wait for in-flight work.
"""

import asyncio
import logging

from app.ai.hazard_classifier import HazardClassifier, hazard_classifier
from app.models.report import Report, apply_classification
from app.services import hotspot_publisher as publisher_module
from app.services.report_repository import apply_classification_to_doc, load_reports

logger = logging.getLogger(__name__)


class ClassificationWorker:
    def __init__(self, classifier: HazardClassifier | None = None) -> None:
        self.classifier = classifier or hazard_classifier
        self._tasks: set[asyncio.Task] = set()
        self.failures = 0

    @property
    def in_flight(self) -> int:
        return sum(1 for t in self._tasks if not t.done())

    def submit(self, db, report: Report) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(
            self._classify_and_store(db, report),
            name=f"classify-report-{report.id}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    async def drain(self) -> None:
        """Wait for every in-flight classification to finish (errors already logged)."""
        pending = [t for t in self._tasks if not t.done()]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    async def _classify_and_store(self, db, report: Report) -> Report:
        result = await self.classifier.classify(report.description, report.language)
        await apply_classification_to_doc(db, report.id, result)
        updated = apply_classification(report, result)
        logger.info(
            "Report %s %s: severity=%s confidence=%.2f",
            report.id, updated.status.value, updated.severity_score, result.confidence,
        )
        publisher_module.get_hotspot_publisher().notify_changed(lambda: load_reports(db))
        return updated

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning("Classification task %s was cancelled", task.get_name())
            return
        exc = task.exception()
        if exc is not None:
            self.failures += 1
            logger.error("Classification task %s failed: %s", task.get_name(), exc, exc_info=exc)


classification_worker = ClassificationWorker()


def get_classification_worker() -> ClassificationWorker:
    """FastAPI dependency — resolved at call time so tests can substitute a worker."""
    return classification_worker
