"""
test_reports.py — Tests for /api/v1/reports ingestion and archive routes.

Classification runs in the background worker; tests drain it explicitly
before checking the stored verdict.
"""

import pytest
from bson import ObjectId

REPORTS = "reports"

SAMPLE_REPORT = {
    "latitude": 13.0500,
    "longitude": 80.2824,
    "hazard_type": "high-waves",
    "description": "Huge waves crashing over the promenade, people running inland",
    "language": "en",
}


class TestReportsCreate:

    async def test_create_report_returns_201(self, db_client_app):
        r = await db_client_app.post("/api/v1/reports", json=SAMPLE_REPORT)
        assert r.status_code == 201

    async def test_created_report_is_pending(self, db_client_app):
        data = (await db_client_app.post("/api/v1/reports", json=SAMPLE_REPORT)).json()
        assert len(data["id"]) == 24  # ObjectId hex string
        assert data["status"] == "pending"
        assert data["severity_score"] == 1
        assert "created_at" in data

    async def test_submitter_severity_is_initial_score(self, db_client_app):
        data = (await db_client_app.post("/api/v1/reports", json={**SAMPLE_REPORT, "severity": 7})).json()
        assert data["severity_score"] == 7

    async def test_latitude_zero_is_accepted(self, db_client_app):
        r = await db_client_app.post("/api/v1/reports", json={**SAMPLE_REPORT, "latitude": 0.0})
        assert r.status_code == 201

    @pytest.mark.parametrize("missing", ["latitude", "longitude", "hazard_type"])
    async def test_missing_required_field_is_422(self, db_client_app, missing):
        body = {k: v for k, v in SAMPLE_REPORT.items() if k != missing}
        r = await db_client_app.post("/api/v1/reports", json=body)
        assert r.status_code == 422

    async def test_unknown_hazard_type_is_422(self, db_client_app):
        r = await db_client_app.post("/api/v1/reports", json={**SAMPLE_REPORT, "hazard_type": "volcano"})
        assert r.status_code == 422

    async def test_out_of_range_latitude_is_422(self, db_client_app):
        r = await db_client_app.post("/api/v1/reports", json={**SAMPLE_REPORT, "latitude": 91})
        assert r.status_code == 422

    async def test_no_database_is_503(self, client):
        r = await client.post("/api/v1/reports", json=SAMPLE_REPORT)
        assert r.status_code == 503


class TestBackgroundClassification:

    async def test_report_is_classified_after_ingestion(self, db_client_app, fake_db, worker):
        data = (await db_client_app.post("/api/v1/reports", json=SAMPLE_REPORT)).json()
        await worker.drain()

        doc = await fake_db[REPORTS].find_one({"_id": ObjectId(data["id"])})
        # Mock provider: valid hazard, severity 6
        assert doc["status"] == "verified"
        assert doc["severity_score"] == 6
        assert doc["ai_reasoning"].startswith("[MOCK]")

    async def test_verdict_written_in_single_update(self, db_client_app, fake_db, worker):
        await db_client_app.post("/api/v1/reports", json=SAMPLE_REPORT)
        await worker.drain()

        [(_query, update)] = fake_db[REPORTS].update_calls
        assert set(update) == {"$set"}
        assert {"status", "severity_score", "ai_reasoning"} <= set(update["$set"])

    async def test_short_description_is_rejected(self, db_client_app, fake_db, worker):
        data = (await db_client_app.post("/api/v1/reports", json={**SAMPLE_REPORT, "description": "waves"})).json()
        await worker.drain()

        doc = await fake_db[REPORTS].find_one({"_id": ObjectId(data["id"])})
        assert doc["status"] == "rejected"
        assert doc["severity_score"] == 1

    async def test_worker_failure_is_counted_not_raised(self, db_client_app, worker, monkeypatch):
        async def broken(description, language="en"):
            raise RuntimeError("classifier crashed")

        monkeypatch.setattr(worker.classifier, "classify", broken)
        r = await db_client_app.post("/api/v1/reports", json=SAMPLE_REPORT)
        await worker.drain()

        assert r.status_code == 201
        assert worker.failures == 1

    async def test_ingestion_refreshes_hotspots(self, db_client_app, worker, publisher):
        for i in range(3):
            await db_client_app.post(
                "/api/v1/reports",
                json={**SAMPLE_REPORT, "latitude": 13.05 + 0.001 * i},
            )
        await worker.drain()
        await publisher.flush()

        r = await db_client_app.get("/api/v1/hotspots")
        data = r.json()
        assert data["total"] == 1
        assert data["hotspots"][0]["report_count"] == 3
        assert data["hotspots"][0]["avg_severity"] == 6.0


class TestApplyClassification:

    async def test_worker_returns_updated_copy(self, fake_db, worker):
        from app.models.report import ReportPayload
        from app.services.report_repository import insert_report

        report = await insert_report(fake_db, ReportPayload(**SAMPLE_REPORT))
        updated = await worker.submit(fake_db, report)

        assert updated.id == report.id
        assert updated.status.value == "verified"
        assert report.status.value == "pending"  # original snapshot untouched

    def test_invalid_verdict_only_changes_status(self):
        from app.models.classification import ClassificationResult
        from app.models.report import Report, ReportStatus, apply_classification, classification_update

        report = Report(id="r1", latitude=1.0, longitude=2.0, hazard_type="other", severity_score=4)
        verdict = ClassificationResult(is_valid_hazard=False, severity_score=9, reasoning="spam", confidence=0.9)

        updated = apply_classification(report, verdict)
        assert updated.status is ReportStatus.REJECTED
        assert updated.severity_score == 4
        assert updated.ai_reasoning is None
        assert classification_update(verdict) == {"status": "rejected"}


class TestReportsGet:

    async def test_get_report_by_id(self, db_client_app):
        saved = (await db_client_app.post("/api/v1/reports", json=SAMPLE_REPORT)).json()
        r = await db_client_app.get(f"/api/v1/reports/{saved['id']}")
        assert r.status_code == 200
        assert r.json()["hazard_type"] == "high-waves"

    async def test_get_unknown_report_is_404(self, db_client_app):
        r = await db_client_app.get(f"/api/v1/reports/{ObjectId()}")
        assert r.status_code == 404

    async def test_get_invalid_id_is_422(self, db_client_app):
        r = await db_client_app.get("/api/v1/reports/not-an-id")
        assert r.status_code == 422


class TestReportsList:

    async def test_list_returns_all(self, db_client_app):
        for _ in range(3):
            await db_client_app.post("/api/v1/reports", json=SAMPLE_REPORT)
        data = (await db_client_app.get("/api/v1/reports")).json()
        assert data["total"] == 3
        assert len(data["items"]) == 3

    async def test_list_filters_by_status(self, db_client_app, worker):
        await db_client_app.post("/api/v1/reports", json=SAMPLE_REPORT)
        await db_client_app.post("/api/v1/reports", json={**SAMPLE_REPORT, "description": "hmm"})
        await worker.drain()

        verified = (await db_client_app.get("/api/v1/reports", params={"status": "verified"})).json()
        rejected = (await db_client_app.get("/api/v1/reports", params={"status": "rejected"})).json()
        assert verified["total"] == 1
        assert rejected["total"] == 1

    async def test_list_respects_limit(self, db_client_app):
        for _ in range(4):
            await db_client_app.post("/api/v1/reports", json=SAMPLE_REPORT)
        data = (await db_client_app.get("/api/v1/reports", params={"limit": 2})).json()
        assert data["total"] == 4
        assert len(data["items"]) == 2

    async def test_list_without_database_is_empty(self, client):
        data = (await client.get("/api/v1/reports")).json()
        assert data == {"items": [], "total": 0}
