"""
Unit Tests - HTTP API
"""
import pytest
import structlog
from fastapi.testclient import TestClient

from salespulse.exceptions import SyncError
from salespulse.main import app
from salespulse.serving.api.routes.analytics import get_reconciler
from salespulse.sync.reconciler import SyncResult, SyncState


class StubReconciler:
    """Returns fixed records, or fails like an unreachable remote store"""

    def __init__(self, records=None, error: Exception = None):
        self.records = records or []
        self.error = error
        self.calls = []

    async def reconcile(self, owner_id, progress_callback=None):
        self.calls.append(owner_id)
        if self.error:
            raise self.error
        return SyncResult(
            state=SyncState.VALID if self.records else SyncState.FULL_REBUILD,
            records=self.records,
            remote_batch_count=2 if self.records else 0,
        )


@pytest.fixture
def client_for():
    def _client(reconciler: StubReconciler) -> TestClient:
        app.dependency_overrides[get_reconciler] = lambda: reconciler
        return TestClient(app)

    yield _client
    app.dependency_overrides.clear()


REPORT_BODY = {"start_date": "2025-01-08", "end_date": "2025-01-14"}


class TestAnalyticsRoutes:
    """Tests for the analytics endpoints"""

    def test_report(self, client_for, sample_records):
        reconciler = StubReconciler(sample_records)

        response = client_for(reconciler).post("/api/v1/analytics/owner-1/report", json=REPORT_BODY)

        assert response.status_code == 200
        body = response.json()
        assert reconciler.calls == ["owner-1"]
        assert body["sync"]["state"] == "valid"
        assert body["sync"]["records"] == len(sample_records)
        assert body["values"]["current_revenue"] == 400000.0
        assert body["values"]["revenue_comparison"]["percent"] == "100.0"
        assert body["values"]["comparison_window_start"] == "2025-01-01"
        assert body["series"]["daily_revenue"][0] == ["2025-01-08", 80000.0]

    def test_report_with_comparison_window(self, client_for, sample_records):
        body = {
            **REPORT_BODY,
            "comparison_start_date": "2025-01-02",
            "comparison_end_date": "2025-01-02",
        }

        response = client_for(StubReconciler(sample_records)).post(
            "/api/v1/analytics/owner-1/report", json=body
        )

        assert response.status_code == 200
        assert response.json()["values"]["previous_revenue"] == 100000.0

    def test_report_without_data(self, client_for):
        response = client_for(StubReconciler()).post("/api/v1/analytics/owner-1/report", json=REPORT_BODY)

        assert response.status_code == 200
        values = response.json()["values"]
        assert values["current_revenue"] == 0.0
        assert values["revenue_comparison"]["direction"] == "not_applicable"

    def test_sync_error_is_503(self, client_for):
        error = SyncError("Page 3 failed", owner_id="owner-1", fetched=2000, total=5000)

        response = client_for(StubReconciler(error=error)).post(
            "/api/v1/analytics/owner-1/report", json=REPORT_BODY
        )

        assert response.status_code == 503
        assert response.json()["fetched"] == 2000
        assert response.json()["total"] == 5000

    @pytest.mark.parametrize("body", [
        {"start_date": "2025-01-14", "end_date": "2025-01-08"},
        {**REPORT_BODY, "comparison_start_date": "2025-01-01"},
        {"start_date": "not a date", "end_date": "2025-01-08"},
    ])
    def test_invalid_request_is_422(self, client_for, body):
        response = client_for(StubReconciler()).post("/api/v1/analytics/owner-1/report", json=body)
        assert response.status_code == 422

    def test_sync_endpoint(self, client_for, sample_records):
        response = client_for(StubReconciler(sample_records)).post("/api/v1/analytics/owner-1/sync")

        assert response.status_code == 200
        assert response.json()["state"] == "valid"
        assert response.json()["remote_batch_count"] == 2


class TestHealthRoutes:
    """Tests for the health endpoints"""

    def test_liveness(self, client_for):
        response = client_for(StubReconciler()).get("/api/v1/health/live")

        assert response.status_code == 200
        assert response.json() == {"status": "alive"}
        assert "X-Request-ID" in response.headers


class ContextCapturingReconciler(StubReconciler):
    """Records the log context bound while the sync runs"""

    async def reconcile(self, owner_id, progress_callback=None):
        self.context = structlog.contextvars.get_contextvars()
        return await super().reconcile(owner_id, progress_callback)


class TestRequestLogging:
    """Tests for the request logging middleware"""

    def test_request_id_is_echoed(self, client_for):
        response = client_for(StubReconciler()).get("/api/v1/health/live", headers={"X-Request-ID": "req-42"})

        assert response.headers["X-Request-ID"] == "req-42"
        assert response.headers["X-Response-Time"].endswith("ms")

    def test_owner_and_request_bound_during_sync(self, client_for, sample_records):
        reconciler = ContextCapturingReconciler(sample_records)

        client_for(reconciler).post("/api/v1/analytics/owner-7/sync", headers={"X-Request-ID": "req-7"})

        assert reconciler.context["owner_id"] == "owner-7"
        assert reconciler.context["request_id"] == "req-7"
        assert "owner_id" not in structlog.contextvars.get_contextvars()
