"""
Unit Tests - Rollup API
"""
import asyncio

import pytest
from fastapi.testclient import TestClient

from rollup_engine.raw import RawSource
from rollup_engine.serving.api import create_app


@pytest.fixture
def client(engine):
    """API client over the sample engine"""
    with TestClient(create_app(engine=engine)) as test_client:
        yield test_client


class TestRollupEndpoints:
    """Tests for rollup listing and refresh"""

    def test_list_rollups_before_refresh(self, client):
        response = client.get("/api/v1/rollups")

        assert response.status_code == 200
        data = response.json()
        assert [r["rollup"] for r in data] == [
            "daily_sales",
            "top_products",
            "user_engagement",
            "category_revenue",
        ]
        assert all(r["initialized"] is False for r in data)

    def test_uninitialized_rollup_reads_empty(self, client):
        response = client.get("/api/v1/rollups/daily_sales")

        assert response.status_code == 200
        data = response.json()
        assert data["initialized"] is False
        assert data["rows"] == []
        assert data["computed_at"] is None

    def test_unknown_rollup(self, client):
        response = client.get("/api/v1/rollups/weekly_sales")

        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "UNKNOWN_ROLLUP"

    def test_refresh_then_read(self, client):
        response = client.post("/api/v1/rollups/daily_sales/refresh")

        assert response.status_code == 200
        result = response.json()
        assert result["status"] == "success"
        assert result["row_count"] == 2
        assert result["error"] is None

        data = client.get("/api/v1/rollups/daily_sales").json()
        assert data["initialized"] is True
        assert data["total"] == 2
        assert data["rows"][0]["sale_date"] == "2024-01-02"
        assert data["rows"][0]["total_revenue"] == 400.0

    def test_paging_parameters(self, client):
        client.post("/api/v1/rollups/top_products/refresh")

        data = client.get("/api/v1/rollups/top_products?limit=2&offset=1").json()

        assert [r["product_id"] for r in data["rows"]] == [2, 3]
        assert data["limit"] == 2
        assert data["offset"] == 1

    def test_negative_limit_rejected(self, client):
        response = client.get("/api/v1/rollups/top_products?limit=-1")

        assert response.status_code == 422

    def test_summary(self, client):
        client.post("/api/v1/rollups/user_engagement/refresh")

        data = client.get("/api/v1/rollups/user_engagement/summary").json()

        assert data["initialized"] is True
        assert data["row_count"] == 3
        assert data["staleness_seconds"] == 0.0

    def test_refresh_all(self, client):
        response = client.post("/api/v1/rollups/refresh")

        assert response.status_code == 200
        data = response.json()
        assert data["succeeded"] == 4
        assert data["failed"] == 0

    def test_refresh_all_reports_each_failure(self, client, raw_store):
        raw_store.fail_sources = {RawSource.USERS}

        data = client.post("/api/v1/rollups/refresh").json()

        assert data["succeeded"] == 3
        assert data["failed"] == 1
        failed = [r for r in data["results"] if r["status"] == "failed"]
        assert failed[0]["rollup"] == "user_engagement"

    def test_refresh_failure(self, client, raw_store):
        raw_store.fail_sources = {RawSource.ORDERS}

        response = client.post("/api/v1/rollups/daily_sales/refresh")

        assert response.status_code == 500
        assert response.json()["error"]["code"] == "RAW_ACCESS_ERROR"

    def test_refresh_rejected_while_running(self, client, engine):
        assert engine.coordinator._acquire("daily_sales")
        try:
            response = client.post("/api/v1/rollups/daily_sales/refresh")
        finally:
            engine.coordinator._release("daily_sales")

        assert response.status_code == 409
        assert response.json()["status"] == "in_progress"

    def test_refresh_timeout(self, client, raw_store):
        raw_store.gate = asyncio.Event()

        response = client.post("/api/v1/rollups/daily_sales/refresh?timeout=0.01")

        assert response.status_code == 504
        assert response.json()["error"]["code"] == "REFRESH_CANCELLED"

    def test_refresh_unknown_rollup(self, client):
        response = client.post("/api/v1/rollups/weekly_sales/refresh")

        assert response.status_code == 404


class TestDashboardEndpoint:
    """Tests for the dashboard"""

    def test_dashboard(self, client):
        client.post("/api/v1/rollups/refresh")

        data = client.get("/api/v1/dashboard?days=1&top=2").json()

        assert data["total_revenue"] == 400.0
        assert data["total_orders"] == 1
        assert [p["product_name"] for p in data["top_products"]] == ["Widget", "Gadget"]
        assert [c["category"] for c in data["categories"]] == ["Electronics", "Books", "Toys"]
        assert data["row_counts"]["user_engagement"] == 3

    def test_dashboard_before_refresh(self, client):
        data = client.get("/api/v1/dashboard").json()

        assert data["total_revenue"] == 0.0
        assert data["daily_sales"] == []


class TestHealthEndpoints:
    """Tests for health checks"""

    def test_liveness(self, client):
        response = client.get("/api/v1/health/live")

        assert response.status_code == 200
        assert response.json() == {"status": "alive"}

    def test_readiness_with_memory_store(self, client):
        response = client.get("/api/v1/health/ready")

        assert response.status_code == 200
        assert response.json()["status"] == "ready"

    def test_health_degraded_until_refreshed(self, client):
        before = client.get("/api/v1/health").json()
        client.post("/api/v1/rollups/refresh")
        after = client.get("/api/v1/health").json()

        assert before["status"] == "degraded"
        assert before["checks"]["rollups"]["initialized"] == 0
        assert after["status"] == "healthy"
        assert "database" not in after["checks"]

    def test_metrics(self, client):
        client.post("/api/v1/rollups/daily_sales/refresh")

        response = client.get("/api/v1/metrics")

        assert response.status_code == 200
        assert "ecommerce_rollup_refreshes_total" in response.text

    def test_request_id_header(self, client):
        response = client.get("/api/v1/health/live", headers={"X-Request-ID": "abc-123"})

        assert response.headers["X-Request-ID"] == "abc-123"
        assert "X-Response-Time" in response.headers
