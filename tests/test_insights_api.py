"""
Insights API Tests

Tests for api/insights_router.py endpoints through the FastAPI TestClient.
The record store dependency is overridden with a tmp_path store seeded
from the team_month fixture, so no live database is touched.
"""

import sqlite3

import pytest
from fastapi.testclient import TestClient

from api.insights_router import get_store
from api.server import app
from insight_engine import config
from insight_engine.models import NarrativeConfig
from insight_engine.schema import SCHEMA_VERSION
from tests.fixtures import seed_store, team_month

BASE = config.API_PREFIX


@pytest.fixture
def seeded_store(store):
    return seed_store(store, team_month())


@pytest.fixture
def client(seeded_store):
    app.dependency_overrides[get_store] = lambda: seeded_store
    yield TestClient(app)
    app.dependency_overrides.clear()


def _ok(response):
    assert response.status_code == 200, response.text
    body = response.json()
    assert body["status"] == "ok"
    assert "computed_at" in body
    assert "params" in body
    return body


class TestHealth:
    def test_health(self, client):
        response = client.get(f"{BASE}/health")
        assert response.status_code == 200

        body = response.json()
        assert body["status"] == "healthy"
        assert body["schema_version"] == SCHEMA_VERSION
        assert body["periods"] == 2

    def test_request_id_is_echoed(self, client):
        response = client.get(f"{BASE}/health", headers={"X-Request-ID": "req-test-123"})
        assert response.headers["x-request-id"] == "req-test-123"

    def test_request_id_is_generated(self, client):
        response = client.get(f"{BASE}/health")
        assert response.headers["x-request-id"].startswith("req-")


class TestMetricsEndpoints:
    def test_single_period(self, client):
        body = _ok(client.get(f"{BASE}/metrics", params={"period": "2026-02"}))

        assert body["data"]["total_hours_logged"] == 90
        assert body["data"]["active_engineers"] == 3
        assert body["params"] == {"period": ["2026-02"], "project": None}

    def test_multi_period(self, client):
        body = _ok(client.get(f"{BASE}/metrics", params=[("period", "2026-01"), ("period", "2026-02")]))
        assert body["data"]["total_hours_logged"] == 110

    def test_project_filter(self, client):
        body = _ok(client.get(f"{BASE}/metrics", params={"period": "2026-02", "project": "R1337"}))
        assert body["data"]["npd_hours"] == 50
        assert body["params"]["project"] == "R1337"

    @pytest.mark.parametrize("period", ["2026-13", "2026/02", "Feb"])
    def test_malformed_period_is_rejected(self, client, period):
        response = client.get(f"{BASE}/metrics", params={"period": period})
        assert response.status_code == 422

    def test_period_is_required(self, client):
        assert client.get(f"{BASE}/metrics").status_code == 422

    def test_kpi_cards(self, client):
        body = _ok(client.get(f"{BASE}/metrics/kpis", params={"period": "2026-02"}))

        cards = {c["key"]: c for c in body["data"]}
        assert cards["bus_factor_risk"]["status"] == "critical"
        assert cards["team_utilization"]["display"] == "24"

    def test_kpi_cards_for_project(self, client):
        body = _ok(client.get(f"{BASE}/metrics/kpis", params={"period": "2026-02", "project": "R1337"}))

        assert len(body["data"]) == 6
        assert "npd_focus" not in {c["key"] for c in body["data"]}

    def test_kpi_registry(self, client):
        body = _ok(client.get(f"{BASE}/kpi-registry"))

        assert len(body["data"]) == 17
        npd = next(k for k in body["data"] if k["key"] == "npd_focus")
        assert npd["higher_is_better"] is True
        assert npd["applicable_to_single_project"] is False

    def test_batch_defaults_to_all_periods(self, client):
        body = _ok(client.get(f"{BASE}/metrics/batch"))

        assert list(body["data"]) == ["2026-01", "2026-02"]
        assert body["data"]["2026-01"]["total_hours_logged"] == 20

    def test_history_refresh_then_read(self, client):
        body = _ok(client.post(f"{BASE}/metrics/history/refresh"))
        assert body["data"]["inserted"] == 2

        history = _ok(client.get(f"{BASE}/metrics/history"))["data"]
        assert [s["month"] for s in history] == ["2026-01", "2026-02"]
        assert history[1]["results"]["total_hours_logged"] == 90


class TestAnomalyEndpoints:
    def test_live_findings(self, client):
        body = _ok(client.get(f"{BASE}/anomalies", params={"period": "2026-02"}))

        findings = body["data"]
        assert findings[0]["anomaly_id"] == "bus-factor::Alice"
        assert findings[0]["severity"] == "alert"
        assert findings[0]["threshold_comparison"] == "bus factor (1) <= threshold (1) with 46h > 20h min"
        assert len(findings) == 6

    def test_malformed_period_is_rejected(self, client):
        response = client.get(f"{BASE}/anomalies", params={"period": "2026-2"})
        assert response.status_code == 422

    def test_status_without_snapshot_is_all_new(self, client):
        body = _ok(client.get(f"{BASE}/anomalies/status", params={"period": "2026-02"}))
        assert {a["status"] for a in body["data"]} == {"new"}

    def test_refresh_all_then_status(self, client):
        body = _ok(client.post(f"{BASE}/anomalies/refresh"))
        assert body["data"]["periods"] == ["2026-01", "2026-02"]
        assert body["data"]["inserted"] == 2

        status = _ok(client.get(f"{BASE}/anomalies/status", params={"period": "2026-02"}))["data"]
        by_id = {a["anomaly_id"]: a for a in status}
        assert by_id["bus-factor::Alice"]["status"] == "recurring"
        assert by_id["bus-factor::Alice"]["recurring_months"] == 1

    def test_refresh_one_period(self, client):
        body = _ok(client.post(f"{BASE}/anomalies/refresh", params={"period": "2026-02"}))
        assert body["data"] == {"period": "2026-02", "outcome": "inserted"}

    def test_status_requires_valid_period(self, client):
        response = client.get(f"{BASE}/anomalies/status", params={"period": "2026-00"})
        assert response.status_code == 422

    def test_rules(self, client):
        body = _ok(client.get(f"{BASE}/anomaly-rules"))

        assert len(body["data"]) == 8
        assert body["data"][0]["rule_id"] == "overtime"
        assert body["data"][0]["parameters"][0]["value"] == 3


class TestNarrativeEndpoint:
    def test_team_narrative(self, client):
        body = _ok(client.get(f"{BASE}/narrative", params={"period": "2026-02"}))

        assert body["data"]["paragraph"].startswith("In February 2026, the team of 3 engineers")
        assert "Bus factor risk: 3 projects" in body["data"]["highlights"]

    def test_project_narrative(self, client):
        body = _ok(client.get(f"{BASE}/narrative", params={"period": "2026-02", "project": "R1337"}))
        assert body["data"]["paragraph"].startswith("Widget Gen2 (R1337) logged 50 hours")

    def test_no_data_period(self, client):
        body = _ok(client.get(f"{BASE}/narrative", params={"period": "2025-06"}))
        assert body["data"] == {
            "paragraph": "No timesheet data available for this month.",
            "highlights": [],
        }

    def test_malformed_period_is_rejected(self, client):
        assert client.get(f"{BASE}/narrative", params={"period": "2026-13"}).status_code == 422

    def test_observations_listing(self, client, seeded_store):
        seeded_store.save_narrative_config(NarrativeConfig(include_specific_numbers=False))
        body = _ok(client.get(f"{BASE}/narrative/observations"))

        assert len(body["data"]) == 8
        fire = next(o for o in body["data"] if o["key"] == "firefightingLoad")
        assert fire["team_phrasing"] == "unplanned firefighting exceeded the target level"


class TestStorageErrors:
    def test_database_error_returns_500(self, client, seeded_store, monkeypatch):
        def broken():
            raise sqlite3.OperationalError("database is locked")

        monkeypatch.setattr(seeded_store, "load_dataset", broken)

        response = client.get(f"{BASE}/metrics", params={"period": "2026-02"})
        assert response.status_code == 500
        assert "database is locked" in response.json()["detail"]
