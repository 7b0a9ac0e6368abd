import pytest
from conftest import USERS
from fastapi.testclient import TestClient

from app.main import app
from app.services.pulse_runtime import PulseRuntime, set_runtime
from app.services.user_service import UserService

ADMIN = {"X-User-Id": "admin-1"}
CITIZEN = {"X-User-Id": "citizen-1"}
STRANGER = {"X-User-Id": "walk-in"}


@pytest.fixture()
def runtime(store, sink):
    runtime = PulseRuntime(store=store, users=UserService.from_mapping(USERS), notifier=sink)
    set_runtime(runtime)
    yield runtime
    set_runtime(None)


@pytest.fixture()
def client(runtime):
    with TestClient(app) as client:
        yield client


def test_root_and_health(client):
    assert client.get("/").json()["service"] == "Civic Pulse"
    assert client.get("/health").json()["status"] == "healthy"


def test_ingest_health_reports_live_feed(client):
    body = client.get("/health/ingest").json()

    assert body["status"] == "healthy"
    assert body["subscribed"] is True
    assert body["report_count"] == 5
    assert body["busy_records"] == []


def test_ingest_health_degrades_after_feed_error(client, store):
    store.emit_error(ConnectionError("stream reset"))

    body = client.get("/health/ingest").json()

    assert body["status"] == "degraded"
    assert body["stale"] is True
    assert "stream reset" in body["last_error"]
    assert body["report_count"] == 5


def test_missing_user_header_is_unauthorized(client):
    assert client.get("/dashboard/summary").status_code == 401
    assert client.get("/reports", headers={"X-User-Id": "  "}).status_code == 401


def test_admin_summary_covers_everything(client):
    body = client.get("/dashboard/summary", headers=ADMIN).json()

    assert body["role"] == "admin"
    assert body["total"] == 5
    assert body["counts"] == {"noise": 2, "crowd": 1, "traffic": 1, "pollution": 1}
    assert body["hotspots"][0]["location"] == "Lagos"
    assert body["hotspots"][0]["sample"]["id"] == "r3"
    assert body["trend"]["summary"] == "Likely increase in noise (conf 40%)"
    assert body["status_distribution"] == {"new": 4, "cleaned": 1}


def test_client_summary_is_scoped_to_own_reports(client):
    body = client.get("/dashboard/summary", headers=CITIZEN).json()

    assert body["role"] == "client"
    assert body["total"] == 2
    assert body["counts"]["noise"] == 1
    assert body["counts"]["traffic"] == 1
    assert body["hotspots"] == [{"location": "Lagos", "count": 2}]
    assert "trend" not in body


def test_unset_role_gets_client_view(client):
    body = client.get("/dashboard/summary", headers=STRANGER).json()

    assert body["role"] == "unset"
    assert body["total"] == 0
    assert body["hotspots"] == []


def test_summary_top_n_and_lookback(client):
    body = client.get("/dashboard/summary?top_n=1&lookback=3", headers=ADMIN).json()

    assert body["total"] == 3
    assert len(body["hotspots"]) == 1


def test_trend_is_admin_only(client):
    assert client.get("/dashboard/trend", headers=CITIZEN).status_code == 403
    body = client.get("/dashboard/trend", headers=ADMIN).json()
    assert body["category"] == "noise"
    assert body["confidence"] == 0.4


def test_hotspots_endpoint(client):
    body = client.get("/dashboard/hotspots?top_n=2", headers=ADMIN).json()
    assert [h["location"] for h in body] == ["Lagos", "Unknown"]


def test_mark_status_outcomes(client, store):
    ok = client.patch("/reports/r1/status", json={"status": "cleaned"}, headers=ADMIN)
    assert ok.status_code == 200
    assert ok.json()["status"] == "success"
    assert store.get("r1")["status"] == "cleaned"

    invalid = client.patch("/reports/r1/status", json={"status": "resolved"}, headers=ADMIN)
    assert invalid.status_code == 422
    assert invalid.json()["error_kind"] == "validation_failure"

    unknown_status = client.patch("/reports/r2/status", json={"status": "archived"}, headers=ADMIN)
    assert unknown_status.status_code == 422

    missing = client.patch("/reports/nope/status", json={"status": "cleaned"}, headers=ADMIN)
    assert missing.status_code == 502
    assert missing.json()["error_kind"] == "mutation_failure"


def test_cleanup_location(client, store):
    resp = client.post("/locations/cleanup", json={"location": " Lagos "}, headers=ADMIN)

    assert resp.status_code == 200
    assert sorted(resp.json()["succeeded_ids"]) == ["r1", "r2", "r3"]


def test_partial_cleanup_is_bad_gateway(client, store):
    store.fail_ids.add("r2")

    resp = client.post("/locations/cleanup", json={"location": "Lagos"}, headers=ADMIN)

    assert resp.status_code == 502
    body = resp.json()
    assert body["failed_ids"] == ["r2"]
    assert body["succeeded_ids"] == ["r3", "r1"]


def test_submit_and_list_reports(client):
    created = client.post(
        "/reports",
        json={"category": "pollution", "description": "Smoke from the dump", "location": "Lagos"},
        headers=CITIZEN,
    )
    assert created.status_code == 201
    record_id = created.json()["record_id"]

    mine = client.get("/reports", headers=CITIZEN).json()
    assert mine[0]["id"] == record_id
    assert {r["uid"] for r in mine} == {"citizen-1"}
    assert len(mine) == 3


def test_submit_with_unknown_category_is_rejected(client):
    resp = client.post("/reports", json={"category": "fireworks"}, headers=CITIZEN)
    assert resp.status_code == 422


def test_list_reports_filters(client):
    noise = client.get("/reports?category=noise", headers=ADMIN).json()
    assert {r["id"] for r in noise} == {"r1", "r2"}

    search = client.get("/reports?search=ikeja", headers=ADMIN).json()
    assert [r["id"] for r in search] == ["r4"]


def test_refresh_is_admin_only(client):
    assert client.post("/reports/refresh", headers=CITIZEN).status_code == 403

    resp = client.post("/reports/refresh", headers=ADMIN)
    assert resp.status_code == 200
    assert resp.json()["message"] == "Fetched 5 reports"
