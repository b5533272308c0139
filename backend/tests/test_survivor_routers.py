"""
backend/tests/test_survivor_routers.py

Purpose:
    Router tests for the public survivor endpoints and the X-Admin-Key
    guarded operator endpoints.
"""

from __future__ import annotations

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.config import settings
from app.routers.admin_survivor import router as admin_survivor_router
from app.routers.admin_survivor import verify_admin_key
from app.routers.survivor import router as survivor_router
from app.services.survivor_errors import SnapshotStageError
from app.services.survivor_pool_cache import SurvivorPoolCache
from conftest import final, member, seed_picks, seed_pool, seed_status, seed_week


def _seed(db) -> None:
    seed_pool(db, "pool-1", {
        "sig": member("Signal"),
        "p_lost": member("Lou"),
        "p_new": member("Nina", status="inactive"),
    })
    seed_week(db, 1, {"g1": final("Chiefs", "Ravens", "Chiefs"), "g2": final("Bills", "Jets", "Bills")})
    seed_week(db, 2, {"g1": final("Lions", "Bears", "Lions")})
    seed_picks(db, "sig", {1: "Chiefs", 2: "Lions"})
    seed_status(db, "sig", eliminated=True, eliminated_week=2)
    seed_picks(db, "p_lost", {1: "Jets"})
    seed_picks(db, "p_new", {1: "Bills"})


def _build_test_client(cache: SurvivorPoolCache | None = None, admin_ok: bool = True) -> TestClient:
    app = FastAPI()
    app.include_router(survivor_router)
    app.include_router(admin_survivor_router)
    app.state.survivor_cache = cache or SurvivorPoolCache(request_budget_seconds=5.0)

    if admin_ok:
        async def _fake_admin():
            return "admin-api"
        app.dependency_overrides[verify_admin_key] = _fake_admin

    return TestClient(app)


@pytest.fixture(autouse=True)
def _no_audit_delays(monkeypatch):
    monkeypatch.setattr(settings, "AUDIT_SCAN_DELAY_SECONDS", 0, raising=False)
    monkeypatch.setattr(settings, "AUDIT_WRITE_DELAY_SECONDS", 0, raising=False)


def test_snapshot_endpoint_builds_then_serves_cache(fake_db):
    _seed(fake_db)
    client = _build_test_client()

    first = client.get("/api/survivor/pool-1/snapshot")
    second = client.get("/api/survivor/pool-1/snapshot")

    assert first.status_code == 200
    body = first.json()
    assert body["cached"] is False
    assert body["stale"] is False
    assert body["data"]["summary"]["alive"] == 2
    assert body["data"]["summary"]["eliminated"] == 1
    assert body["data"]["eliminated"][0]["participant_id"] == "p_lost"
    assert "next_refresh" in body
    assert second.json()["cached"] is True

    forced = client.get("/api/survivor/pool-1/snapshot", params={"max_age_seconds": 0})
    assert forced.json()["cached"] is False


def test_snapshot_endpoint_unknown_pool_is_404(fake_db):
    client = _build_test_client()
    response = client.get("/api/survivor/nope/snapshot")
    assert response.status_code == 404


def test_snapshot_endpoint_stage_failure_is_503(fake_db):
    async def _failing(pool_id: str):
        raise SnapshotStageError("results", "results store unavailable")

    client = _build_test_client(SurvivorPoolCache(_failing, request_budget_seconds=1.0))
    response = client.get("/api/survivor/pool-1/snapshot")

    assert response.status_code == 503
    assert response.json()["detail"]["stage"] == "results"


def test_participant_endpoint(fake_db):
    _seed(fake_db)
    client = _build_test_client()

    response = client.get("/api/survivor/pool-1/participants/p_lost")
    assert response.status_code == 200
    assert response.json()["status"] == "ELIMINATED"
    assert response.json()["eliminated_week"] == 1

    assert client.get("/api/survivor/pool-1/participants/ghost").status_code == 404


def test_admin_key_guard(fake_db, monkeypatch):
    _seed(fake_db)
    client = _build_test_client(admin_ok=False)

    monkeypatch.setattr(settings, "ADMIN_API_KEY", "", raising=False)
    assert client.post("/api/admin/survivor/pool-1/cache/invalidate", headers={"X-Admin-Key": "x"}).status_code == 503

    monkeypatch.setattr(settings, "ADMIN_API_KEY", "s3cret", raising=False)
    assert client.post("/api/admin/survivor/pool-1/cache/invalidate", headers={"X-Admin-Key": "wrong"}).status_code == 403
    assert client.post("/api/admin/survivor/pool-1/cache/invalidate").status_code == 422

    ok = client.post("/api/admin/survivor/pool-1/cache/invalidate", headers={"X-Admin-Key": "s3cret"})
    assert ok.status_code == 200
    assert ok.json() == {"pool_id": "pool-1", "invalidated": False}


def test_audit_endpoint_reports_without_writing(fake_db):
    _seed(fake_db)
    client = _build_test_client()

    response = client.post("/api/admin/survivor/pool-1/audit", json={"signal_user_id": "sig"})

    assert response.status_code == 200
    body = response.json()
    assert body["bug_patterns"][0]["type"] == "incorrect_elimination_week"
    assert body["summary"]["verified_users"] == 1
    assert fake_db.survivor_status.docs[0]["eliminated"] is True

    missing = client.post("/api/admin/survivor/pool-1/audit", json={"signal_user_id": "ghost"})
    assert missing.status_code == 404


def test_audit_fix_endpoint_corrects_and_invalidates(fake_db):
    _seed(fake_db)
    client = _build_test_client()
    client.get("/api/survivor/pool-1/snapshot")
    assert len(fake_db.survivor_cache.docs) == 1

    response = client.post("/api/admin/survivor/pool-1/audit/fix", json={"signal_user_id": "sig"})

    assert response.status_code == 200
    assert response.json()["fixes"]["summary"]["fixed"] == 1
    assert fake_db.survivor_status.docs[0]["eliminated"] is False
    assert fake_db.survivor_cache.docs == []
    assert fake_db.audit_logs.docs[0]["action"] == "SURVIVOR_STATUS_FIXED"


def test_participation_update_endpoint(fake_db):
    _seed(fake_db)
    client = _build_test_client()

    response = client.post(
        "/api/admin/survivor/pool-1/participants/p_lost/participation",
        json={"status": "inactive", "reason": "eliminated_week_1"},
    )
    assert response.status_code == 200
    members = fake_db.pool_rosters.docs[0]["members"]
    assert members["p_lost"]["participation"]["survivor"]["status"] == "inactive"
    assert fake_db.audit_logs.docs[0]["metadata"]["reason"] == "eliminated_week_1"

    missing = client.post(
        "/api/admin/survivor/pool-1/participants/ghost/participation",
        json={"status": "inactive"},
    )
    assert missing.status_code == 404

    invalid = client.post(
        "/api/admin/survivor/pool-1/participants/p_lost/participation",
        json={"status": "paused"},
    )
    assert invalid.status_code == 422


def test_apply_suggestions_endpoint(fake_db):
    _seed(fake_db)
    client = _build_test_client()

    response = client.post("/api/admin/survivor/pool-1/participation/apply-suggestions")

    assert response.status_code == 200
    applied = {row["participant_id"]: row for row in response.json()["applied"]}
    assert applied["p_lost"]["status"] == "inactive"
    assert applied["p_new"]["status"] == "active"
    assert all(row["applied"] for row in applied.values())
    assert fake_db.survivor_cache.docs == []
