"""
backend/tests/test_survivor_pool_service.py

Purpose:
    Whole-pool snapshot building: partitioning, ordering, error isolation and
    participation flag suggestions.
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from app.models.survivor import ParticipationFlag, SurvivorStatus
from app.services.survivor_errors import PoolNotFoundError, SnapshotStageError
from app.services.survivor_pool_service import (
    apply_participation_suggestions,
    build_pool_snapshot,
    compute_single_record,
)
from conftest import final, member, seed_picks, seed_pool, seed_week

NOW = datetime(2025, 9, 25, 18, 0, tzinfo=timezone.utc)  # week 4


def _seed(db) -> None:
    seed_pool(db, "pool-1", {
        "u_alive": member("alice"),
        "u_elim": member("Bob"),
        "u_np": member("Carol"),
        "u_none": member("Dan"),
        "u_err": member("Eve"),
        "u_out": member("Olga", enabled=False),
        "u_back": member("Frank", status="inactive"),
        "u_anon": member(),
    })
    seed_week(db, 1, {"g1": final("Chiefs", "Ravens", "Chiefs"), "g2": final("Eagles", "Cowboys", "Eagles")})
    seed_week(db, 2, {"g1": final("Bills", "Jets", "Bills")})
    seed_week(db, 3, {"g1": final("Lions", "Bears", "Lions")})

    seed_picks(db, "u_alive", {1: "Chiefs", 2: "Bills", 3: "Lions"})
    seed_picks(db, "u_elim", {1: "Chiefs", 2: "Jets", 3: "Lions"})
    seed_picks(db, "u_np", {2: "Bills"})
    seed_picks(db, "u_err", {1: "Chiefs"})
    seed_picks(db, "u_out", {1: "Chiefs"})
    seed_picks(db, "u_back", {1: "Eagles", 2: "Bills"})
    seed_picks(db, "u_anon", {1: "Ravens"})
    db.survivor_picks.fail_ids.add("u_err")


@pytest.mark.asyncio
async def test_snapshot_partitions_and_orders_participants(fake_db):
    _seed(fake_db)
    snapshot = await build_pool_snapshot("pool-1", now=NOW)

    assert snapshot.current_week == 4
    assert snapshot.available_weeks == [1, 2, 3, 4]
    assert [r.participant_id for r in snapshot.alive] == ["u_alive", "u_back"]
    assert [r.participant_id for r in snapshot.eliminated] == ["u_anon", "u_elim"]
    assert [r.participant_id for r in snapshot.not_participating] == ["u_np"]

    bob = snapshot.eliminated[1]
    assert bob.eliminated_week == 2
    assert bob.eliminated_by == "Jets"
    assert bob.week1_pick == "Chiefs"
    assert [p.week for p in bob.winning_picks] == [1]

    assert snapshot.eliminated[0].display_name == "Participant u_anon"


@pytest.mark.asyncio
async def test_snapshot_isolates_unreadable_participants(fake_db):
    _seed(fake_db)
    snapshot = await build_pool_snapshot("pool-1", now=NOW)

    assert [e.participant_id for e in snapshot.errors] == ["u_err"]
    assert snapshot.errors[0].stage == "picks"
    assert snapshot.summary.errors == 1
    # Zero-pick participants are absent and errors are not counted in total.
    assert snapshot.summary.total == 5
    assert snapshot.summary.total == snapshot.summary.alive + snapshot.summary.eliminated + snapshot.summary.not_participating
    ids = {r.participant_id for r in [*snapshot.alive, *snapshot.eliminated, *snapshot.not_participating]}
    assert "u_none" not in ids
    assert "u_out" not in ids


@pytest.mark.asyncio
async def test_snapshot_suggests_participation_flag_changes(fake_db):
    _seed(fake_db)
    snapshot = await build_pool_snapshot("pool-1", now=NOW)
    by_id = {r.participant_id: r for r in [*snapshot.alive, *snapshot.eliminated]}

    assert by_id["u_elim"].should_update_status is ParticipationFlag.INACTIVE
    assert by_id["u_elim"].update_reason == "eliminated_week_2"
    assert by_id["u_back"].should_update_status is ParticipationFlag.ACTIVE
    assert by_id["u_back"].update_reason == "still_alive"
    assert by_id["u_alive"].should_update_status is None


@pytest.mark.asyncio
async def test_apply_participation_suggestions_updates_roster_and_audits(fake_db):
    _seed(fake_db)
    snapshot = await build_pool_snapshot("pool-1", now=NOW)

    applied = await apply_participation_suggestions(snapshot, actor_id="admin-api")

    assert {a["participant_id"] for a in applied if a["applied"]} == {"u_elim", "u_back", "u_anon"}
    members = fake_db.pool_rosters.docs[0]["members"]
    assert members["u_elim"]["participation"]["survivor"]["status"] == "inactive"
    assert members["u_back"]["participation"]["survivor"]["status"] == "active"
    actions = {doc["action"] for doc in fake_db.audit_logs.docs}
    assert actions == {"SURVIVOR_PARTICIPATION_UPDATED"}
    assert len(fake_db.audit_logs.docs) == 3


@pytest.mark.asyncio
async def test_unknown_pool_raises_not_found(fake_db):
    with pytest.raises(PoolNotFoundError):
        await build_pool_snapshot("missing", now=NOW)


@pytest.mark.asyncio
async def test_results_failure_names_the_stage(fake_db, monkeypatch):
    _seed(fake_db)

    def _broken_find(query=None):
        raise RuntimeError("results unavailable")

    monkeypatch.setattr(fake_db.game_results, "find", _broken_find)

    with pytest.raises(SnapshotStageError) as exc_info:
        await build_pool_snapshot("pool-1", now=NOW)
    assert exc_info.value.stage == "results"


@pytest.mark.asyncio
async def test_single_record_matches_snapshot_row(fake_db):
    _seed(fake_db)
    snapshot = await build_pool_snapshot("pool-1", now=NOW)
    row = await compute_single_record("pool-1", "u_elim", now=NOW)

    assert row is not None
    assert row.status is SurvivorStatus.ELIMINATED
    assert row == next(r for r in snapshot.eliminated if r.participant_id == "u_elim")
    assert await compute_single_record("pool-1", "u_out", now=NOW) is None
