"""
backend/tests/test_survivor_store.py

Purpose:
    Pick and status document parsing, team name normalization and roster
    membership helpers.
"""

from __future__ import annotations

import pytest

from app.services import survivor_store
from app.services.survivor_errors import ParticipantDataError
from app.services.team_normalizer import canonical_team_name, normalize_team_key
from app.utils import coerce_week
from conftest import member


@pytest.mark.parametrize(
    "value,expected",
    [(3, 3), ("3", 3), ("week3", 3), ("Week 12", 12), ("week_4", 4), (0, None), ("x", None), (True, None), (None, None)],
)
def test_coerce_week(value, expected):
    assert coerce_week(value) == expected


def test_canonical_team_name_shapes_and_aliases():
    assert canonical_team_name("LA Rams") == "Los Angeles Rams"
    assert canonical_team_name({"teamPicked": "la rams"}) == "Los Angeles Rams"
    assert canonical_team_name({"team": {"name": "Kansas  City Chiefs"}}) == "Kansas City Chiefs"
    assert canonical_team_name("  Chiefs ") == "Chiefs"
    assert canonical_team_name({"gameId": "401"}) is None
    assert canonical_team_name("   ") is None
    assert normalize_team_key("São Paulo F.C.") == "sao paulo f c"


def test_parse_picks_normalizes_every_stored_shape():
    doc = {
        "_id": "u1",
        "picks": {
            "1": "KC Chiefs",
            "week2": {"team": "Bills", "gameId": 4012},
            "3": {"teamPicked": {"displayName": "LA Rams"}},
            "notes": "ignored",
            "4": {"gameId": "x"},
        },
    }
    picks = survivor_store.parse_picks(doc)

    assert [(p.week, p.team) for p in picks] == [
        (1, "Kansas City Chiefs"),
        (2, "Bills"),
        (3, "Los Angeles Rams"),
    ]
    assert picks[1].game_id == "4012"


def test_parse_picks_accepts_flat_documents():
    picks = survivor_store.parse_picks({"_id": "u1", "1": "Chiefs", "2": "Lions"})
    assert [p.week for p in picks] == [1, 2]
    assert survivor_store.parse_picks(None) == []


def test_parse_status_defaults_to_alive():
    assert survivor_store.parse_status(None).eliminated is False
    status = survivor_store.parse_status({"_id": "u1", "eliminated": 1, "eliminated_week": "4", "extra": True})
    assert status.eliminated is True
    assert status.eliminated_week == 4


def test_membership_helpers():
    members = {
        "a": member("Ann", email="ann@example.com"),
        "b": member("Ben", enabled=False),
        "c": {"participation": {"survivor": {"enabled": "yes"}}},
        "d": {"email": "dee@example.com", "participation": {"survivor": {"enabled": True}}},
    }
    enrolled = survivor_store.enrolled_members(members)

    assert set(enrolled) == {"a", "d"}
    assert survivor_store.member_display_name(members["a"], "a") == "Ann"
    assert survivor_store.member_display_name(members["d"], "d") == "dee@example.com"
    assert survivor_store.member_email(members["a"]) == "ann@example.com"
    assert survivor_store.participation_status(members["a"]) == "active"
    assert survivor_store.participation_status(members["d"]) is None


@pytest.mark.asyncio
async def test_read_failures_carry_their_stage(fake_db):
    fake_db.survivor_picks.fail_ids.add("u1")
    fake_db.survivor_status.fail_ids.add("u1")

    with pytest.raises(ParticipantDataError) as picks_err:
        await survivor_store.load_picks("u1")
    with pytest.raises(ParticipantDataError) as status_err:
        await survivor_store.load_persisted_status("u1")

    assert picks_err.value.stage == "picks"
    assert status_err.value.stage == "status"
