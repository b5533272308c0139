"""
backend/app/services/survivor_store.py

Purpose:
    Read/write contract for the survivor collections:
      - pool_rosters      (one doc per pool, `members` map)
      - survivor_picks    (one doc per participant, `picks` map week -> pick)
      - survivor_status   (one doc per participant, persisted status record)

    Pick documents are normalized here, once, into canonical WeeklyPick rows.

Dependencies:
    - app.database
    - app.services.team_normalizer
"""

from __future__ import annotations

import logging
from typing import Any

import app.database as _db
from app.models.survivor import ParticipationFlag, PersistedStatus, WeeklyPick
from app.services.survivor_errors import ParticipantDataError, PoolNotFoundError
from app.services.team_normalizer import canonical_team_name
from app.utils import coerce_week, placeholder_name, utcnow

logger = logging.getLogger("survivorpool.survivor_store")


# ---------------------------------------------------------------------------
# Roster
# ---------------------------------------------------------------------------

async def load_pool_roster(pool_id: str) -> dict[str, dict]:
    """Return the members map of a pool. Missing roster is a configuration error."""
    doc = await _db.db.pool_rosters.find_one({"_id": pool_id})
    if not doc:
        raise PoolNotFoundError(pool_id)
    members = doc.get("members")
    return members if isinstance(members, dict) else {}


def _survivor_participation(member: dict) -> dict:
    participation = member.get("participation") or {}
    survivor = participation.get("survivor") if isinstance(participation, dict) else None
    return survivor if isinstance(survivor, dict) else {}


def is_enrolled(member: Any) -> bool:
    return isinstance(member, dict) and _survivor_participation(member).get("enabled") is True


def enrolled_members(members: dict[str, dict]) -> dict[str, dict]:
    return {uid: member for uid, member in members.items() if is_enrolled(member)}


def participation_status(member: dict) -> str | None:
    status = _survivor_participation(member).get("status")
    return str(status) if status else None


def member_display_name(member: dict, participant_id: str) -> str:
    for key in ("displayName", "display_name", "name", "email"):
        value = member.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return placeholder_name(participant_id)


def member_email(member: dict) -> str:
    value = member.get("email")
    return value if isinstance(value, str) else ""


async def set_participation_status(
    pool_id: str,
    participant_id: str,
    flag: ParticipationFlag,
) -> bool:
    """Explicitly change a member's survivor participation flag."""
    path = f"members.{participant_id}.participation.survivor"
    result = await _db.db.pool_rosters.update_one(
        {"_id": pool_id, f"members.{participant_id}": {"$exists": True}},
        {"$set": {f"{path}.status": flag.value, f"{path}.status_updated_at": utcnow()}},
    )
    return bool(result.matched_count)


# ---------------------------------------------------------------------------
# Picks
# ---------------------------------------------------------------------------

def parse_picks(doc: dict | None) -> list[WeeklyPick]:
    """Normalize a picks document into canonical picks ordered by week."""
    if not doc:
        return []
    raw = doc.get("picks")
    if not isinstance(raw, dict):
        raw = {k: v for k, v in doc.items() if k != "_id"}

    picks: dict[int, WeeklyPick] = {}
    for key, value in raw.items():
        week = coerce_week(key)
        if week is None:
            continue
        team = canonical_team_name(value)
        if team is None:
            continue
        game_id = None
        if isinstance(value, dict):
            game_id = value.get("gameId") or value.get("game_id")
        picks[week] = WeeklyPick(week=week, team=team, game_id=str(game_id) if game_id is not None else None)
    return [picks[week] for week in sorted(picks)]


async def load_picks(participant_id: str) -> list[WeeklyPick]:
    try:
        doc = await _db.db.survivor_picks.find_one({"_id": participant_id})
        return parse_picks(doc)
    except Exception as exc:
        logger.warning("Failed to read picks for %s: %s", participant_id, exc)
        raise ParticipantDataError(participant_id, "picks", str(exc)) from exc


# ---------------------------------------------------------------------------
# Persisted status
# ---------------------------------------------------------------------------

def parse_status(doc: dict | None) -> PersistedStatus:
    if not doc:
        return PersistedStatus()
    data = {k: v for k, v in doc.items() if k in PersistedStatus.model_fields}
    data["eliminated"] = bool(doc.get("eliminated"))
    data["eliminated_week"] = coerce_week(doc.get("eliminated_week"))
    return PersistedStatus.model_validate(data)


async def load_persisted_status(participant_id: str) -> PersistedStatus:
    try:
        doc = await _db.db.survivor_status.find_one({"_id": participant_id})
        return parse_status(doc)
    except Exception as exc:
        logger.warning("Failed to read survivor status for %s: %s", participant_id, exc)
        raise ParticipantDataError(participant_id, "status", str(exc)) from exc


async def write_status(participant_id: str, fields: dict[str, Any]) -> None:
    """Merge fields into a participant's persisted status (upsert)."""
    await _db.db.survivor_status.update_one(
        {"_id": participant_id},
        {"$set": fields},
        upsert=True,
    )
