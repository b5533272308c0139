"""
backend/app/services/survivor_pool_service.py

Purpose:
    Build a whole-pool survivor snapshot: run the elimination calculator once
    per enrolled participant, partition into alive / eliminated / not
    participating, and attach participation-flag suggestions. A participant
    whose data cannot be read becomes an error entry; the rest of the pool is
    still computed.

Dependencies:
    - app.services.result_aggregator
    - app.services.elimination_calculator
    - app.services.survivor_store
    - app.services.audit_service
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from app.config import settings
from app.models.survivor import (
    ParticipantError,
    ParticipantSnapshot,
    ParticipationFlag,
    PoolSnapshot,
    SnapshotSummary,
    SurvivorRecord,
    SurvivorStatus,
)
from app.services import survivor_store
from app.services.audit_service import log_audit
from app.services.elimination_calculator import compute_survivor_record
from app.services.result_aggregator import SeasonResults, load_season_results
from app.services.survivor_errors import ParticipantDataError, PoolNotFoundError, SnapshotStageError
from app.utils import utcnow

logger = logging.getLogger("survivorpool.survivor_pool_service")


def participation_suggestion(
    record: SurvivorRecord, current_flag: str | None,
) -> tuple[ParticipationFlag | None, str | None]:
    """Suggest a flag change when computed status and participation flag disagree."""
    if record.status is SurvivorStatus.ELIMINATED and current_flag == ParticipationFlag.ACTIVE.value:
        return ParticipationFlag.INACTIVE, f"eliminated_week_{record.eliminated_week}"
    if record.status is SurvivorStatus.ALIVE and current_flag == ParticipationFlag.INACTIVE.value:
        return ParticipationFlag.ACTIVE, "still_alive"
    return None, None


async def compute_participant(
    participant_id: str, member: dict, season: SeasonResults,
) -> ParticipantSnapshot | None:
    """Compute one snapshot row. Returns None for participants with no picks at all."""
    picks = await survivor_store.load_picks(participant_id)
    if not picks:
        return None

    record = compute_survivor_record(participant_id, picks, season.results, season.available_weeks)
    flag = survivor_store.participation_status(member)
    suggestion, reason = participation_suggestion(record, flag)
    week1 = next((p.team for p in picks if p.week == 1), None)

    return ParticipantSnapshot(
        participant_id=participant_id,
        display_name=survivor_store.member_display_name(member, participant_id),
        email=survivor_store.member_email(member),
        week1_pick=week1,
        status=record.status,
        eliminated_week=record.eliminated_week,
        eliminated_by=record.eliminated_by,
        winning_picks=record.winning_picks,
        participation_status=flag,
        should_update_status=suggestion,
        update_reason=reason,
    )


async def gather_bounded(coros, limit: int):
    semaphore = asyncio.Semaphore(max(1, int(limit)))

    async def _run(coro):
        async with semaphore:
            return await coro

    return await asyncio.gather(*(_run(c) for c in coros), return_exceptions=True)


async def build_pool_snapshot(pool_id: str, now: datetime | None = None) -> PoolSnapshot:
    """Recompute the full pool snapshot from picks and results."""
    now = now or utcnow()

    try:
        members = survivor_store.enrolled_members(await survivor_store.load_pool_roster(pool_id))
    except PoolNotFoundError:
        raise
    except Exception as exc:
        raise SnapshotStageError("roster", str(exc)) from exc

    try:
        season = await load_season_results(now)
    except Exception as exc:
        raise SnapshotStageError("results", str(exc)) from exc

    participant_ids = sorted(members)
    rows = await gather_bounded(
        (compute_participant(uid, members[uid], season) for uid in participant_ids),
        settings.SURVIVOR_COMPUTE_CONCURRENCY,
    )

    alive: list[ParticipantSnapshot] = []
    eliminated: list[ParticipantSnapshot] = []
    not_participating: list[ParticipantSnapshot] = []
    errors: list[ParticipantError] = []

    for uid, row in zip(participant_ids, rows):
        if isinstance(row, BaseException):
            stage = row.stage if isinstance(row, ParticipantDataError) else "compute"
            logger.error("Survivor snapshot: participant %s failed at %s: %s", uid, stage, row)
            errors.append(ParticipantError(
                participant_id=uid,
                display_name=survivor_store.member_display_name(members[uid], uid),
                stage=stage,
                error=str(row),
            ))
            continue
        if row is None:
            continue
        if row.status is SurvivorStatus.ALIVE:
            alive.append(row)
        elif row.status is SurvivorStatus.ELIMINATED:
            eliminated.append(row)
        else:
            not_participating.append(row)

    alive.sort(key=lambda r: r.display_name.lower())
    eliminated.sort(key=lambda r: (r.eliminated_week or 999, r.display_name.lower()))
    not_participating.sort(key=lambda r: r.display_name.lower())

    summary = SnapshotSummary(
        alive=len(alive),
        eliminated=len(eliminated),
        not_participating=len(not_participating),
        errors=len(errors),
        total=len(alive) + len(eliminated) + len(not_participating),
    )
    logger.info(
        "Survivor snapshot %s: alive=%d eliminated=%d not_participating=%d errors=%d",
        pool_id, summary.alive, summary.eliminated, summary.not_participating, summary.errors,
    )
    return PoolSnapshot(
        pool_id=pool_id,
        current_week=season.current_week,
        available_weeks=season.available_weeks,
        generated_at=now,
        alive=alive,
        eliminated=eliminated,
        not_participating=not_participating,
        errors=errors,
        summary=summary,
    )


async def compute_single_record(pool_id: str, participant_id: str, now: datetime | None = None) -> ParticipantSnapshot | None:
    """Fresh (uncached) computation for one enrolled participant."""
    members = survivor_store.enrolled_members(await survivor_store.load_pool_roster(pool_id))
    member = members.get(participant_id)
    if member is None:
        return None
    season = await load_season_results(now or utcnow())
    return await compute_participant(participant_id, member, season)


async def apply_participation_suggestions(snapshot: PoolSnapshot, *, actor_id: str) -> list[dict]:
    """Write every should_update_status suggestion of a snapshot to the roster."""
    applied: list[dict] = []
    for row in [*snapshot.alive, *snapshot.eliminated]:
        if row.should_update_status is None:
            continue
        ok = await survivor_store.set_participation_status(
            snapshot.pool_id, row.participant_id, row.should_update_status,
        )
        if ok:
            await log_audit(
                actor_id=actor_id,
                target_id=row.participant_id,
                action="SURVIVOR_PARTICIPATION_UPDATED",
                metadata={
                    "pool_id": snapshot.pool_id,
                    "before": row.participation_status,
                    "after": row.should_update_status.value,
                    "reason": row.update_reason,
                },
            )
        applied.append({
            "participant_id": row.participant_id,
            "status": row.should_update_status.value,
            "reason": row.update_reason,
            "applied": ok,
        })
    logger.info("Applied %d participation updates for pool %s", sum(1 for a in applied if a["applied"]), snapshot.pool_id)
    return applied
