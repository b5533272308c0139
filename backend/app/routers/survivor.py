"""Survivor pool endpoints: cached pool snapshot and single participant status."""

import time
from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.services.survivor_errors import PoolNotFoundError, SnapshotStageError
from app.services.survivor_pool_cache import SurvivorPoolCache, get_pool_cache
from app.services.survivor_pool_service import compute_single_record

router = APIRouter(prefix="/api/survivor", tags=["survivor"])


@router.get("/{pool_id}/snapshot")
async def get_snapshot(
    pool_id: str,
    max_age_seconds: int = Query(None, ge=0),
    cache: SurvivorPoolCache = Depends(get_pool_cache),
):
    """Whole-pool survivor snapshot, served from the pool cache."""
    start = time.time()
    max_age = timedelta(seconds=max_age_seconds) if max_age_seconds is not None else None
    try:
        entry = await cache.get_snapshot(pool_id, max_age=max_age)
    except PoolNotFoundError as exc:
        raise HTTPException(status.HTTP_404_NOT_FOUND, str(exc))
    except SnapshotStageError as exc:
        raise HTTPException(
            status.HTTP_503_SERVICE_UNAVAILABLE,
            {"message": str(exc), "stage": exc.stage},
        )

    generated_at = entry.snapshot.generated_at
    return {
        "pool_id": pool_id,
        "data": entry.snapshot.model_dump(mode="json"),
        "cached": entry.cached,
        "stale": entry.stale,
        "cache_age_seconds": round(entry.cache_age_seconds, 1),
        "response_time_ms": round((time.time() - start) * 1000, 2),
        "next_refresh": (generated_at + cache.ttl).isoformat(),
    }


@router.get("/{pool_id}/participants/{participant_id}")
async def get_participant(pool_id: str, participant_id: str):
    """Freshly computed survivor status for one participant (not cached)."""
    try:
        row = await compute_single_record(pool_id, participant_id)
    except PoolNotFoundError as exc:
        raise HTTPException(status.HTTP_404_NOT_FOUND, str(exc))
    if row is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, "Participant has no survivor entry in this pool.")
    return row.model_dump(mode="json")
