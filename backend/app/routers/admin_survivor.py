"""
backend/app/routers/admin_survivor.py

Purpose:
    Operator endpoints for the survivor engine: status audit and batch
    correction, cache invalidation, and explicit participation flag changes.
    Guarded by the X-Admin-Key header.

Dependencies:
    - app.services.survivor_audit_service
    - app.services.survivor_pool_cache
    - app.services.survivor_store
"""

import logging
import secrets

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from app.config import settings
from app.models.survivor import ParticipationUpdate
from app.models.survivor_audit import AuditRequest
from app.services import survivor_store
from app.services.audit_service import log_audit
from app.services.survivor_audit_service import SurvivorAuditService
from app.services.survivor_errors import ParticipantNotFoundError, PoolNotFoundError, SnapshotStageError
from app.services.survivor_pool_cache import SurvivorPoolCache, get_pool_cache
from app.services.survivor_pool_service import apply_participation_suggestions

logger = logging.getLogger("survivorpool.admin_survivor")

router = APIRouter(prefix="/api/admin/survivor", tags=["admin-survivor"])

_ADMIN_ACTOR = "admin-api"


async def verify_admin_key(x_admin_key: str = Header(...)) -> str:
    """Verify the operator API key."""
    if not settings.ADMIN_API_KEY:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Admin API key not configured on server.",
        )
    if not secrets.compare_digest(x_admin_key, settings.ADMIN_API_KEY):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid admin API key.",
        )
    return _ADMIN_ACTOR


@router.post("/{pool_id}/audit")
async def run_audit(pool_id: str, body: AuditRequest, actor: str = Depends(verify_admin_key)):
    """Analyze and verify only; persisted status is left untouched."""
    service = SurvivorAuditService(pool_id)
    try:
        report = await service.run_analysis(body.signal_user_id, body.pattern_types)
    except (PoolNotFoundError, ParticipantNotFoundError) as exc:
        raise HTTPException(status.HTTP_404_NOT_FOUND, str(exc))
    return report.model_dump(mode="json")


@router.post("/{pool_id}/audit/fix")
async def run_audit_fix(
    pool_id: str,
    body: AuditRequest,
    actor: str = Depends(verify_admin_key),
    cache: SurvivorPoolCache = Depends(get_pool_cache),
):
    """Analyze, verify and correct every verified participant."""
    service = SurvivorAuditService(pool_id)
    try:
        report, fixes = await service.run_and_fix(
            body.signal_user_id, actor_id=actor, pattern_types=body.pattern_types,
        )
    except (PoolNotFoundError, ParticipantNotFoundError) as exc:
        raise HTTPException(status.HTTP_404_NOT_FOUND, str(exc))
    if fixes.summary.fixed:
        await cache.invalidate(pool_id)
    return {"report": report.model_dump(mode="json"), "fixes": fixes.model_dump(mode="json")}


@router.post("/{pool_id}/cache/invalidate")
async def invalidate_cache(
    pool_id: str,
    actor: str = Depends(verify_admin_key),
    cache: SurvivorPoolCache = Depends(get_pool_cache),
):
    deleted = await cache.invalidate(pool_id)
    return {"pool_id": pool_id, "invalidated": deleted}


@router.post("/{pool_id}/participants/{participant_id}/participation")
async def update_participation(
    pool_id: str,
    participant_id: str,
    body: ParticipationUpdate,
    request: Request,
    actor: str = Depends(verify_admin_key),
):
    """Explicitly set a participant's survivor participation flag."""
    ok = await survivor_store.set_participation_status(pool_id, participant_id, body.status)
    if not ok:
        raise HTTPException(status.HTTP_404_NOT_FOUND, "Pool member not found.")
    await log_audit(
        actor_id=actor,
        target_id=participant_id,
        action="SURVIVOR_PARTICIPATION_UPDATED",
        metadata={"pool_id": pool_id, "after": body.status.value, "reason": body.reason},
        request=request,
    )
    return {"pool_id": pool_id, "participant_id": participant_id, "status": body.status.value}


@router.post("/{pool_id}/participation/apply-suggestions")
async def apply_suggestions(
    pool_id: str,
    actor: str = Depends(verify_admin_key),
    cache: SurvivorPoolCache = Depends(get_pool_cache),
):
    """Apply every should_update_status suggestion of a freshly built snapshot."""
    try:
        snapshot = await cache.refresh(pool_id)
    except PoolNotFoundError as exc:
        raise HTTPException(status.HTTP_404_NOT_FOUND, str(exc))
    except SnapshotStageError as exc:
        raise HTTPException(
            status.HTTP_503_SERVICE_UNAVAILABLE,
            {"message": str(exc), "stage": exc.stage},
        )
    applied = await apply_participation_suggestions(snapshot, actor_id=actor)
    if any(row["applied"] for row in applied):
        await cache.invalidate(pool_id)
    return {"pool_id": pool_id, "applied": applied}
