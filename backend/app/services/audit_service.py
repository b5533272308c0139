"""Insert-only audit trail for survivor status corrections and flag changes.

This module exposes NO update or delete operations on the audit_logs
collection.
"""

import logging
from typing import Optional

from fastapi import Request

import app.database as _db
from app.models.audit import AuditLog
from app.utils import utcnow

logger = logging.getLogger("survivorpool.audit")


def _request_id(request: Optional[Request]) -> str:
    if request is None:
        return ""
    return str(getattr(request.state, "request_id", "") or "")


async def log_audit(
    *,
    actor_id: str,
    target_id: str,
    action: str,
    metadata: Optional[dict] = None,
    request: Optional[Request] = None,
) -> None:
    """Write an immutable audit record to the audit_logs collection.

    Args:
        actor_id: Who performed the action (operator key id or tool name).
        target_id: Participant id affected.
        action: Action identifier, e.g. "SURVIVOR_STATUS_FIXED".
        metadata: Before/after values and the fix reason.
        request: Optional request, used to correlate with the request log line.
    """
    doc = AuditLog(
        timestamp=utcnow(),
        actor_id=actor_id,
        target_id=target_id,
        action=action,
        metadata=metadata or {},
        request_id=_request_id(request),
    ).model_dump()

    try:
        await _db.db.audit_logs.insert_one(doc)
    except Exception:
        # The status write already happened; a lost audit row is logged, not raised.
        logger.exception("Failed to write audit log: action=%s target=%s", action, target_id)
