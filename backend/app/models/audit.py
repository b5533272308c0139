from datetime import datetime

from pydantic import BaseModel, Field


class AuditLog(BaseModel):
    """Immutable audit log entry for survivor status corrections.

    Insert-only. No updates or deletes permitted on this collection.
    """

    timestamp: datetime
    actor_id: str  # Operator or tool that made the change
    target_id: str  # Participant id
    action: str  # e.g. "SURVIVOR_STATUS_FIXED"
    metadata: dict = Field(default_factory=dict)  # before/after values, reason
    request_id: str = ""
