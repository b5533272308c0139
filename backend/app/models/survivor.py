"""Survivor pool models: computed survivor records and cached pool snapshots."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class SurvivorStatus(str, Enum):
    ALIVE = "ALIVE"
    ELIMINATED = "ELIMINATED"
    NOT_PARTICIPATING = "NOT_PARTICIPATING"


class ParticipationFlag(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class WeeklyPick(BaseModel):
    """One participant's canonical team selection for one week."""
    week: int = Field(ge=1)
    team: str
    game_id: Optional[str] = None


class WinningPick(BaseModel):
    week: int
    team: str


class SurvivorRecord(BaseModel):
    """Derived survivor state. Always recomputed from picks + results."""
    participant_id: str
    status: SurvivorStatus
    eliminated_week: Optional[int] = None
    eliminated_by: Optional[str] = None
    winning_picks: list[WinningPick] = []

    def won_week(self, week: int) -> Optional[str]:
        for pick in self.winning_picks:
            if pick.week == week:
                return pick.team
        return None


class PersistedStatus(BaseModel):
    """Stored status record (survivor_status collection), audited against SurvivorRecord."""
    eliminated: bool = False
    eliminated_week: Optional[int] = None
    elimination_reason: Optional[str] = None
    eliminated_date: Optional[datetime] = None
    fixed_date: Optional[datetime] = None
    fixed_by: Optional[str] = None
    fix_reason: Optional[str] = None


class ParticipantSnapshot(BaseModel):
    """Single participant row in a pool snapshot."""
    participant_id: str
    display_name: str
    email: str = ""
    week1_pick: Optional[str] = None
    status: SurvivorStatus
    eliminated_week: Optional[int] = None
    eliminated_by: Optional[str] = None
    winning_picks: list[WinningPick] = []
    participation_status: Optional[str] = None
    should_update_status: Optional[ParticipationFlag] = None
    update_reason: Optional[str] = None


class ParticipantError(BaseModel):
    participant_id: str
    display_name: str
    stage: str
    error: str


class SnapshotSummary(BaseModel):
    alive: int = 0
    eliminated: int = 0
    not_participating: int = 0
    errors: int = 0
    total: int = 0


class PoolSnapshot(BaseModel):
    """Whole-pool survivor view. Built in one pass, never partially updated."""
    pool_id: str
    current_week: int
    available_weeks: list[int] = []
    generated_at: datetime
    alive: list[ParticipantSnapshot] = []
    eliminated: list[ParticipantSnapshot] = []
    not_participating: list[ParticipantSnapshot] = []
    errors: list[ParticipantError] = []
    summary: SnapshotSummary = Field(default_factory=SnapshotSummary)
    version: str = "survivor-v2"


class CacheEntry(BaseModel):
    """Snapshot as served by the pool cache."""
    snapshot: PoolSnapshot
    cached: bool
    stale: bool = False
    cache_age_seconds: float = 0.0


class ParticipationUpdate(BaseModel):
    """Request body for an explicit participation flag change."""
    status: ParticipationFlag
    reason: Optional[str] = None
