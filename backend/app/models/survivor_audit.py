"""
backend/app/models/survivor_audit.py

Purpose:
    Report contracts for survivor status reconciliation. Bug patterns are a
    closed tagged union discriminated by `type`, so the correction step can
    handle every kind explicitly.

Dependencies:
    - pydantic
    - app.models.survivor
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field

from app.models.survivor import PersistedStatus, SurvivorRecord

PatternType = Literal["incorrect_elimination_week", "delayed_elimination", "missing_elimination"]

PATTERN_ORDER: tuple[PatternType, ...] = (
    "incorrect_elimination_week",
    "delayed_elimination",
    "missing_elimination",
)


class IncorrectEliminationWeek(BaseModel):
    type: Literal["incorrect_elimination_week"] = "incorrect_elimination_week"
    description: str = "User eliminated in week they actually won"
    elimination_week: int
    winning_team: str
    actual_result: str = "WIN"
    should_be_alive: bool = True


class DelayedElimination(BaseModel):
    type: Literal["delayed_elimination"] = "delayed_elimination"
    description: str = "User eliminated in wrong week, should have been eliminated earlier"
    actual_loss_week: int
    recorded_elimination_week: int
    loss_reason: str


class MissingElimination(BaseModel):
    type: Literal["missing_elimination"] = "missing_elimination"
    description: str = "User should be eliminated but marked as alive"
    actual_loss_week: int
    loss_reason: str


BugPattern = Annotated[
    Union[IncorrectEliminationWeek, DelayedElimination, MissingElimination],
    Field(discriminator="type"),
]


class AffectedUser(BaseModel):
    participant_id: str
    display_name: str
    pattern: BugPattern
    current_status: PersistedStatus
    computed: SurvivorRecord


class VerifiedUser(BaseModel):
    participant_id: str
    display_name: str
    pattern: BugPattern
    computed: SurvivorRecord


class FailedVerification(BaseModel):
    participant_id: str
    display_name: str
    pattern_type: PatternType
    reason: str


class VerificationSummary(BaseModel):
    total: int = 0
    verified: int = 0
    failed: int = 0


class VerificationResults(BaseModel):
    verified: list[VerifiedUser] = []
    failed: list[FailedVerification] = []
    summary: VerificationSummary = Field(default_factory=VerificationSummary)


class UnclassifiedDivergence(BaseModel):
    """Persisted status that disagrees with the computed record in no known pattern."""
    participant_id: str
    display_name: str
    current_status: PersistedStatus
    computed: SurvivorRecord
    reason: str


class AuditError(BaseModel):
    participant_id: str
    display_name: str
    stage: str
    error: str


class Recommendation(BaseModel):
    priority: Literal["HIGH", "MEDIUM", "LOW"]
    category: str
    action: str
    details: str


class AuditSummary(BaseModel):
    signal_user_id: str
    bug_patterns_found: int = 0
    affected_users_found: int = 0
    verified_users: int = 0
    unclassified_divergences: int = 0
    errors: int = 0


class AuditReport(BaseModel):
    pool_id: str
    signal_user_id: str
    generated_at: datetime
    signal_record: Optional[SurvivorRecord] = None
    signal_status: Optional[PersistedStatus] = None
    bug_patterns: list[BugPattern] = []
    affected_users: list[AffectedUser] = []
    verification_results: VerificationResults = Field(default_factory=VerificationResults)
    unclassified_divergences: list[UnclassifiedDivergence] = []
    errors: list[AuditError] = []
    recommendations: list[Recommendation] = []
    summary: AuditSummary


class FixResult(BaseModel):
    participant_id: str
    display_name: str
    action: PatternType
    success: bool
    skipped: bool = False
    error: Optional[str] = None


class FixSummary(BaseModel):
    total: int = 0
    fixed: int = 0
    skipped: int = 0
    failed: int = 0


class FixReport(BaseModel):
    summary: FixSummary = Field(default_factory=FixSummary)
    results: list[FixResult] = []


class AuditRequest(BaseModel):
    """Request body for audit endpoints."""
    signal_user_id: str
    pattern_types: Optional[list[PatternType]] = None
