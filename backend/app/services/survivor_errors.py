"""
backend/app/services/survivor_errors.py

Purpose:
    Exception taxonomy for the survivor engine. Configuration errors abort the
    current operation; per-participant data errors are caught by the callers
    and turned into error entries.
"""

from __future__ import annotations


class SurvivorEngineError(Exception):
    """Base class for survivor engine failures."""


class CalendarConfigError(SurvivorEngineError):
    """The static season calendar is not sorted and contiguous."""


class PoolNotFoundError(SurvivorEngineError):
    """No roster document exists for the requested pool."""

    def __init__(self, pool_id: str):
        super().__init__(f"Pool {pool_id} not found")
        self.pool_id = pool_id


class ParticipantDataError(SurvivorEngineError):
    """Picks or status for a single participant could not be read."""

    def __init__(self, participant_id: str, stage: str, message: str):
        super().__init__(message)
        self.participant_id = participant_id
        self.stage = stage


class SnapshotStageError(SurvivorEngineError):
    """Snapshot could not be produced; `stage` names the failing step."""

    def __init__(self, stage: str, message: str):
        super().__init__(message)
        self.stage = stage


class ParticipantNotFoundError(SurvivorEngineError):
    """Participant is not an enrolled member of the pool."""

    def __init__(self, pool_id: str, participant_id: str):
        super().__init__(f"Participant {participant_id} is not enrolled in pool {pool_id}")
        self.pool_id = pool_id
        self.participant_id = participant_id
