"""
backend/app/services/elimination_calculator.py

Purpose:
    Derive one participant's survivor state from their weekly picks and the
    aggregated season results.

Rules:
    - No week-1 pick: NOT_PARTICIPATING (the pool has no later entry point).
    - Weeks are walked in ascending order, only those present in results.
    - A missing pick for an available week is skipped, never eliminating.
    - Picked team lost a final game: ELIMINATED, walk stops.
    - Picked team won: recorded in winning_picks.
    - Picked team in neither set: undecided, walk continues.

Dependencies:
    - app.models.survivor
    - app.services.result_aggregator
"""

from __future__ import annotations

from collections.abc import Iterable

from app.models.survivor import SurvivorRecord, SurvivorStatus, WeeklyPick, WinningPick
from app.services.result_aggregator import GameResult


def picks_by_week(picks: Iterable[WeeklyPick]) -> dict[int, WeeklyPick]:
    """Index picks by week. A duplicate week keeps the first pick seen."""
    indexed: dict[int, WeeklyPick] = {}
    for pick in picks:
        indexed.setdefault(pick.week, pick)
    return indexed


def compute_survivor_record(
    participant_id: str,
    picks: Iterable[WeeklyPick],
    results: dict[int, GameResult],
    available_weeks: Iterable[int],
) -> SurvivorRecord:
    by_week = picks_by_week(picks)
    if 1 not in by_week:
        return SurvivorRecord(participant_id=participant_id, status=SurvivorStatus.NOT_PARTICIPATING)

    winning: list[WinningPick] = []
    for week in sorted(set(available_weeks)):
        pick = by_week.get(week)
        result = results.get(week)
        if pick is None or result is None:
            continue
        if pick.team in result.losing_teams:
            return SurvivorRecord(
                participant_id=participant_id,
                status=SurvivorStatus.ELIMINATED,
                eliminated_week=week,
                eliminated_by=pick.team,
                winning_picks=winning,
            )
        if pick.team in result.winning_teams:
            winning.append(WinningPick(week=week, team=pick.team))

    return SurvivorRecord(participant_id=participant_id, status=SurvivorStatus.ALIVE, winning_picks=winning)


def loss_reason(record: SurvivorRecord) -> str | None:
    """Human-readable elimination cause for persisted status records."""
    if record.status is not SurvivorStatus.ELIMINATED:
        return None
    return f"Lost Week {record.eliminated_week} with {record.eliminated_by}"
