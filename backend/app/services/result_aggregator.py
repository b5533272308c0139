"""
backend/app/services/result_aggregator.py

Purpose:
    Turn raw per-game result records into per-week winner/loser sets for the
    elimination walk. Only games in a terminal state contribute; live games
    never do. Weeks without a final game are left out of the season results
    unless they are the current week, so partially played weeks still drive
    eliminations for the games that are already over.

Dependencies:
    - app.database
    - app.services.season_calendar
    - app.services.team_normalizer
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

import app.database as _db
from app.services.season_calendar import final_week, resolve_current_week
from app.services.team_normalizer import canonical_team_name
from app.utils import coerce_week

logger = logging.getLogger("survivorpool.result_aggregator")


class GameState(str, Enum):
    SCHEDULED = "scheduled"
    LIVE = "live"
    FINAL = "final"
    UNKNOWN = "unknown"


_FINAL_STATUSES = frozenset({
    "final", "f", "final_ot", "final/ot", "f/ot", "final_overtime",
    "status_final", "status_final_ot", "complete", "completed", "post",
})
_LIVE_STATUSES = frozenset({
    "in_progress", "status_in_progress", "live", "in", "halftime",
    "status_halftime", "half", "end_of_period", "status_end_period",
    "overtime", "ot", "delayed", "status_delayed", "suspended",
})
_SCHEDULED_STATUSES = frozenset({
    "scheduled", "status_scheduled", "pre", "not_started", "pregame", "postponed",
    "status_postponed", "canceled", "cancelled",
})
_QUARTER_RE = re.compile(r"^(q[1-4]|[1-4](st|nd|rd|th)(_quarter)?|end_of_[1-4](st|nd|rd|th))")

_HOME_KEYS = ("h", "home_team", "homeTeam", "home")
_AWAY_KEYS = ("a", "away_team", "awayTeam", "away")
_HOME_SCORE_KEYS = ("home_score", "homeScore", "hs")
_AWAY_SCORE_KEYS = ("away_score", "awayScore", "as")


def classify_status(raw_status: Any) -> GameState:
    """Normalize the many status spellings into one GameState."""
    text = str(raw_status or "").strip().lower()
    if not text:
        return GameState.UNKNOWN
    key = re.sub(r"[\s\-]+", "_", text)
    if key in _FINAL_STATUSES or key.startswith("final"):
        return GameState.FINAL
    if key in _LIVE_STATUSES or _QUARTER_RE.match(key):
        return GameState.LIVE
    if key in _SCHEDULED_STATUSES:
        return GameState.SCHEDULED
    return GameState.UNKNOWN


@dataclass(frozen=True)
class GameRecord:
    game_id: str
    home: str | None
    away: str | None
    state: GameState
    winner: str | None = None
    tied: bool = False


@dataclass(frozen=True)
class GameResult:
    week: int
    winning_teams: frozenset[str] = frozenset()
    losing_teams: frozenset[str] = frozenset()
    tied_teams: frozenset[str] = frozenset()
    final_game_count: int = 0
    total_game_count: int = 0

    def outcome_for(self, team: str) -> str:
        if team in self.losing_teams:
            return "lost"
        if team in self.winning_teams:
            return "won"
        return "undecided"


@dataclass
class SeasonResults:
    results: dict[int, GameResult]
    available_weeks: list[int]
    current_week: int
    final_weeks: list[int] = field(default_factory=list)


def _first(raw: dict, keys: tuple[str, ...]) -> Any:
    for key in keys:
        value = raw.get(key)
        if value not in (None, ""):
            return value
    return None


def _score(raw: dict, keys: tuple[str, ...]) -> int | None:
    value = _first(raw, keys)
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def normalize_game_record(game_id: str, raw: Any) -> GameRecord | None:
    """Return a GameRecord, or None when the entry is metadata rather than a game."""
    if str(game_id).startswith("_") or not isinstance(raw, dict):
        return None

    home = canonical_team_name(_first(raw, _HOME_KEYS))
    away = canonical_team_name(_first(raw, _AWAY_KEYS))
    raw_status = _first(raw, ("status", "game_status", "state"))
    if home is None and away is None and raw_status is None:
        return None

    state = classify_status(raw_status)
    if state is not GameState.FINAL or home is None or away is None:
        return GameRecord(game_id=str(game_id), home=home, away=away, state=state)

    winner = canonical_team_name(raw.get("winner"))
    if winner is None:
        home_score = _score(raw, _HOME_SCORE_KEYS)
        away_score = _score(raw, _AWAY_SCORE_KEYS)
        if home_score is not None and away_score is not None:
            if home_score > away_score:
                winner = home
            elif away_score > home_score:
                winner = away
            else:
                return GameRecord(game_id=str(game_id), home=home, away=away, state=state, tied=True)
    elif winner.upper() == "TIE":
        return GameRecord(game_id=str(game_id), home=home, away=away, state=state, tied=True)

    if winner is not None and winner not in (home, away):
        logger.warning("Game %s winner %s is neither %s nor %s; ignoring winner", game_id, winner, home, away)
        winner = None
    return GameRecord(game_id=str(game_id), home=home, away=away, state=state, winner=winner)


def aggregate_week(week: int, raw_records: dict[str, Any]) -> GameResult:
    """Partition the teams of final games in one week into winners and losers."""
    winners: set[str] = set()
    losers: set[str] = set()
    tied: set[str] = set()
    final_count = 0
    total_count = 0

    for game_id, raw in (raw_records or {}).items():
        game = normalize_game_record(game_id, raw)
        if game is None:
            continue
        total_count += 1
        if game.state is not GameState.FINAL:
            continue
        final_count += 1
        if game.tied:
            tied.update(t for t in (game.home, game.away) if t)
            continue
        if game.winner is None:
            continue
        loser = game.away if game.winner == game.home else game.home
        winners.add(game.winner)
        losers.add(loser)

    conflicted = winners & losers
    if conflicted:
        logger.warning("Week %d: teams listed as both winner and loser, treated as undecided: %s", week, sorted(conflicted))
        winners -= conflicted
        losers -= conflicted

    return GameResult(
        week=week,
        winning_teams=frozenset(winners),
        losing_teams=frozenset(losers),
        tied_teams=frozenset(tied),
        final_game_count=final_count,
        total_game_count=total_count,
    )


def is_week_available(result: GameResult | None, week: int, current_week: int) -> bool:
    """Evaluable when any game is final, or when it is the current week."""
    if week == current_week:
        return True
    return result is not None and result.final_game_count > 0


def build_season_results(weeks_raw: dict[int, dict[str, Any]], current_week: int) -> SeasonResults:
    results: dict[int, GameResult] = {}
    final_weeks: list[int] = []
    for week in sorted(weeks_raw):
        aggregated = aggregate_week(week, weeks_raw[week])
        if aggregated.final_game_count > 0:
            final_weeks.append(week)
        if is_week_available(aggregated, week, current_week):
            results[week] = aggregated
    if current_week not in results:
        results[current_week] = GameResult(week=current_week)
    return SeasonResults(
        results=results,
        available_weeks=sorted(results),
        current_week=current_week,
        final_weeks=final_weeks,
    )


async def load_week_records(weeks: list[int]) -> dict[int, dict[str, Any]]:
    """Read raw game maps from the game_results collection, keyed by week."""
    # Week documents are keyed by int or by the string form of the week.
    ids: list[Any] = [*weeks, *(str(w) for w in weeks)]
    docs = await _db.db.game_results.find({"_id": {"$in": ids}}).to_list(length=len(ids))
    out: dict[int, dict[str, Any]] = {}
    for doc in docs:
        week = coerce_week(doc.get("_id"))
        if week is None:
            continue
        games = doc.get("games")
        if not isinstance(games, dict):
            games = {k: v for k, v in doc.items() if k != "_id"}
        out[week] = games
    return out


async def load_season_results(now: datetime) -> SeasonResults:
    """Aggregate every stored week and apply the partial-week inclusion policy."""
    current_week = resolve_current_week(now)
    weeks_raw = await load_week_records(list(range(1, final_week() + 1)))
    season = build_season_results(weeks_raw, current_week)
    logger.info(
        "Loaded results: available_weeks=%s current_week=%d final_weeks=%s",
        season.available_weeks, current_week, season.final_weeks,
    )
    return season
