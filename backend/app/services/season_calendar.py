"""
backend/app/services/season_calendar.py

Purpose:
    Map wall-clock time to a season week number from the static week-start
    table in app.config_season.

Dependencies:
    - app.config_season
    - zoneinfo
"""

from __future__ import annotations

from datetime import date, datetime
from zoneinfo import ZoneInfo

from app.config_season import SEASON_END, SEASON_TIMEZONE, SEASON_WEEK_STARTS
from app.services.survivor_errors import CalendarConfigError

_TZ = ZoneInfo(SEASON_TIMEZONE)


def validate_calendar(week_starts: dict[int, date], season_end: date | None = None) -> list[tuple[int, date]]:
    """Return the table as ordered (week, start) pairs or raise CalendarConfigError.

    Weeks must be exactly 1..N and start dates strictly increasing.
    """
    if not week_starts:
        raise CalendarConfigError("Season calendar is empty.")
    weeks = sorted(week_starts)
    if weeks != list(range(1, len(weeks) + 1)):
        raise CalendarConfigError(f"Season weeks are not contiguous from 1: {weeks}")
    table = [(week, week_starts[week]) for week in weeks]
    for (_, prev_start), (week, start) in zip(table, table[1:]):
        if start <= prev_start:
            raise CalendarConfigError(f"Week {week} start {start} is not after {prev_start}.")
    if season_end is not None and season_end <= table[-1][1]:
        raise CalendarConfigError("Season end must be after the final week start.")
    return table


_CALENDAR = validate_calendar(SEASON_WEEK_STARTS, SEASON_END)


def final_week(week_starts: dict[int, date] | None = None) -> int:
    return len(week_starts) if week_starts is not None else len(_CALENDAR)


def resolve_current_week(now: datetime, week_starts: dict[int, date] | None = None) -> int:
    """Return the week whose [start, next_start) interval contains `now`.

    Before the first start returns 1, after the last start returns the final
    week. Aware datetimes are converted to the season timezone first; naive
    ones are taken as season-local.
    """
    table = _CALENDAR if week_starts is None else validate_calendar(week_starts)
    today = now.astimezone(_TZ).date() if now.tzinfo is not None else now.date()

    current = table[0][0]
    for week, start in table:
        if today < start:
            break
        current = week
    return current
