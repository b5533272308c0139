"""Season calendar and team alias configuration for the survivor pool."""

from datetime import date

SEASON_YEAR = 2025

# Week number -> first day of that week (US/Eastern calendar date).
SEASON_WEEK_STARTS: dict[int, date] = {
    1: date(2025, 9, 4),
    2: date(2025, 9, 8),
    3: date(2025, 9, 15),
    4: date(2025, 9, 22),
    5: date(2025, 9, 29),
    6: date(2025, 10, 6),
    7: date(2025, 10, 13),
    8: date(2025, 10, 20),
    9: date(2025, 10, 27),
    10: date(2025, 11, 3),
    11: date(2025, 11, 10),
    12: date(2025, 11, 17),
    13: date(2025, 11, 24),
    14: date(2025, 12, 1),
    15: date(2025, 12, 8),
    16: date(2025, 12, 15),
    17: date(2025, 12, 22),
    18: date(2025, 12, 29),
}

# Exclusive end of the final week.
SEASON_END = date(2026, 1, 10)

SEASON_TIMEZONE = "America/New_York"

# Short/provider spellings -> canonical team names.
TEAM_ALIASES: dict[str, str] = {
    "LA Rams": "Los Angeles Rams",
    "LA Chargers": "Los Angeles Chargers",
    "LV Raiders": "Las Vegas Raiders",
    "Vegas Raiders": "Las Vegas Raiders",
    "NY Giants": "New York Giants",
    "NY Jets": "New York Jets",
    "TB Buccaneers": "Tampa Bay Buccaneers",
    "NE Patriots": "New England Patriots",
    "GB Packers": "Green Bay Packers",
    "NO Saints": "New Orleans Saints",
    "KC Chiefs": "Kansas City Chiefs",
    "SF 49ers": "San Francisco 49ers",
}
