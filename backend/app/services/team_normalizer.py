"""
backend/app/services/team_normalizer.py

Purpose:
    Single normalization point for team identifiers. Picks and game records
    store team names under varying shapes (plain strings, {"team": ...},
    {"teamPicked": ...}, nested {"team": {"name": ...}}) and in short or
    provider spellings; everything downstream compares the canonical string
    returned here.

Dependencies:
    - re
    - unicodedata
    - app.config_season
"""

from __future__ import annotations

import re
import unicodedata
from typing import Any

from app.config_season import TEAM_ALIASES

_PUNCT_RE = re.compile(r"[^a-z0-9\s]")
_SPACE_RE = re.compile(r"\s+")

# Keys checked, in order, when a team is stored as a mapping.
_TEAM_KEYS = ("teamPicked", "team", "team_name", "teamName", "name", "displayName", "display_name")
_MAX_DEPTH = 3


def normalize_team_key(raw: str) -> str:
    """
    Normalize team text into an ASCII-safe lookup key.

    Steps:
        1. lowercase + trim
        2. NFKD accent removal
        3. punctuation cleanup
        4. whitespace collapse
    """
    text = str(raw or "").strip().lower()
    if not text:
        return ""
    text = unicodedata.normalize("NFKD", text)
    text = text.encode("ascii", "ignore").decode("ascii")
    text = _PUNCT_RE.sub(" ", text)
    return _SPACE_RE.sub(" ", text).strip()


_ALIAS_INDEX: dict[str, str] = {normalize_team_key(alias): name for alias, name in TEAM_ALIASES.items()}
_ALIAS_INDEX.update({normalize_team_key(name): name for name in TEAM_ALIASES.values()})


def _extract_team_text(value: Any, depth: int = 0) -> str | None:
    if value is None or depth > _MAX_DEPTH:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, dict):
        for key in _TEAM_KEYS:
            found = _extract_team_text(value.get(key), depth + 1)
            if found:
                return found
    return None


def canonical_team_name(value: Any) -> str | None:
    """Return the canonical team name for any stored team shape, or None."""
    text = _extract_team_text(value)
    if text is None:
        return None
    text = _SPACE_RE.sub(" ", text).strip()
    if not text:
        return None
    return _ALIAS_INDEX.get(normalize_team_key(text), text)
