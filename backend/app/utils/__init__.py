from datetime import datetime, timezone
from typing import Any


def utcnow() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """Make a naive datetime timezone-aware (UTC). Already-aware datetimes pass through.

    MongoDB stores datetimes without tzinfo (naive). Wrap dates read from a
    document with ensure_utc() before comparing them with utcnow().
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def coerce_week(value: Any) -> int | None:
    """Parse a week key ("3", 3, "week3") into an int >= 1, or None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value >= 1 else None
    text = str(value or "").strip().lower()
    if text.startswith("week"):
        text = text[4:].strip(" _-")
    if not text.isdigit():
        return None
    week = int(text)
    return week if week >= 1 else None


def placeholder_name(participant_id: str) -> str:
    """Display fallback for participants without name or email."""
    return f"Participant {str(participant_id)[:6]}"
