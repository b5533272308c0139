"""Persistent worker state: last run per worker, kept across restarts.

Lets several processes share the warmer schedule without all of them
rebuilding the same snapshot. Uses a `worker_state` collection in MongoDB.
"""

from datetime import datetime, timedelta

import app.database as _db
from app.utils import ensure_utc, utcnow


async def get_last_run(worker_id: str) -> datetime | None:
    doc = await _db.db.worker_state.find_one({"_id": worker_id})
    return doc.get("last_run_at") if doc else None


async def mark_run(worker_id: str, result: dict | None = None) -> None:
    await _db.db.worker_state.update_one(
        {"_id": worker_id},
        {"$set": {"last_run_at": utcnow(), "last_result": result or {}}},
        upsert=True,
    )


async def ran_within(worker_id: str, window: timedelta) -> bool:
    """True if the worker last ran less than `window` ago."""
    last = await get_last_run(worker_id)
    if not last:
        return False
    return (utcnow() - ensure_utc(last)) < window
