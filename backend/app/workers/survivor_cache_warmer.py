"""Keep the survivor pool snapshot warm while games are being played."""

import logging
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

from app.config import settings
from app.config_season import SEASON_TIMEZONE
from app.services.survivor_pool_cache import SurvivorPoolCache
from app.utils import utcnow
from app.workers._state import mark_run, ran_within

logger = logging.getLogger("survivorpool.survivor_cache_warmer")

_TZ = ZoneInfo(SEASON_TIMEZONE)
_GAME_DAYS = {0, 3, 6}  # Mon, Thu, Sun
_FIRST_HOUR = 10


def is_game_window(now: datetime) -> bool:
    local = now.astimezone(_TZ)
    return local.weekday() in _GAME_DAYS and local.hour >= _FIRST_HOUR


async def warm_survivor_cache(
    cache: SurvivorPoolCache,
    pool_id: str | None = None,
    now: datetime | None = None,
) -> bool:
    """Rebuild the pool snapshot during game windows.

    Smart sleep: skips outside game windows and when another process already
    refreshed within half the warmer interval.
    """
    pool_id = pool_id or settings.SURVIVOR_POOL_ID
    now = now or utcnow()
    if not is_game_window(now):
        logger.debug("Survivor cache warmer: outside game window")
        return False

    state_key = f"survivor_cache_warmer:{pool_id}"
    if await ran_within(state_key, timedelta(minutes=settings.SURVIVOR_CACHE_WARMER_MINUTES) / 2):
        logger.debug("Survivor cache warmer: refreshed recently by another worker")
        return False

    try:
        snapshot = await cache.refresh(pool_id)
    except Exception:
        logger.exception("Survivor cache warm-up failed for %s", pool_id)
        return False

    await mark_run(state_key, {"alive": snapshot.summary.alive, "eliminated": snapshot.summary.eliminated})
    return True
