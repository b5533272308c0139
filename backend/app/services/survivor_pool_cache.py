"""
backend/app/services/survivor_pool_cache.py

Purpose:
    Time-boxed, pool-scoped cache of survivor snapshots. One entry per pool,
    persisted in MongoDB so every worker process sees the same snapshot.
    A request waits at most the configured budget for a rebuild; past that it
    gets the previous snapshot (marked stale, original generated_at intact)
    while the rebuild finishes in the background.

    The application owns one instance (app.state.survivor_cache) and hands it
    to routers and workers through get_pool_cache().

Dependencies:
    - app.database
    - app.monitoring.survivor_metrics
    - app.services.survivor_pool_service
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta

from fastapi import Request

import app.database as _db
from app.config import settings
from app.models.survivor import CacheEntry, PoolSnapshot
from app.monitoring.survivor_metrics import (
    METRIC_CACHE_REQUESTS,
    METRIC_SNAPSHOT_BUILDS,
    METRIC_SNAPSHOT_ERRORS,
    METRIC_SNAPSHOT_LATENCY,
    observe_latency,
)
from app.services.survivor_errors import SnapshotStageError
from app.services.survivor_pool_service import build_pool_snapshot
from app.utils import ensure_utc, utcnow

logger = logging.getLogger("survivorpool.survivor_pool_cache")

_COLLECTION = "survivor_cache"

SnapshotBuilder = Callable[[str], Awaitable[PoolSnapshot]]


class SurvivorPoolCache:
    """Single-entry-per-pool snapshot cache with a bounded request budget."""

    def __init__(
        self,
        builder: SnapshotBuilder | None = None,
        *,
        ttl_seconds: float | None = None,
        request_budget_seconds: float | None = None,
    ):
        self._builder = builder or build_pool_snapshot
        self.ttl = timedelta(seconds=ttl_seconds if ttl_seconds is not None else settings.SURVIVOR_CACHE_TTL_SECONDS)
        self.request_budget = (
            request_budget_seconds
            if request_budget_seconds is not None
            else settings.SURVIVOR_CACHE_REQUEST_BUDGET_SECONDS
        )
        self._inflight: dict[str, asyncio.Task] = {}

    async def _read(self, pool_id: str) -> tuple[PoolSnapshot, datetime] | None:
        doc = await getattr(_db.db, _COLLECTION).find_one({"_id": str(pool_id)})
        if not isinstance(doc, dict) or not isinstance(doc.get("payload"), dict):
            return None
        snapshot = PoolSnapshot.model_validate(doc["payload"])
        generated_at = doc.get("generated_at") or snapshot.generated_at
        return snapshot, ensure_utc(generated_at)

    async def _write(self, snapshot: PoolSnapshot) -> None:
        now = utcnow()
        await getattr(_db.db, _COLLECTION).update_one(
            {"_id": snapshot.pool_id},
            {
                "$set": {
                    "payload": snapshot.model_dump(mode="json"),
                    "generated_at": snapshot.generated_at,
                    "version": snapshot.version,
                    "updated_at": now,
                },
                "$setOnInsert": {"created_at": now},
            },
            upsert=True,
        )

    async def refresh(self, pool_id: str) -> PoolSnapshot:
        """Rebuild and store the snapshot for a pool."""
        try:
            with observe_latency(METRIC_SNAPSHOT_LATENCY):
                snapshot = await self._builder(pool_id)
        except Exception:
            METRIC_SNAPSHOT_BUILDS.labels(outcome="failed").inc()
            raise
        METRIC_SNAPSHOT_BUILDS.labels(outcome="ok").inc()
        METRIC_SNAPSHOT_ERRORS.labels(pool_id=pool_id).set(snapshot.summary.errors)
        await self._write(snapshot)
        logger.info("Survivor cache refreshed: pool=%s generated_at=%s", pool_id, snapshot.generated_at)
        return snapshot

    def _refresh_task(self, pool_id: str) -> asyncio.Task:
        task = self._inflight.get(pool_id)
        if task is not None and not task.done():
            return task

        task = asyncio.create_task(self.refresh(pool_id))
        self._inflight[pool_id] = task

        def _done(t: asyncio.Task) -> None:
            if self._inflight.get(pool_id) is t:
                self._inflight.pop(pool_id, None)
            if not t.cancelled() and t.exception() is not None:
                logger.error("Survivor cache rebuild failed for %s: %s", pool_id, t.exception())

        task.add_done_callback(_done)
        return task

    async def invalidate(self, pool_id: str) -> bool:
        result = await getattr(_db.db, _COLLECTION).delete_one({"_id": str(pool_id)})
        deleted = bool(result.deleted_count)
        logger.info("Survivor cache invalidated: pool=%s deleted=%s", pool_id, deleted)
        return deleted

    async def get_snapshot(self, pool_id: str, max_age: timedelta | None = None) -> CacheEntry:
        """Serve the cached snapshot if younger than max_age, else rebuild within budget."""
        max_age = self.ttl if max_age is None else max_age

        try:
            cached = await self._read(pool_id)
        except Exception as exc:
            logger.warning("Survivor cache read failed for %s: %s", pool_id, exc)
            cached = None

        if cached is not None:
            snapshot, generated_at = cached
            age = utcnow() - generated_at
            if age < max_age:
                logger.debug("Survivor cache hit: pool=%s age=%.1fs", pool_id, age.total_seconds())
                METRIC_CACHE_REQUESTS.labels(result="hit").inc()
                return CacheEntry(snapshot=snapshot, cached=True, cache_age_seconds=age.total_seconds())

        task = self._refresh_task(pool_id)
        try:
            snapshot = await asyncio.wait_for(asyncio.shield(task), timeout=self.request_budget)
        except asyncio.TimeoutError:
            if cached is None:
                raise SnapshotStageError("cache", "Snapshot computation exceeded the request budget.")
            stale, generated_at = cached
            age = utcnow() - generated_at
            logger.warning("Survivor cache serving stale snapshot: pool=%s age=%.1fs", pool_id, age.total_seconds())
            METRIC_CACHE_REQUESTS.labels(result="stale").inc()
            return CacheEntry(snapshot=stale, cached=True, stale=True, cache_age_seconds=age.total_seconds())

        METRIC_CACHE_REQUESTS.labels(result="rebuilt").inc()
        return CacheEntry(snapshot=snapshot, cached=False)

    async def wait_idle(self) -> None:
        """Wait for background rebuilds (used on shutdown and in tests)."""
        tasks = [t for t in self._inflight.values() if not t.done()]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)


def get_pool_cache(request: Request) -> SurvivorPoolCache:
    """FastAPI dependency: the application-owned cache instance."""
    return request.app.state.survivor_cache
