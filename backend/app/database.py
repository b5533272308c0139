"""
backend/app/database.py

Purpose:
    MongoDB connection bootstrap and index management for the survivor
    collections.

Dependencies:
    - motor.motor_asyncio
    - app.config
"""

import logging

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from app.config import settings

client: AsyncIOMotorClient = None
db: AsyncIOMotorDatabase = None

logger = logging.getLogger("survivorpool.database")


async def connect_db() -> None:
    global client, db
    client = AsyncIOMotorClient(
        settings.MONGO_URI,
        maxPoolSize=25,
        minPoolSize=2,
    )
    db = client[settings.MONGO_DB]
    await _ensure_indexes()


async def close_db() -> None:
    global client
    if client:
        client.close()


async def get_db() -> AsyncIOMotorDatabase:
    return db


async def _ensure_indexes() -> None:
    """Create indexes on startup. Idempotent, safe to run repeatedly."""

    # ---- Persisted survivor status (audit scans) ----
    await db.survivor_status.create_index("eliminated")
    await db.survivor_status.create_index([("eliminated", 1), ("eliminated_week", 1)])

    # ---- Snapshot cache ----
    await db.survivor_cache.create_index("generated_at")

    # ---- Audit trail (insert-only) ----
    await db.audit_logs.create_index([("target_id", 1), ("timestamp", -1)])
    await db.audit_logs.create_index([("action", 1), ("timestamp", -1)])

    logger.info("Survivor indexes ensured")
