"""
backend/app/main.py

Purpose:
    FastAPI application bootstrap for the survivor engine: database
    lifecycle, the application-owned snapshot cache, cache-warmer scheduling,
    middleware and router wiring.

Dependencies:
    - app.database
    - app.services.survivor_pool_cache
    - app.workers.survivor_cache_warmer
"""

import logging
from contextlib import asynccontextmanager

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app
from pymongo.errors import ConnectionFailure, OperationFailure, ServerSelectionTimeoutError

import app.database as _db
from app.config import settings
from app.database import close_db, connect_db
from app.middleware.logging import StructuredLoggingMiddleware, setup_logging
from app.services.survivor_errors import CalendarConfigError, PoolNotFoundError, SnapshotStageError
from app.services.survivor_pool_cache import SurvivorPoolCache

logger = logging.getLogger("survivorpool")
scheduler = AsyncIOScheduler()


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    await connect_db()

    cache = SurvivorPoolCache()
    app.state.survivor_cache = cache

    if settings.SURVIVOR_CACHE_WARMER_ENABLED:
        from app.workers.survivor_cache_warmer import warm_survivor_cache

        scheduler.add_job(
            warm_survivor_cache,
            "interval",
            id="survivor_cache_warmer",
            replace_existing=True,
            minutes=settings.SURVIVOR_CACHE_WARMER_MINUTES,
            kwargs={"cache": cache, "pool_id": settings.SURVIVOR_POOL_ID},
        )
        scheduler.start()
        logger.info("Survivor cache warmer scheduled every %d minutes", settings.SURVIVOR_CACHE_WARMER_MINUTES)
    else:
        logger.info("Survivor cache warmer disabled via config")

    yield

    if scheduler.running:
        scheduler.shutdown(wait=False)
    await cache.wait_idle()
    await close_db()


app = FastAPI(
    title="Survivor Pool Engine",
    description="Elimination truth engine for season-long survivor pools",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS.split(","),
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "X-Admin-Key"],
)

# Structured logging
app.add_middleware(StructuredLoggingMiddleware)

# Prometheus scrape endpoint
app.mount("/metrics", make_asgi_app())

# Routers
from app.routers.survivor import router as survivor_router
from app.routers.admin_survivor import router as admin_survivor_router

app.include_router(survivor_router)
app.include_router(admin_survivor_router)


@app.exception_handler(PoolNotFoundError)
async def pool_not_found_handler(request: Request, exc: PoolNotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(SnapshotStageError)
async def snapshot_stage_handler(request: Request, exc: SnapshotStageError):
    logger.error("Snapshot stage %s failed on %s: %s", exc.stage, request.url.path, exc)
    return JSONResponse(status_code=503, content={"detail": str(exc), "stage": exc.stage})


@app.exception_handler(CalendarConfigError)
async def calendar_config_handler(request: Request, exc: CalendarConfigError):
    logger.error("Season calendar misconfigured: %s", exc)
    return JSONResponse(status_code=500, content={"detail": "Season calendar misconfigured."})


@app.exception_handler(ServerSelectionTimeoutError)
async def db_timeout_handler(request: Request, exc: ServerSelectionTimeoutError):
    logger.error("Database timeout: %s %s", request.method, request.url.path)
    return JSONResponse(status_code=503, content={"detail": "Service temporarily unavailable."})


@app.exception_handler(ConnectionFailure)
async def db_connection_handler(request: Request, exc: ConnectionFailure):
    logger.error("Database connection failure: %s %s", request.method, request.url.path)
    return JSONResponse(status_code=503, content={"detail": "Service temporarily unavailable."})


@app.exception_handler(OperationFailure)
async def db_operation_handler(request: Request, exc: OperationFailure):
    logger.error("Database operation error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"detail": "An internal error occurred."})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Catch-all: log the real error, return a safe generic message."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "An internal error occurred."})


@app.get("/health")
async def health():
    """Health check -- verifies the DB connection."""
    try:
        result = await _db.db.command("ping")
        db_ok = result.get("ok") == 1.0
    except Exception:
        db_ok = False

    return {
        "status": "healthy" if db_ok else "degraded",
        "db": "connected" if db_ok else "disconnected",
    }
