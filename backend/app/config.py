"""
backend/app/config.py

Purpose:
    Central settings loading for the survivor pool engine.

Dependencies:
    - pydantic-settings
    - pathlib
"""

from pathlib import Path

from pydantic_settings import BaseSettings

# Prefer backend/.env, fallback to project-root .env.
_BACKEND_ENV_FILE = Path(__file__).resolve().parent.parent / ".env"
_ROOT_ENV_FILE = Path(__file__).resolve().parent.parent.parent / ".env"


class Settings(BaseSettings):
    MONGO_URI: str = "mongodb://localhost:27017"
    MONGO_DB: str = "survivorpool"
    BACKEND_CORS_ORIGINS: str = "http://localhost:5173"

    # Admin tooling (audit, cache invalidation, participation flags)
    ADMIN_API_KEY: str = ""

    # Pool served by the workers and the audit CLI when none is given
    SURVIVOR_POOL_ID: str = "nerduniverse-2025"

    # Pool snapshot cache
    SURVIVOR_CACHE_TTL_SECONDS: int = 60
    SURVIVOR_CACHE_REQUEST_BUDGET_SECONDS: float = 8.0
    SURVIVOR_COMPUTE_CONCURRENCY: int = 10

    # Scheduled cache warming during game windows
    SURVIVOR_CACHE_WARMER_ENABLED: bool = True
    SURVIVOR_CACHE_WARMER_MINUTES: int = 5

    # Reconciliation / audit
    AUDIT_SCAN_DELAY_SECONDS: float = 0.05
    AUDIT_WRITE_DELAY_SECONDS: float = 0.2
    AUDIT_FIXED_BY: str = "batch-survivor-verification"
    AUDIT_CORRECT_DELAYED_ELIMINATIONS: bool = False

    model_config = {
        "env_file": (str(_BACKEND_ENV_FILE), str(_ROOT_ENV_FILE)),
        "extra": "ignore",
    }


settings = Settings()
