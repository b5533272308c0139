"""
backend/scripts/survivor_audit.py

Purpose:
    Operator tool that runs the survivor status audit for one pool: analyzes
    a signal participant, propagates the discovered bug patterns across the
    pool, verifies each match and, with --execute, writes the corrections.

Usage:
    cd backend && python -m scripts.survivor_audit --signal-user <uid> --dry-run
    cd backend && python -m scripts.survivor_audit --pool nerduniverse-2025 --signal-user <uid> --execute
"""

from __future__ import annotations

import argparse
import asyncio
from typing import Any

import app.database as _db
from app.config import settings
from app.middleware.logging import setup_logging
from app.models.survivor_audit import PATTERN_ORDER
from app.services.survivor_audit_service import SurvivorAuditService
from app.services.survivor_errors import SurvivorEngineError


async def _run(
    pool_id: str,
    signal_user_id: str,
    pattern_types: list[str] | None,
    execute: bool,
    correct_delayed: bool,
) -> int:
    await _db.connect_db()
    try:
        service = SurvivorAuditService(pool_id, correct_delayed=correct_delayed or None)
        try:
            if not execute:
                report = await service.run_analysis(signal_user_id, pattern_types)
                print({"ok": True, "mode": "dry-run", "report": report.model_dump(mode="json")})
                return 0

            report, fixes = await service.run_and_fix(
                signal_user_id, actor_id="survivor-audit-cli", pattern_types=pattern_types,
            )
        except SurvivorEngineError as exc:
            print({"ok": False, "reason": type(exc).__name__, "message": str(exc)})
            return 2

        out: dict[str, Any] = {
            "ok": fixes.summary.failed == 0,
            "mode": "execute",
            "report": report.model_dump(mode="json"),
            "fixes": fixes.model_dump(mode="json"),
        }
        print(out)
        return 0 if out["ok"] else 1
    finally:
        await _db.close_db()


async def main() -> int:
    parser = argparse.ArgumentParser(description="Audit and correct persisted survivor statuses for one pool.")
    parser.add_argument("--pool", default=settings.SURVIVOR_POOL_ID, help="Pool id (default: configured pool).")
    parser.add_argument("--signal-user", required=True, help="Participant id reported as mis-recorded.")
    parser.add_argument(
        "--pattern",
        action="append",
        choices=list(PATTERN_ORDER),
        help="Restrict propagation to this pattern type. Repeatable.",
    )
    parser.add_argument("--dry-run", action="store_true", help="Analyze only (default behavior).")
    parser.add_argument("--execute", action="store_true", help="Write corrections for verified participants.")
    parser.add_argument(
        "--correct-delayed",
        action="store_true",
        help="Also rewrite delayed eliminations to the actual loss week.",
    )
    args = parser.parse_args()

    setup_logging()
    execute = bool(args.execute) and not args.dry_run
    return await _run(
        pool_id=args.pool,
        signal_user_id=args.signal_user,
        pattern_types=args.pattern,
        execute=execute,
        correct_delayed=bool(args.correct_delayed),
    )


if __name__ == "__main__":
    raise SystemExit(asyncio.run(main()))
