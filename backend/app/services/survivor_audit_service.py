"""
backend/app/services/survivor_audit_service.py

Purpose:
    Reconcile persisted survivor status (survivor_status collection) against
    ground truth recomputed from picks and results.

    Flow:
        1. Discover bug patterns on one signal participant.
        2. Scan every other enrolled participant for the same pattern kinds.
        3. Verify each affected participant again from freshly read inputs.
        4. On operator command, correct the verified participants, one audited
           write at a time.

    Divergences are report data, not failures. A participant whose picks or
    status cannot be read is reported as an error and left out of the fix
    batch; the scan continues.

Dependencies:
    - app.services.elimination_calculator
    - app.services.result_aggregator
    - app.services.survivor_store
    - app.services.audit_service
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable

from app.config import settings
from app.models.survivor import PersistedStatus, SurvivorRecord, SurvivorStatus
from app.models.survivor_audit import (
    PATTERN_ORDER,
    AffectedUser,
    AuditError,
    AuditReport,
    AuditSummary,
    BugPattern,
    DelayedElimination,
    FailedVerification,
    FixReport,
    FixResult,
    FixSummary,
    IncorrectEliminationWeek,
    MissingElimination,
    PatternType,
    Recommendation,
    UnclassifiedDivergence,
    VerificationResults,
    VerificationSummary,
    VerifiedUser,
)
from app.monitoring.survivor_metrics import METRIC_AUDIT_FIXES
from app.services import survivor_store
from app.services.audit_service import log_audit
from app.services.elimination_calculator import compute_survivor_record, loss_reason
from app.services.result_aggregator import SeasonResults, load_season_results
from app.services.survivor_errors import ParticipantDataError, ParticipantNotFoundError
from app.services.survivor_pool_service import gather_bounded
from app.utils import utcnow

logger = logging.getLogger("survivorpool.survivor_audit")


def detect_patterns(
    record: SurvivorRecord,
    status: PersistedStatus,
    kinds: Iterable[PatternType] | None = None,
) -> list[BugPattern]:
    """Compare persisted status with the computed record, in PATTERN_ORDER."""
    wanted = set(kinds) if kinds is not None else set(PATTERN_ORDER)
    found: list[BugPattern] = []
    recorded_week = status.eliminated_week

    if status.eliminated:
        if "incorrect_elimination_week" in wanted and recorded_week is not None:
            team = record.won_week(recorded_week)
            if team is not None:
                found.append(IncorrectEliminationWeek(elimination_week=recorded_week, winning_team=team))
        if (
            "delayed_elimination" in wanted
            and recorded_week is not None
            and record.status is SurvivorStatus.ELIMINATED
            and record.eliminated_week < recorded_week
        ):
            found.append(DelayedElimination(
                actual_loss_week=record.eliminated_week,
                recorded_elimination_week=recorded_week,
                loss_reason=loss_reason(record),
            ))
    elif "missing_elimination" in wanted and record.status is SurvivorStatus.ELIMINATED:
        found.append(MissingElimination(actual_loss_week=record.eliminated_week, loss_reason=loss_reason(record)))

    return found


def describe_drift(record: SurvivorRecord, status: PersistedStatus) -> str | None:
    """Divergences no bug pattern can classify, reported but never corrected."""
    if status.eliminated and status.eliminated_week is None:
        return f"Persisted as eliminated without an elimination week; computed {record.status.value}"
    return None


@dataclass
class _Evaluation:
    participant_id: str
    display_name: str
    record: SurvivorRecord
    status: PersistedStatus


def _recommendations(kinds: set[str]) -> list[Recommendation]:
    out: list[Recommendation] = []
    if "incorrect_elimination_week" in kinds:
        out.append(Recommendation(
            priority="HIGH",
            category="Bug Fix",
            action="Restore incorrectly eliminated users to ALIVE status",
            details="Users eliminated in weeks they actually won should be restored",
        ))
    if "missing_elimination" in kinds:
        out.append(Recommendation(
            priority="HIGH",
            category="Bug Fix",
            action="Eliminate users who should have been eliminated",
            details="Users who lost but are marked as alive should be eliminated",
        ))
    if "delayed_elimination" in kinds:
        out.append(Recommendation(
            priority="MEDIUM",
            category="Bug Fix",
            action="Correct elimination weeks",
            details="Update elimination weeks to match actual loss weeks",
        ))
    out.append(Recommendation(
        priority="HIGH",
        category="Prevention",
        action="Run the survivor audit after every completed week",
        details="Scheduled checks keep elimination statuses in line with game results",
    ))
    out.append(Recommendation(
        priority="MEDIUM",
        category="Prevention",
        action="Keep the audit trail for eliminations",
        details="Every status correction is written to audit_logs with its reason",
    ))
    return out


class SurvivorAuditService:
    """Pattern discovery, propagation, verification and batch correction for one pool."""

    def __init__(
        self,
        pool_id: str,
        *,
        scan_delay: float | None = None,
        write_delay: float | None = None,
        fixed_by: str | None = None,
        correct_delayed: bool | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.pool_id = pool_id
        self.scan_delay = settings.AUDIT_SCAN_DELAY_SECONDS if scan_delay is None else scan_delay
        self.write_delay = settings.AUDIT_WRITE_DELAY_SECONDS if write_delay is None else write_delay
        self.fixed_by = fixed_by or settings.AUDIT_FIXED_BY
        self.correct_delayed = (
            settings.AUDIT_CORRECT_DELAYED_ELIMINATIONS if correct_delayed is None else correct_delayed
        )
        self._clock = clock

    async def _evaluate(self, participant_id: str, member: dict, season: SeasonResults) -> _Evaluation:
        picks = await survivor_store.load_picks(participant_id)
        status = await survivor_store.load_persisted_status(participant_id)
        record = compute_survivor_record(participant_id, picks, season.results, season.available_weeks)
        return _Evaluation(
            participant_id=participant_id,
            display_name=survivor_store.member_display_name(member, participant_id),
            record=record,
            status=status,
        )

    async def _scan(
        self, members: dict[str, dict], participant_ids: list[str], season: SeasonResults,
    ) -> list[Any]:
        async def _one(uid: str):
            try:
                return await self._evaluate(uid, members[uid], season)
            finally:
                if self.scan_delay:
                    await asyncio.sleep(self.scan_delay)

        return await gather_bounded((_one(uid) for uid in participant_ids), settings.SURVIVOR_COMPUTE_CONCURRENCY)

    @staticmethod
    def _error(uid: str, member: dict, exc: BaseException) -> AuditError:
        stage = exc.stage if isinstance(exc, ParticipantDataError) else "compute"
        return AuditError(
            participant_id=uid,
            display_name=survivor_store.member_display_name(member, uid),
            stage=stage,
            error=str(exc),
        )

    async def run_analysis(
        self,
        signal_user_id: str,
        pattern_types: Iterable[PatternType] | None = None,
    ) -> AuditReport:
        """Discover, propagate and verify. Never writes persisted status."""
        now = self._clock()
        members = survivor_store.enrolled_members(await survivor_store.load_pool_roster(self.pool_id))
        if signal_user_id not in members:
            raise ParticipantNotFoundError(self.pool_id, signal_user_id)

        season = await load_season_results(now)
        errors: list[AuditError] = []
        affected: list[AffectedUser] = []
        unclassified: list[UnclassifiedDivergence] = []
        bug_patterns: list[BugPattern] = []
        signal: _Evaluation | None = None

        # Step 1: signal participant
        logger.info("Survivor audit %s: analyzing signal participant %s", self.pool_id, signal_user_id)
        try:
            signal = await self._evaluate(signal_user_id, members[signal_user_id], season)
        except Exception as exc:
            logger.warning("Survivor audit: signal participant %s unreadable: %s", signal_user_id, exc)
            errors.append(self._error(signal_user_id, members[signal_user_id], exc))
        else:
            bug_patterns = detect_patterns(signal.record, signal.status)
            for pattern in bug_patterns:
                logger.warning("Survivor audit pattern on %s: %s", signal_user_id, pattern.type)
            self._collect_drift(signal, unclassified)

        requested = set(pattern_types) if pattern_types is not None else {p.type for p in bug_patterns}
        kinds = [k for k in PATTERN_ORDER if k in requested]

        # Only requested kinds are ever queued for correction, signal included.
        signal_matches = [p for p in bug_patterns if p.type in requested]
        if signal is not None and signal_matches:
            affected.append(AffectedUser(
                participant_id=signal.participant_id,
                display_name=signal.display_name,
                pattern=signal_matches[0],
                current_status=signal.status,
                computed=signal.record,
            ))

        # Step 2: propagation
        if kinds:
            others = sorted(uid for uid in members if uid != signal_user_id)
            logger.info("Survivor audit %s: scanning %d participants for %s", self.pool_id, len(others), kinds)
            rows = await self._scan(members, others, season)
            for uid, row in zip(others, rows):
                if isinstance(row, BaseException):
                    errors.append(self._error(uid, members[uid], row))
                    continue
                self._collect_drift(row, unclassified)
                matches = detect_patterns(row.record, row.status, kinds)
                if not matches:
                    continue
                affected.append(AffectedUser(
                    participant_id=uid,
                    display_name=row.display_name,
                    pattern=matches[0],
                    current_status=row.status,
                    computed=row.record,
                ))
                logger.warning("Survivor audit affected: %s (%s) - %s", row.display_name, uid, matches[0].type)
        else:
            logger.info("Survivor audit %s: no bug patterns to propagate", self.pool_id)

        # Step 3: verification
        verification = await self.verify(affected, members)

        found_kinds = {p.type for p in bug_patterns} | {a.pattern.type for a in affected}
        report = AuditReport(
            pool_id=self.pool_id,
            signal_user_id=signal_user_id,
            generated_at=now,
            signal_record=signal.record if signal else None,
            signal_status=signal.status if signal else None,
            bug_patterns=bug_patterns,
            affected_users=affected,
            verification_results=verification,
            unclassified_divergences=unclassified,
            errors=errors,
            recommendations=_recommendations(found_kinds),
            summary=AuditSummary(
                signal_user_id=signal_user_id,
                bug_patterns_found=len(bug_patterns),
                affected_users_found=len(affected),
                verified_users=len(verification.verified),
                unclassified_divergences=len(unclassified),
                errors=len(errors),
            ),
        )
        logger.info(
            "Survivor audit %s complete: patterns=%d affected=%d verified=%d unclassified=%d errors=%d",
            self.pool_id, len(bug_patterns), len(affected), len(verification.verified),
            len(unclassified), len(errors),
        )
        return report

    @staticmethod
    def _collect_drift(row: _Evaluation, out: list[UnclassifiedDivergence]) -> None:
        reason = describe_drift(row.record, row.status)
        if reason is None:
            return
        logger.warning("Survivor audit unclassified divergence: %s (%s) - %s", row.display_name, row.participant_id, reason)
        out.append(UnclassifiedDivergence(
            participant_id=row.participant_id,
            display_name=row.display_name,
            current_status=row.status,
            computed=row.record,
            reason=reason,
        ))

    async def verify(self, affected: list[AffectedUser], members: dict[str, dict]) -> VerificationResults:
        """Re-check every affected participant against freshly loaded inputs."""
        results = VerificationResults()
        if not affected:
            return results

        season = await load_season_results(self._clock())
        for user in affected:
            member = members.get(user.participant_id, {})
            try:
                fresh = await self._evaluate(user.participant_id, member, season)
            except Exception as exc:
                results.failed.append(FailedVerification(
                    participant_id=user.participant_id,
                    display_name=user.display_name,
                    pattern_type=user.pattern.type,
                    reason=str(exc),
                ))
                continue
            matches = detect_patterns(fresh.record, fresh.status, [user.pattern.type])
            if matches:
                results.verified.append(VerifiedUser(
                    participant_id=user.participant_id,
                    display_name=user.display_name,
                    pattern=matches[0],
                    computed=fresh.record,
                ))
            else:
                results.failed.append(FailedVerification(
                    participant_id=user.participant_id,
                    display_name=user.display_name,
                    pattern_type=user.pattern.type,
                    reason="Pattern no longer matches",
                ))

        results.summary = VerificationSummary(
            total=len(affected),
            verified=len(results.verified),
            failed=len(results.failed),
        )
        logger.info("Survivor audit verification: %d/%d confirmed", len(results.verified), len(affected))
        return results

    def _fix_fields(self, user: VerifiedUser, now: datetime) -> tuple[dict[str, Any], str] | None:
        pattern = user.pattern
        computed = user.computed
        if isinstance(pattern, IncorrectEliminationWeek):
            if computed.status is SurvivorStatus.ELIMINATED:
                fields = {
                    "eliminated": True,
                    "eliminated_week": computed.eliminated_week,
                    "elimination_reason": loss_reason(computed),
                    "eliminated_date": now,
                }
            else:
                fields = {
                    "eliminated": False,
                    "eliminated_week": None,
                    "elimination_reason": None,
                    "eliminated_date": None,
                }
            return fields, "Incorrectly eliminated in week they won"
        if isinstance(pattern, MissingElimination):
            return {
                "eliminated": True,
                "eliminated_week": pattern.actual_loss_week,
                "elimination_reason": pattern.loss_reason,
                "eliminated_date": now,
            }, "Should have been eliminated but was marked as alive"
        if isinstance(pattern, DelayedElimination):
            if not self.correct_delayed:
                return None
            return {
                "eliminated": True,
                "eliminated_week": pattern.actual_loss_week,
                "elimination_reason": pattern.loss_reason,
            }, "Elimination recorded after the actual loss week"
        raise TypeError(f"Unhandled bug pattern: {pattern!r}")

    async def apply_fixes(self, verified: list[VerifiedUser], *, actor_id: str | None = None) -> FixReport:
        """Write corrections for verified participants, one write at a time."""
        report = FixReport()
        actor = actor_id or self.fixed_by

        for index, user in enumerate(verified):
            now = self._clock()
            try:
                planned = self._fix_fields(user, now)
                if planned is None:
                    report.results.append(FixResult(
                        participant_id=user.participant_id,
                        display_name=user.display_name,
                        action=user.pattern.type,
                        success=False,
                        skipped=True,
                        error="Correction for this pattern is disabled",
                    ))
                    continue

                fields, reason = planned
                fields.update({"fixed_date": now, "fixed_by": self.fixed_by, "fix_reason": reason})
                await survivor_store.write_status(user.participant_id, fields)
                await log_audit(
                    actor_id=actor,
                    target_id=user.participant_id,
                    action="SURVIVOR_STATUS_FIXED",
                    metadata={
                        "pool_id": self.pool_id,
                        "pattern": user.pattern.model_dump(),
                        "after": {k: v for k, v in fields.items() if k != "eliminated_date"},
                        "reason": reason,
                    },
                )
                report.results.append(FixResult(
                    participant_id=user.participant_id,
                    display_name=user.display_name,
                    action=user.pattern.type,
                    success=True,
                ))
                logger.info("Survivor fix applied: %s (%s) - %s", user.display_name, user.participant_id, user.pattern.type)
            except Exception as exc:
                logger.error("Survivor fix failed for %s: %s", user.participant_id, exc)
                report.results.append(FixResult(
                    participant_id=user.participant_id,
                    display_name=user.display_name,
                    action=user.pattern.type,
                    success=False,
                    error=str(exc),
                ))
            finally:
                if self.write_delay and index < len(verified) - 1:
                    await asyncio.sleep(self.write_delay)

        for result in report.results:
            outcome = "fixed" if result.success else ("skipped" if result.skipped else "failed")
            METRIC_AUDIT_FIXES.labels(pattern=result.action, outcome=outcome).inc()

        report.summary = FixSummary(
            total=len(verified),
            fixed=sum(1 for r in report.results if r.success),
            skipped=sum(1 for r in report.results if r.skipped),
            failed=sum(1 for r in report.results if not r.success and not r.skipped),
        )
        logger.info(
            "Survivor batch fix complete: fixed=%d skipped=%d failed=%d",
            report.summary.fixed, report.summary.skipped, report.summary.failed,
        )
        return report

    async def run_and_fix(
        self,
        signal_user_id: str,
        *,
        actor_id: str | None = None,
        pattern_types: Iterable[PatternType] | None = None,
    ) -> tuple[AuditReport, FixReport]:
        report = await self.run_analysis(signal_user_id, pattern_types)
        fixes = await self.apply_fixes(report.verification_results.verified, actor_id=actor_id)
        return report, fixes
