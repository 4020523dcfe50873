"""
Time-driven status reconciliation for test sessions.

A reconciliation pass captures one ``now`` and walks every auto-expiring
session that may be due for a transition:

    draft  -> active               when now >= start_time
    active -> completed | expired  when now >= end_time
                                   (completed iff at least one attempt exists)

``expired``, ``completed`` and ``cancelled`` are terminal. ``cancelled`` is set
by administrators only and is never overwritten.

Every write is conditioned on the status the pass observed
(``UPDATE ... WHERE id = :id AND status = :from``), so concurrent passes on
other instances, or a repeat of this pass, turn into no-ops instead of double
transitions. No lock is needed across instances.

Per-session failures (store write errors, attempt lookups that fail or time
out) are logged and recorded in the report; the rest of the pass continues
and the session is re-evaluated next pass. Only a failure to list candidates
propagates to the caller.
"""
import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from app.core.config import settings
from app.core.datetime_utils import ensure_timezone_aware
from app.core.errors import DependencyUnavailableError
from app.models.models import SessionStatus, TestSession
from app.repositories.attempts import AttemptCounter
from app.repositories.sessions import SessionRepository

logger = logging.getLogger(__name__)


@dataclass
class ReconciliationError:
    """A per-session failure recorded during a pass."""

    session_id: str
    session_code: Optional[str]
    from_status: str
    error_type: str
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "session_code": self.session_code,
            "from_status": self.from_status,
            "error_type": self.error_type,
            "message": self.message,
        }


@dataclass
class ReconciliationReport:
    """Outcome of one reconciliation pass.

    Attributes:
        run_id: Identifier used to correlate log lines for this pass
        now: The single moment every session in the pass was evaluated against
        candidates: Number of sessions examined
        promoted: Ids moved draft -> active
        completed: Ids moved active -> completed
        expired: Ids moved active -> expired
        unchanged: Conditioned writes that matched no row (already moved)
        errors: Per-session failures, retried on the next pass
        duration_ms: Wall time spent on the pass
    """

    run_id: str
    now: datetime
    candidates: int = 0
    promoted: List[str] = field(default_factory=list)
    completed: List[str] = field(default_factory=list)
    expired: List[str] = field(default_factory=list)
    unchanged: int = 0
    errors: List[ReconciliationError] = field(default_factory=list)
    duration_ms: float = 0.0

    @property
    def transitions(self) -> int:
        """Total number of transitions this pass applied."""
        return len(self.promoted) + len(self.completed) + len(self.expired)

    def to_dict(self) -> Dict[str, Any]:
        """Convert the report to a dictionary for API responses."""
        return {
            "run_id": self.run_id,
            "now": self.now.isoformat(),
            "candidates": self.candidates,
            "promoted": list(self.promoted),
            "completed": list(self.completed),
            "expired": list(self.expired),
            "unchanged": self.unchanged,
            "errors": [error.to_dict() for error in self.errors],
            "transitions": self.transitions,
            "duration_ms": self.duration_ms,
        }


class StatusReconciler:
    """
    Applies time-driven session status transitions.

    Holds no state between passes; everything it decides is re-derived from
    the repository and the ``now`` passed to ``run``.

    Args:
        repository: Session store (read candidates, conditioned status writes)
        attempt_counter: Answers whether a session has any recorded attempt
        attempt_timeout_seconds: Per-session limit on the attempt lookup
        batch_limit: Maximum candidates examined per pass
    """

    def __init__(
        self,
        repository: SessionRepository,
        attempt_counter: AttemptCounter,
        *,
        attempt_timeout_seconds: Optional[float] = None,
        batch_limit: Optional[int] = None,
    ) -> None:
        self._repository = repository
        self._attempt_counter = attempt_counter
        self._attempt_timeout = (
            attempt_timeout_seconds
            if attempt_timeout_seconds is not None
            else settings.SESSION_RECONCILE_ATTEMPT_TIMEOUT_SECONDS
        )
        self._batch_limit = (
            batch_limit
            if batch_limit is not None
            else settings.SESSION_RECONCILE_BATCH_LIMIT
        )

    async def run(self, now: datetime) -> ReconciliationReport:
        """
        Run one reconciliation pass against ``now``.

        Args:
            now: The moment to evaluate every session against

        Returns:
            ReconciliationReport listing applied transitions and per-session errors

        Raises:
            TransientStoreError: If candidate sessions cannot be listed
        """
        now = ensure_timezone_aware(now)
        report = ReconciliationReport(run_id=uuid.uuid4().hex[:12], now=now)
        started = time.perf_counter()

        candidates = await self._repository.find_candidates_for_reconciliation(
            now, limit=self._batch_limit
        )
        report.candidates = len(candidates)

        for session in candidates:
            await self._reconcile_session(session, now, report)

        report.duration_ms = round((time.perf_counter() - started) * 1000, 2)
        log_level = logging.WARNING if report.errors else logging.INFO
        logger.log(
            log_level,
            f"Session reconciliation {report.run_id} finished: "
            f"{report.candidates} candidate(s), {len(report.promoted)} promoted, "
            f"{len(report.completed)} completed, {len(report.expired)} expired, "
            f"{report.unchanged} unchanged, {len(report.errors)} error(s)",
            extra={"run_id": report.run_id, "duration_ms": report.duration_ms},
        )
        return report

    async def _reconcile_session(
        self, session: TestSession, now: datetime, report: ReconciliationReport
    ) -> None:
        status = SessionStatus(session.status)
        if not session.auto_expire or status.is_terminal:
            return

        try:
            if status == SessionStatus.DRAFT:
                if now < ensure_timezone_aware(session.start_time):
                    return
                if not await self._transition(
                    session, SessionStatus.DRAFT, SessionStatus.ACTIVE, now, report
                ):
                    return
                report.promoted.append(session.id)
                # A draft whose whole window already passed closes in the same pass
                status = SessionStatus.ACTIVE

            if status == SessionStatus.ACTIVE and now >= ensure_timezone_aware(
                session.end_time
            ):
                has_attempts = await self._has_any_attempt(session.id)
                target = (
                    SessionStatus.COMPLETED if has_attempts else SessionStatus.EXPIRED
                )
                if await self._transition(
                    session, SessionStatus.ACTIVE, target, now, report
                ):
                    if target == SessionStatus.COMPLETED:
                        report.completed.append(session.id)
                    else:
                        report.expired.append(session.id)
        except Exception as e:
            report.errors.append(
                ReconciliationError(
                    session_id=session.id,
                    session_code=session.session_code,
                    from_status=status.value,
                    error_type=type(e).__name__,
                    message=str(e),
                )
            )
            logger.warning(
                f"Failed to reconcile session {session.session_code} ({session.id}) "
                f"from {status.value}; will retry next pass: {e}",
                extra={
                    "run_id": report.run_id,
                    "session_id": session.id,
                    "session_code": session.session_code,
                    "from_status": status.value,
                },
                exc_info=not isinstance(e, DependencyUnavailableError),
            )

    async def _has_any_attempt(self, session_id: str) -> bool:
        try:
            return await asyncio.wait_for(
                self._attempt_counter.has_any_attempt(session_id),
                timeout=self._attempt_timeout,
            )
        except asyncio.TimeoutError as e:
            raise DependencyUnavailableError(
                f"count attempts for session {session_id}",
                e,
                message=(
                    f"Attempt lookup for session {session_id} timed out after "
                    f"{self._attempt_timeout}s"
                ),
            ) from e

    async def _transition(
        self,
        session: TestSession,
        from_status: SessionStatus,
        to_status: SessionStatus,
        now: datetime,
        report: ReconciliationReport,
    ) -> bool:
        applied = await self._repository.conditional_update_status(
            session.id, from_status, to_status, now
        )
        extra = {
            "run_id": report.run_id,
            "session_id": session.id,
            "session_code": session.session_code,
            "from_status": from_status.value,
            "to_status": to_status.value,
        }
        if applied:
            logger.info(
                f"Updated session {session.session_name} ({session.session_code}) "
                f"from {from_status.value.upper()} -> {to_status.value.upper()}",
                extra=extra,
            )
        else:
            report.unchanged += 1
            logger.debug(
                f"Session {session.session_code} no longer {from_status.value}; "
                "transition already applied elsewhere",
                extra=extra,
            )
        return applied
