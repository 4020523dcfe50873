"""
Periodic driver for session status reconciliation.

``ReconciliationScheduler`` owns one asyncio task that runs a reconciliation
pass immediately on ``start()`` and then on a fixed cadence. It carries no
business logic; it only guarantees:

- Single flight: a pass that is still running when the next one is due
  (a slow tick, or a manual trigger) causes that run to be skipped, never
  queued or run concurrently.
- One ``now`` per pass, taken from the injected clock and handed to the
  reconciler.
- Liveness: a pass that fails outright is logged and reported to error
  tracking, and the loop keeps ticking.

Instances are independent, so tests (or several apps in one process) can
each own a scheduler.

Usage:
    scheduler = ReconciliationScheduler(reconciler, interval_seconds=180)
    scheduler.start()
    ...
    await scheduler.stop()
"""
import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from app.core.datetime_utils import Clock, utc_now
from app.observability import capture_error
from app.services.session_reconciler import ReconciliationReport, StatusReconciler

logger = logging.getLogger(__name__)

DEFAULT_STOP_TIMEOUT_SECONDS = 10.0


@dataclass
class SchedulerStats:
    """Counters describing the scheduler's history since creation."""

    runs_completed: int = 0
    runs_failed: int = 0
    runs_skipped: int = 0
    last_run_at: Optional[datetime] = None
    last_error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "runs_completed": self.runs_completed,
            "runs_failed": self.runs_failed,
            "runs_skipped": self.runs_skipped,
            "last_run_at": self.last_run_at.isoformat() if self.last_run_at else None,
            "last_error": self.last_error,
        }


class ReconciliationScheduler:
    """
    Runs ``StatusReconciler.run`` on a fixed interval.

    Args:
        reconciler: The reconciler to drive
        interval_seconds: Seconds between scheduled passes
        clock: Source of the per-pass ``now``
    """

    def __init__(
        self,
        reconciler: StatusReconciler,
        *,
        interval_seconds: float,
        clock: Clock = utc_now,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be positive, got {interval_seconds}")
        self._reconciler = reconciler
        self._interval = interval_seconds
        self._clock = clock
        self._run_lock = asyncio.Lock()
        self._stop_event: Optional[asyncio.Event] = None
        self._task: Optional[asyncio.Task] = None
        self.stats = SchedulerStats()
        self.last_report: Optional[ReconciliationReport] = None

    @property
    def interval_seconds(self) -> float:
        return self._interval

    @property
    def is_running(self) -> bool:
        """True while the periodic loop is alive."""
        return self._task is not None and not self._task.done()

    @property
    def is_reconciling(self) -> bool:
        """True while a pass is in progress."""
        return self._run_lock.locked()

    def start(self) -> None:
        """Start the periodic loop. The first pass runs immediately."""
        if self.is_running:
            logger.warning("Session reconciliation scheduler already running")
            return
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(
            self._run_loop(), name="session-reconciliation-scheduler"
        )
        logger.info(
            f"Session reconciliation scheduler started ({self._interval:g}s interval)"
        )

    async def stop(self, timeout: float = DEFAULT_STOP_TIMEOUT_SECONDS) -> None:
        """
        Stop the loop, letting an in-flight pass finish within ``timeout``.

        A pass still running after ``timeout`` is cancelled; its
        conditioned writes leave every session in a consistent state.
        """
        if self._task is None:
            return
        if self._stop_event is not None:
            self._stop_event.set()
        task, self._task = self._task, None
        try:
            await asyncio.wait_for(task, timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(
                f"Session reconciliation pass did not finish within {timeout}s; cancelled"
            )
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                raise
        logger.info("Session reconciliation scheduler stopped")

    async def run_once(self, *, raise_errors: bool = False) -> Optional[ReconciliationReport]:
        """
        Run a single pass unless one is already in progress.

        Args:
            raise_errors: Re-raise a failed pass instead of only logging it
                (manual triggers want the error; the loop does not)

        Returns:
            The pass report, or None if the pass was skipped or failed
        """
        if self._run_lock.locked():
            self.stats.runs_skipped += 1
            logger.warning(
                "Session reconciliation already in progress; skipping this run"
            )
            return None

        async with self._run_lock:
            now = self._clock()
            self.stats.last_run_at = now
            try:
                report = await self._reconciler.run(now)
            except Exception as e:
                self.stats.runs_failed += 1
                self.stats.last_error = f"{type(e).__name__}: {e}"
                logger.error(f"Session reconciliation pass failed: {e}", exc_info=True)
                capture_error(e, context={"now": now.isoformat()})
                if raise_errors:
                    raise
                return None

            self.stats.runs_completed += 1
            self.stats.last_error = None
            self.last_report = report
            return report

    async def _run_loop(self) -> None:
        if self._stop_event is None:
            return
        loop = asyncio.get_running_loop()
        next_tick = loop.time()

        while not self._stop_event.is_set():
            await self.run_once()

            next_tick += self._interval
            current = loop.time()
            if current > next_tick:
                # The pass overran one or more ticks; drop them
                missed = int((current - next_tick) // self._interval) + 1
                self.stats.runs_skipped += missed
                next_tick += missed * self._interval
                logger.warning(
                    f"Session reconciliation pass overran its interval; "
                    f"skipped {missed} scheduled run(s)"
                )

            try:
                await asyncio.wait_for(
                    self._stop_event.wait(), timeout=max(0.0, next_tick - loop.time())
                )
            except asyncio.TimeoutError:
                pass
