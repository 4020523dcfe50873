"""
Session lifecycle admin endpoints.

Endpoints for forcing a status reconciliation pass and inspecting the
background scheduler.
"""
import logging

from fastapi import APIRouter, Depends

from app.core.error_responses import ErrorMessages, raise_service_unavailable
from app.core.errors import TransientStoreError
from app.schemas.test_sessions import (
    ReconcileTriggerResponse,
    ReconciliationReportResponse,
)
from app.services.reconciliation_scheduler import ReconciliationScheduler

from ._dependencies import get_reconciliation_scheduler, verify_admin_token

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/sessions/reconcile", response_model=ReconcileTriggerResponse)
async def reconcile_sessions(
    scheduler: ReconciliationScheduler = Depends(get_reconciliation_scheduler),
    _: bool = Depends(verify_admin_token),
):
    r"""
    Run a session status reconciliation pass now.

    Shares the scheduler's single-flight guard: if a pass is already running
    (scheduled or manual), this request returns immediately with
    ``skipped=true`` rather than starting a concurrent pass. Passes are
    idempotent, so repeating this call is safe.

    Requires X-Admin-Token header with valid admin token.

    Example:
        ```
        curl -X POST https://api.example.com/v1/admin/sessions/reconcile \
          -H "X-Admin-Token: your-admin-token"
        ```
    """
    if scheduler.is_reconciling:
        logger.warning("Manual reconciliation rejected: pass already in progress")
        return ReconcileTriggerResponse(
            message="Session reconciliation already in progress",
            skipped=True,
        )

    try:
        report = await scheduler.run_once(raise_errors=True)
    except TransientStoreError:
        raise_service_unavailable(ErrorMessages.STORE_UNAVAILABLE)

    if report is None:
        return ReconcileTriggerResponse(
            message="Session reconciliation already in progress",
            skipped=True,
        )
    return ReconcileTriggerResponse(
        message="Session reconciliation completed",
        report=ReconciliationReportResponse.from_report(report),
    )


@router.get("/sessions/reconcile/status")
async def reconciliation_status(
    scheduler: ReconciliationScheduler = Depends(get_reconciliation_scheduler),
    _: bool = Depends(verify_admin_token),
):
    """
    Report scheduler liveness and the last pass summary.

    Requires X-Admin-Token header with valid admin token.
    """
    last_report = scheduler.last_report
    return {
        "running": scheduler.is_running,
        "reconciling": scheduler.is_reconciling,
        "interval_seconds": scheduler.interval_seconds,
        "stats": scheduler.stats.to_dict(),
        "last_report": last_report.to_dict() if last_report else None,
    }
