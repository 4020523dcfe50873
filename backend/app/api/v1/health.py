"""
Health check and status endpoints.
"""
from fastapi import APIRouter, Request
from app.core.datetime_utils import utc_now
from app.core import settings

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """
    Health check endpoint.
    Returns basic health status of the API and the reconciliation scheduler.
    """
    scheduler = getattr(request.app.state, "reconciliation_scheduler", None)
    reconciler_status = {
        "enabled": settings.SESSION_RECONCILER_ENABLED,
        "running": bool(scheduler and scheduler.is_running),
    }
    if scheduler is not None:
        reconciler_status.update(scheduler.stats.to_dict())

    return {
        "status": "healthy",
        "timestamp": utc_now().isoformat(),
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "session_reconciler": reconciler_status,
    }


@router.get("/ping")
async def ping():
    """
    Simple ping endpoint for basic connectivity testing.
    """
    return {"message": "pong"}
