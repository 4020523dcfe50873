"""
Admin API endpoints.

All endpoints require authentication via the X-Admin-Token header.

Submodules:
    - sessions: Session status reconciliation trigger and scheduler status
"""
from fastapi import APIRouter

from . import sessions

router = APIRouter()

router.include_router(
    sessions.router,
    tags=["Admin - Sessions"],
)
