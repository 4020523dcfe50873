"""
Shared dependencies for admin endpoints.
"""
import logging
import secrets

from fastapi import Header, Request

from app.core.config import settings
from app.core.error_responses import (
    ErrorMessages,
    raise_unauthorized,
    raise_not_configured,
)
from app.services.reconciliation_scheduler import ReconciliationScheduler

logger = logging.getLogger(__name__)


def _verify_secret_header(
    header_value: str,
    expected_secret: str | None,
    not_configured_detail: str,
    invalid_detail: str,
) -> bool:
    """
    Verify a secret header value against an expected secret.

    Uses constant-time comparison to prevent timing attacks.

    Raises:
        HTTPException: 500 if secret not configured, 401 if invalid
    """
    if not expected_secret:
        raise_not_configured(not_configured_detail)

    if not secrets.compare_digest(header_value, expected_secret):
        raise_unauthorized(invalid_detail, include_www_authenticate=False)

    return True


async def verify_admin_token(x_admin_token: str = Header(...)) -> bool:
    """
    Verify admin token from request header.

    Args:
        x_admin_token: Admin token from X-Admin-Token header

    Raises:
        HTTPException: If token is invalid or not configured
    """
    return _verify_secret_header(
        header_value=x_admin_token,
        expected_secret=settings.ADMIN_TOKEN,
        not_configured_detail=ErrorMessages.ADMIN_TOKEN_NOT_CONFIGURED,
        invalid_detail=ErrorMessages.ADMIN_TOKEN_INVALID,
    )


def get_reconciliation_scheduler(request: Request) -> ReconciliationScheduler:
    """Dependency returning the scheduler created in the application lifespan."""
    scheduler = getattr(request.app.state, "reconciliation_scheduler", None)
    if scheduler is None:
        raise_not_configured(ErrorMessages.RECONCILER_NOT_INITIALIZED)
    return scheduler
