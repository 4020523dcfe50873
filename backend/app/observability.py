"""
Error tracking for alert-worthy failures.

Routine per-session reconciliation errors are logged only. Failures that
take out a whole pass (the session store is unreachable) are forwarded to
Sentry when ``SENTRY_DSN`` is configured.

Usage:
    from app.observability import capture_error

    capture_error(exc, context={"run_id": run_id})
"""
import logging
from typing import Any, Dict, Optional

import sentry_sdk

from app.core.config import settings

logger = logging.getLogger(__name__)

_initialized = False


def init_error_tracking() -> bool:
    """
    Initialize Sentry if a DSN is configured.

    Returns:
        True if error tracking is active after the call
    """
    global _initialized
    if _initialized:
        return True
    if not settings.SENTRY_DSN:
        logger.info("Sentry error tracking disabled (SENTRY_DSN not set)")
        return False

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.ENV,
        release=settings.APP_VERSION,
        traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
    )
    _initialized = True
    logger.info("Sentry error tracking initialized")
    return True


def shutdown_error_tracking(timeout: float = 2.0) -> None:
    """Flush pending events on shutdown."""
    global _initialized
    if _initialized:
        sentry_sdk.flush(timeout=timeout)
        _initialized = False


def capture_error(
    exc: BaseException,
    context: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Report an exception to Sentry. Never raises.

    Args:
        exc: The exception to report
        context: Extra structured data attached under "details"
    """
    if not _initialized:
        return
    try:
        with sentry_sdk.new_scope() as scope:
            if context:
                scope.set_context("details", context)
            sentry_sdk.capture_exception(exc)
    except Exception:
        # Error reporting must never break the caller
        logger.debug("Failed to report error to Sentry", exc_info=True)
