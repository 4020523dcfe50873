"""
Standardized error response messages and builders.

This module provides consistent error messages and HTTPException builders
for the API. Participant-facing access messages (cancelled, expired, too
early) are not errors and live in ``app.core.session_access``.

Error Message Format Guidelines:
- Use sentence case (capitalize first letter only)
- End with a period for complete sentences
- Use "Please try again later." for transient server errors

Usage:
    from app.core.error_responses import ErrorMessages, raise_not_found

    if session is None:
        raise_not_found(ErrorMessages.session_code_not_found(code))
"""

from typing import NoReturn

from fastapi import HTTPException, status


class ErrorMessages:
    """Centralized error message constants and templates.

    Naming Convention:
    - Constants: SCREAMING_SNAKE_CASE for static messages
    - Methods: snake_case for templates that accept parameters
    """

    # ==========================================================================
    # Authentication Errors (401)
    # ==========================================================================
    ADMIN_TOKEN_INVALID = "Invalid admin token."

    # ==========================================================================
    # Server Errors (500/503)
    # ==========================================================================
    ADMIN_TOKEN_NOT_CONFIGURED = "Admin token not configured on server."
    RECONCILER_NOT_INITIALIZED = "Session reconciliation scheduler is not initialized."
    STORE_UNAVAILABLE = (
        "Session store is temporarily unavailable. Please try again later."
    )

    # ==========================================================================
    # Template Methods for Dynamic Messages
    # ==========================================================================
    @staticmethod
    def session_code_not_found(session_code: str) -> str:
        """Message for an unknown join code."""
        return f'Test session with code "{session_code}" not found.'

    @staticmethod
    def session_id_not_found(session_id: str) -> str:
        """Message for an unknown session id."""
        return f"Test session not found (ID: {session_id})."


# ==============================================================================
# HTTPException Builder Functions
# ==============================================================================


def raise_unauthorized(
    detail: str,
    include_www_authenticate: bool = True,
) -> NoReturn:
    """Raise a 401 Unauthorized exception.

    Args:
        detail: User-facing error message
        include_www_authenticate: Whether to include WWW-Authenticate header

    Raises:
        HTTPException: 401 Unauthorized
    """
    headers = {"WWW-Authenticate": "Bearer"} if include_www_authenticate else None
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers=headers,
    )


def raise_not_found(detail: str) -> NoReturn:
    """Raise a 404 Not Found exception.

    Args:
        detail: User-facing error message

    Raises:
        HTTPException: 404 Not Found
    """
    raise HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=detail,
    )


def raise_service_unavailable(detail: str) -> NoReturn:
    """Raise a 503 Service Unavailable exception.

    Use when a backing store failed in a way that may succeed on retry.

    Raises:
        HTTPException: 503 Service Unavailable
    """
    raise HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=detail,
    )


def raise_not_configured(detail: str) -> NoReturn:
    """Raise a 500 error for missing server configuration.

    Args:
        detail: Error message describing what's not configured

    Raises:
        HTTPException: 500 Internal Server Error
    """
    raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=detail,
    )
