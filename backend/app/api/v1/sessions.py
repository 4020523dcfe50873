"""
Participant-facing test session endpoints.
"""
import logging

from fastapi import APIRouter, Depends, Response

from app.core.error_responses import (
    ErrorMessages,
    raise_not_found,
    raise_service_unavailable,
)
from app.core.datetime_utils import utc_now
from app.core.errors import SessionNotFoundError, TransientStoreError
from app.models import AsyncSessionLocal
from app.repositories.sessions import SqlAlchemySessionRepository
from app.schemas.test_sessions import AccessResultResponse, SessionByCodeResponse
from app.services.session_resolver import SessionCodeResolver

logger = logging.getLogger(__name__)

router = APIRouter()


def get_session_repository() -> SqlAlchemySessionRepository:
    """Dependency providing the session repository."""
    return SqlAlchemySessionRepository(AsyncSessionLocal)


def get_session_resolver(
    repository: SqlAlchemySessionRepository = Depends(get_session_repository),
) -> SessionCodeResolver:
    """Dependency providing the code resolver."""
    return SessionCodeResolver(repository)


@router.get("/code/{session_code}", response_model=SessionByCodeResponse)
async def get_session_by_code(
    session_code: str,
    response: Response,
    resolver: SessionCodeResolver = Depends(get_session_resolver),
):
    """
    Resolve a join code to its session, modules and access decision.

    The HTTP status mirrors the access decision: 200 when the session can be
    joined (or is simply not open yet), 410 when it is cancelled or expired,
    425 when it has not started. Unknown codes return 404.
    """
    try:
        resolved = await resolver.resolve(session_code)
    except SessionNotFoundError:
        raise_not_found(ErrorMessages.session_code_not_found(session_code))
    except TransientStoreError as e:
        logger.error(f"Failed to resolve session code {session_code}: {e}")
        raise_service_unavailable(ErrorMessages.STORE_UNAVAILABLE)

    response.status_code = resolved.access.response_code
    return SessionByCodeResponse.from_resolved(resolved, timestamp=utc_now())


@router.get("/{session_id}/access", response_model=AccessResultResponse)
async def get_session_access(
    session_id: str,
    resolver: SessionCodeResolver = Depends(get_session_resolver),
):
    """
    Evaluate whether a session can be entered right now.

    Always 200 when the session exists; the decision is in the body.
    """
    try:
        result = await resolver.evaluate_access(session_id)
    except SessionNotFoundError:
        raise_not_found(ErrorMessages.session_id_not_found(session_id))
    except TransientStoreError as e:
        logger.error(f"Failed to evaluate access for session {session_id}: {e}")
        raise_service_unavailable(ErrorMessages.STORE_UNAVAILABLE)

    return AccessResultResponse.from_result(result)
