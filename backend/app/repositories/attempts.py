"""
Read-only view over recorded test attempts.

The session reconciler only needs to know whether a session was attempted
at all, which decides between ``completed`` and ``expired`` at window close.
"""
from typing import Protocol

from sqlalchemy import exists, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.errors import DependencyUnavailableError
from app.models.models import TestAttempt


class AttemptCounter(Protocol):
    """Answers whether a session has at least one recorded attempt."""

    async def has_any_attempt(self, session_id: str) -> bool:
        ...


class SqlAlchemyAttemptCounter:
    """AttemptCounter backed by the ``test_attempts`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def has_any_attempt(self, session_id: str) -> bool:
        """
        Check for at least one attempt recorded against ``session_id``.

        Raises:
            DependencyUnavailableError: If the attempt store cannot be queried
        """
        stmt = select(exists().where(TestAttempt.session_id == session_id))
        try:
            async with self._session_factory() as db:
                result = await db.execute(stmt)
                return bool(result.scalar())
        except SQLAlchemyError as e:
            raise DependencyUnavailableError(
                f"count attempts for session {session_id}", e
            ) from e
