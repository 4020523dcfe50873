"""
Persistence for test sessions and their module assignments.

``SessionRepository`` is the contract the lifecycle code depends on;
``SqlAlchemySessionRepository`` implements it over the async engine. Each
method runs in its own short transaction so one failing write never poisons
the next, and every SQLAlchemy failure surfaces as ``TransientStoreError``.
"""
import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Protocol

from sqlalchemy import and_, case, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from app.core.errors import SessionNotFoundError, TransientStoreError
from app.core.session_codes import generate_session_code
from app.core.validators import (
    validate_session_code,
    validate_session_modules,
    validate_time_window,
)
from app.models.models import SessionModule, SessionStatus, TestSession

logger = logging.getLogger(__name__)


class SessionRepository(Protocol):
    """Storage contract for session records."""

    async def get_by_id(self, session_id: str) -> Optional[TestSession]:
        ...

    async def get_by_code(self, session_code: str) -> Optional[TestSession]:
        ...

    async def find_candidates_for_reconciliation(
        self, now: datetime, limit: Optional[int] = None
    ) -> List[TestSession]:
        ...

    async def conditional_update_status(
        self,
        session_id: str,
        expected_current: SessionStatus,
        new_status: SessionStatus,
        now: datetime,
    ) -> bool:
        ...


def _with_modules():
    return selectinload(TestSession.session_modules).selectinload(SessionModule.test)


class SqlAlchemySessionRepository:
    """
    SessionRepository backed by SQLAlchemy's async ORM.

    Args:
        session_factory: Factory producing AsyncSession instances
            (``AsyncSessionLocal`` in the application)
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get_by_id(self, session_id: str) -> Optional[TestSession]:
        """Load a session with its modules (and their tests) by primary key."""
        stmt = (
            select(TestSession)
            .options(_with_modules())
            .where(TestSession.id == session_id)
        )
        return await self._fetch_one("get session by id", stmt)

    async def get_by_code(self, session_code: str) -> Optional[TestSession]:
        """Load a session by exact, case-sensitive match on its code."""
        stmt = (
            select(TestSession)
            .options(_with_modules())
            .where(TestSession.session_code == session_code)
            .limit(1)
        )
        return await self._fetch_one("get session by code", stmt)

    async def find_candidates_for_reconciliation(
        self, now: datetime, limit: Optional[int] = None
    ) -> List[TestSession]:
        """
        Find sessions that may need a time-driven transition at ``now``.

        Returns auto-expiring sessions that are either drafts whose start time
        has arrived or active sessions whose end time has arrived, most
        recently due first, so a capped batch always reaches sessions that
        just came due even when older rows keep failing. Callers must still
        re-check each row: the filter is an optimization, not a guarantee.
        """
        due_at = case(
            (TestSession.status == SessionStatus.DRAFT, TestSession.start_time),
            else_=TestSession.end_time,
        )
        stmt = (
            select(TestSession)
            .where(
                TestSession.auto_expire.is_(True),
                or_(
                    and_(
                        TestSession.status == SessionStatus.DRAFT,
                        TestSession.start_time <= now,
                    ),
                    and_(
                        TestSession.status == SessionStatus.ACTIVE,
                        TestSession.end_time <= now,
                    ),
                ),
            )
            .order_by(due_at.desc(), TestSession.id)
        )
        if limit is not None:
            stmt = stmt.limit(limit)

        try:
            async with self._session_factory() as db:
                result = await db.execute(stmt)
                return list(result.scalars().all())
        except SQLAlchemyError as e:
            raise TransientStoreError("find reconciliation candidates", e) from e

    async def conditional_update_status(
        self,
        session_id: str,
        expected_current: SessionStatus,
        new_status: SessionStatus,
        now: datetime,
    ) -> bool:
        """
        Atomically move a session from ``expected_current`` to ``new_status``.

        Issues ``UPDATE ... WHERE id = :id AND status = :expected``. When
        another writer has already moved the row (or an admin cancelled it),
        no row matches and the call is a no-op.

        Returns:
            True if this call applied the transition, False if it no-oped
        """
        stmt = (
            update(TestSession)
            .where(
                TestSession.id == session_id,
                TestSession.status == expected_current,
            )
            .values(status=new_status, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        try:
            async with self._session_factory() as db:
                result = await db.execute(stmt)
                await db.commit()
                return (result.rowcount or 0) > 0
        except SQLAlchemyError as e:
            raise TransientStoreError(
                f"update session {session_id} status to {new_status.value}", e
            ) from e

    async def create(
        self,
        *,
        session_name: str,
        start_time: datetime,
        end_time: datetime,
        session_modules: Iterable[Dict[str, Any]],
        target_position: str = "",
        session_code: Optional[str] = None,
        status: SessionStatus = SessionStatus.DRAFT,
        auto_expire: bool = True,
        allow_late_entry: bool = False,
        **fields: Any,
    ) -> TestSession:
        """
        Create a session and its module assignments in one transaction.

        Validates the time window, code format and module list before
        touching the database. A code is generated when none is given.

        Raises:
            InvalidTimeWindowError, InvalidSessionCodeError,
            InvalidSessionModulesError: On invalid input
            TransientStoreError: If the insert fails
        """
        validate_time_window(start_time, end_time)
        modules = list(session_modules)
        validate_session_modules(modules)
        code = validate_session_code(
            session_code or generate_session_code(session_name, target_position)
        )

        session = TestSession(
            session_name=session_name,
            session_code=code,
            start_time=start_time,
            end_time=end_time,
            target_position=target_position,
            status=status,
            auto_expire=auto_expire,
            allow_late_entry=allow_late_entry,
            **fields,
        )
        session.session_modules = [
            SessionModule(
                test_id=module["test_id"],
                sequence=module["sequence"],
                is_required=module.get("is_required", True),
                weight=module.get("weight", 1.0),
            )
            for module in modules
        ]

        try:
            async with self._session_factory() as db:
                db.add(session)
                await db.flush()
                session_id = session.id
                await db.commit()
        except SQLAlchemyError as e:
            raise TransientStoreError("create test session", e) from e

        logger.info(
            f"Created test session {code} ({session_id}) with {len(modules)} module(s)",
            extra={"session_id": session_id, "session_code": code},
        )
        created = await self.get_by_id(session_id)
        if created is None:
            raise SessionNotFoundError(session_id)
        return created

    async def _fetch_one(self, operation: str, stmt) -> Optional[TestSession]:
        try:
            async with self._session_factory() as db:
                result = await db.execute(stmt)
                return result.scalars().first()
        except SQLAlchemyError as e:
            raise TransientStoreError(operation, e) from e
