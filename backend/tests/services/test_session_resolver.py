"""
Tests for resolving join codes to sessions.
"""
from datetime import timedelta

import pytest

from app.core.datetime_utils import fixed_clock
from app.core.errors import SessionNotFoundError
from app.core.session_access import AccessOutcome
from app.models import SessionStatus
from app.services.session_resolver import SessionCodeResolver, ordered_module_views


class TestResolve:
    """Tests for SessionCodeResolver.resolve."""

    @pytest.mark.asyncio
    async def test_modules_are_ordered_by_sequence(
        self, session_repository, make_session, now
    ):
        """Modules stored as sequence 2, 1 come back as 1, 2."""
        await make_session(
            session_code="ORDER-1",
            status=SessionStatus.ACTIVE,
            module_sequences=(2, 1),
        )
        resolver = SessionCodeResolver(session_repository)

        resolved = await resolver.resolve("ORDER-1", now=now + timedelta(minutes=5))

        assert [m.sequence for m in resolved.modules] == [1, 2]
        assert [m.name for m in resolved.modules] == ["Tes Kepribadian", "Tes Logika"]

    @pytest.mark.asyncio
    async def test_active_session_is_accessible(
        self, session_repository, make_session, now
    ):
        """Inside the window an active session can be joined."""
        await make_session(session_code="OPEN-1", status=SessionStatus.ACTIVE)
        resolver = SessionCodeResolver(session_repository)

        resolved = await resolver.resolve("OPEN-1", now=now + timedelta(minutes=5))

        assert resolved.access.accessible is True
        assert resolved.access.time_remaining_minutes == 55
        assert resolved.session.session_code == "OPEN-1"

    @pytest.mark.asyncio
    async def test_cancelled_session_is_gone(self, session_repository, make_session, now):
        """Cancelled sessions resolve with a 410 decision."""
        await make_session(session_code="GONE-1", status=SessionStatus.CANCELLED)
        resolver = SessionCodeResolver(session_repository)

        resolved = await resolver.resolve("GONE-1", now=now)

        assert resolved.access.accessible is False
        assert resolved.access.response_code == 410
        assert resolved.access.outcome == AccessOutcome.CANCELLED

    @pytest.mark.asyncio
    async def test_unknown_code_raises(self, session_repository):
        """Unknown codes raise SessionNotFoundError."""
        resolver = SessionCodeResolver(session_repository)

        with pytest.raises(SessionNotFoundError) as exc_info:
            await resolver.resolve("NOPE-404")

        assert exc_info.value.by == "code"
        assert exc_info.value.identifier == "NOPE-404"

    @pytest.mark.asyncio
    async def test_clock_is_used_without_explicit_now(
        self, session_repository, make_session, now
    ):
        """The injected clock supplies the evaluation time."""
        await make_session(session_code="EARLY-1", status=SessionStatus.ACTIVE)
        resolver = SessionCodeResolver(
            session_repository, clock=fixed_clock(now - timedelta(minutes=20))
        )

        resolved = await resolver.resolve("EARLY-1")

        assert resolved.access.outcome == AccessOutcome.TOO_EARLY
        assert resolved.access.minutes_until_start == 20

    @pytest.mark.asyncio
    async def test_resolution_does_not_write(
        self, session_repository, make_session, read_status, now
    ):
        """Resolving an overdue draft leaves its status alone."""
        session = await make_session(session_code="STALE-1")
        resolver = SessionCodeResolver(session_repository)

        await resolver.resolve("STALE-1", now=now + timedelta(hours=3))

        assert await read_status(session.id) == SessionStatus.DRAFT


class TestEvaluateAccessById:
    """Tests for SessionCodeResolver.evaluate_access."""

    @pytest.mark.asyncio
    async def test_by_id(self, session_repository, make_session, now):
        """Access can be evaluated by session id."""
        session = await make_session(status=SessionStatus.EXPIRED)
        resolver = SessionCodeResolver(session_repository)

        result = await resolver.evaluate_access(session.id, now=now)

        assert result.outcome == AccessOutcome.EXPIRED

    @pytest.mark.asyncio
    async def test_unknown_id_raises(self, session_repository):
        """Unknown ids raise SessionNotFoundError."""
        resolver = SessionCodeResolver(session_repository)

        with pytest.raises(SessionNotFoundError):
            await resolver.evaluate_access("missing")


class TestOrderedModuleViews:
    """Tests for ordered_module_views."""

    @pytest.mark.asyncio
    async def test_weights_default_to_one(self, session_repository, make_session):
        """Module views carry the stored weight."""
        created = await make_session(session_code="W-1")
        session = await session_repository.get_by_id(created.id)

        views = ordered_module_views(session)

        assert all(v.weight == pytest.approx(1.0) for v in views)
        assert views[0].test_id == session.session_modules[0].test_id
