"""
Pytest configuration and shared fixtures for testing.
"""
import logging
import os
from datetime import datetime, timedelta, timezone
from pathlib import Path

# Tests run against a SQLite file next to this conftest; the path is relative
# to this file so the .db lands inside tests/ regardless of working directory.
# Settings are read at import time, so the environment must be set first.
_TEST_DB = Path(__file__).parent / "test.db"
os.environ.setdefault("DATABASE_URL", f"sqlite:///{_TEST_DB}")
os.environ.setdefault("ENV", "test")
os.environ.setdefault("DEBUG", "false")
os.environ.setdefault("ADMIN_TOKEN", "test-admin-token")  # pragma: allowlist secret
os.environ.setdefault("SESSION_RECONCILER_ENABLED", "false")

from typing import AsyncGenerator, Awaitable, Callable, List  # noqa: E402
from contextlib import asynccontextmanager  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from app.main import app  # noqa: E402
from app.api.v1.sessions import get_session_repository  # noqa: E402
from app.core.config import settings  # noqa: E402
from app.models import (  # noqa: E402
    Base,
    SessionModule,
    SessionStatus,
    Test,
    TestAttempt,
    TestSession,
)
from app.repositories import (  # noqa: E402
    SqlAlchemyAttemptCounter,
    SqlAlchemySessionRepository,
)

# The "app" logger does not propagate in the dictConfig; let caplog see it.
logging.getLogger("app").propagate = True

# A fixed "now" so time-window tests never depend on the wall clock
NOW = datetime(2025, 3, 10, 9, 0, tzinfo=timezone.utc)


@asynccontextmanager
async def _test_lifespan(app):
    """No-op lifespan for tests.

    Skips error tracking, table creation and the reconciliation scheduler.
    """
    yield


# Neutralize the production lifespan on the singleton app.
app.router.lifespan_context = _test_lifespan


ASYNC_SQLALCHEMY_DATABASE_URL = f"sqlite+aiosqlite:///{_TEST_DB}"

async_test_engine = create_async_engine(
    ASYNC_SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=NullPool,
)
AsyncTestingSessionLocal = async_sessionmaker(
    async_test_engine, class_=AsyncSession, expire_on_commit=False
)


@pytest.fixture(scope="function")
async def async_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Create a fresh async database session for each test.
    """
    async with async_test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncTestingSessionLocal() as session:
        yield session

    async with async_test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
def session_repository(async_db_session) -> SqlAlchemySessionRepository:
    """Session repository bound to the test database."""
    return SqlAlchemySessionRepository(AsyncTestingSessionLocal)


@pytest.fixture
def attempt_counter(async_db_session) -> SqlAlchemyAttemptCounter:
    """Attempt counter bound to the test database."""
    return SqlAlchemyAttemptCounter(AsyncTestingSessionLocal)


@pytest.fixture
async def sample_tests(async_db_session) -> List[Test]:
    """Two test modules that sessions can be assigned."""
    tests = [
        Test(
            name="Tes Logika",
            category="cognitive",
            module_type="logic",
            time_limit=30,
            total_questions=40,
            icon="brain",
            card_color="blue",
        ),
        Test(
            name="Tes Kepribadian",
            category="personality",
            module_type="big_five",
            time_limit=20,
            total_questions=50,
        ),
    ]
    async_db_session.add_all(tests)
    await async_db_session.commit()
    return tests


SessionFactory = Callable[..., Awaitable[TestSession]]


@pytest.fixture
def make_session(async_db_session, sample_tests) -> SessionFactory:
    """
    Factory inserting a session directly, bypassing creation-time validation.

    Defaults to a one-hour draft window starting at NOW with both sample
    tests assigned (sequence 1 and 2).
    """
    counter = {"n": 0}

    async def _make(
        *,
        status: SessionStatus = SessionStatus.DRAFT,
        start_time: datetime = NOW,
        end_time: datetime = NOW + timedelta(hours=1),
        auto_expire: bool = True,
        allow_late_entry: bool = False,
        session_code: str | None = None,
        attempts: int = 0,
        module_sequences=(1, 2),
        **fields,
    ) -> TestSession:
        counter["n"] += 1
        session = TestSession(
            session_name=fields.pop("session_name", f"Rekrutmen Batch {counter['n']}"),
            session_code=session_code or f"TEST-{counter['n']:03d}",
            start_time=start_time,
            end_time=end_time,
            target_position=fields.pop("target_position", "Staff Admin"),
            status=status,
            auto_expire=auto_expire,
            allow_late_entry=allow_late_entry,
            **fields,
        )
        session.session_modules = [
            SessionModule(test_id=test.id, sequence=sequence)
            for test, sequence in zip(sample_tests, module_sequences)
        ]
        async_db_session.add(session)
        await async_db_session.flush()
        for _ in range(attempts):
            async_db_session.add(
                TestAttempt(session_id=session.id, test_id=sample_tests[0].id)
            )
        await async_db_session.commit()
        return session

    return _make


@pytest.fixture
def now() -> datetime:
    """The fixed moment sessions created by make_session are anchored to."""
    return NOW


@pytest.fixture
def read_status(async_db_session) -> Callable[[str], Awaitable[SessionStatus]]:
    """Read a session's stored status through a fresh database session."""

    async def _read(session_id: str) -> SessionStatus:
        async with AsyncTestingSessionLocal() as db:
            session = await db.get(TestSession, session_id)
            return SessionStatus(session.status)

    return _read


@pytest.fixture(scope="function")
async def async_client(
    async_db_session: AsyncSession,
) -> AsyncGenerator[AsyncClient, None]:
    """
    Create an async test client with the session repository bound to the
    test database.
    """

    def override_get_session_repository() -> SqlAlchemySessionRepository:
        return SqlAlchemySessionRepository(AsyncTestingSessionLocal)

    app.dependency_overrides[get_session_repository] = override_get_session_repository
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.pop(get_session_repository, None)


@pytest.fixture
def admin_headers():
    """
    Create headers with valid admin token for admin endpoints.
    """
    return {"X-Admin-Token": settings.ADMIN_TOKEN}
