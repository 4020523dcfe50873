"""
Models package for the session lifecycle backend.
"""
from .base import Base, async_engine, AsyncSessionLocal, init_db
from .models import (
    Test,
    TestSession,
    SessionModule,
    TestAttempt,
    SessionStatus,
    SESSION_STATUS_LABELS,
    TERMINAL_STATUSES,
)

__all__ = [
    "Base",
    "async_engine",
    "AsyncSessionLocal",
    "init_db",
    "Test",
    "TestSession",
    "SessionModule",
    "TestAttempt",
    "SessionStatus",
    "SESSION_STATUS_LABELS",
    "TERMINAL_STATUSES",
]
