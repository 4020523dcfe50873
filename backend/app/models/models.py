"""
Database models for test sessions, their assigned test modules, and the
attempt records the session reconciler consults.
"""
from sqlalchemy import (
    Column,
    Integer,
    String,
    Boolean,
    ForeignKey,
    Text,
    Enum,
    Float,
    UniqueConstraint,
    Index,
    CheckConstraint,
)
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
import enum
import uuid

from .base import Base
from .types import UTCDateTime


def _new_id() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


class SessionStatus(str, enum.Enum):
    """Test session status enumeration.

    ``draft -> active -> {expired, completed}`` are driven by the reconciler;
    ``cancelled`` is set only by an administrator and is terminal.
    """

    DRAFT = "draft"
    ACTIVE = "active"
    EXPIRED = "expired"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def label(self) -> str:
        """Display label for this status."""
        return SESSION_STATUS_LABELS[self]

    @property
    def is_terminal(self) -> bool:
        """True for statuses the reconciler never transitions out of."""
        return self in TERMINAL_STATUSES


SESSION_STATUS_LABELS = {
    SessionStatus.DRAFT: "Draft",
    SessionStatus.ACTIVE: "Active",
    SessionStatus.EXPIRED: "Expired",
    SessionStatus.COMPLETED: "Completed",
    SessionStatus.CANCELLED: "Cancelled",
}

TERMINAL_STATUSES = frozenset(
    {SessionStatus.EXPIRED, SessionStatus.COMPLETED, SessionStatus.CANCELLED}
)


class Test(Base):
    """A psychometric test module that can be assigned to sessions."""

    __test__ = False  # not a pytest test class
    __tablename__ = "tests"

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String(255), nullable=False)
    category = Column(String(100), nullable=False)
    module_type = Column(String(100), nullable=False)
    time_limit = Column(Integer, nullable=False)  # minutes
    total_questions = Column(Integer, nullable=False, default=0)
    icon = Column(String(100), nullable=True)
    card_color = Column(String(50), nullable=True)
    created_at = Column(UTCDateTime(), default=_now, nullable=False)

    session_modules = relationship("SessionModule", back_populates="test")


class TestSession(Base):
    """A scheduled testing window that participants join by code."""

    __test__ = False  # not a pytest test class
    __tablename__ = "test_sessions"

    id = Column(String(36), primary_key=True, default=_new_id)
    session_name = Column(String(255), nullable=False)
    session_code = Column(String(50), nullable=False, unique=True, index=True)
    start_time = Column(UTCDateTime(), nullable=False)
    end_time = Column(UTCDateTime(), nullable=False)
    target_position = Column(String(100), nullable=False, default="")
    description = Column(Text, nullable=True)
    location = Column(String(255), nullable=True)
    max_participants = Column(Integer, nullable=True)
    current_participants = Column(Integer, nullable=False, default=0)
    status = Column(
        Enum(SessionStatus), nullable=False, default=SessionStatus.DRAFT
    )
    allow_late_entry = Column(Boolean, nullable=False, default=False)
    # Sessions with auto_expire=False are only transitioned by an operator
    auto_expire = Column(Boolean, nullable=False, default=True)
    proctor_id = Column(String(36), nullable=True)

    created_at = Column(UTCDateTime(), default=_now, nullable=False)
    updated_at = Column(UTCDateTime(), default=_now, nullable=False)
    created_by = Column(String(36), nullable=True)
    updated_by = Column(String(36), nullable=True)

    session_modules = relationship(
        "SessionModule",
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="SessionModule.sequence",
    )
    attempts = relationship(
        "TestAttempt", back_populates="session", cascade="all, delete-orphan"
    )

    __table_args__ = (
        CheckConstraint("end_time > start_time", name="ck_test_sessions_window"),
        # Reconciler candidate scan
        Index("ix_test_sessions_status_auto_expire", "status", "auto_expire"),
    )

    def __repr__(self) -> str:
        return f"<TestSession {self.session_code} status={self.status}>"


class SessionModule(Base):
    """Assignment of one test to a session at a sequence position."""

    __tablename__ = "session_modules"

    id = Column(String(36), primary_key=True, default=_new_id)
    session_id = Column(
        String(36),
        ForeignKey("test_sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    test_id = Column(String(36), ForeignKey("tests.id"), nullable=False)
    sequence = Column(Integer, nullable=False)
    is_required = Column(Boolean, nullable=False, default=True)
    weight = Column(Float, nullable=False, default=1.0)
    created_at = Column(UTCDateTime(), default=_now, nullable=False)

    session = relationship("TestSession", back_populates="session_modules")
    test = relationship("Test", back_populates="session_modules")

    __table_args__ = (
        UniqueConstraint("session_id", "sequence", name="uq_session_module_sequence"),
        UniqueConstraint("session_id", "test_id", name="uq_session_module_test"),
    )


class TestAttempt(Base):
    """A participant's attempt at a test within a session.

    Only its existence matters to the session lifecycle: a session whose
    window closes with at least one attempt is completed, otherwise expired.
    """

    __test__ = False  # not a pytest test class
    __tablename__ = "test_attempts"

    id = Column(String(36), primary_key=True, default=_new_id)
    session_id = Column(
        String(36),
        ForeignKey("test_sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    test_id = Column(String(36), ForeignKey("tests.id"), nullable=True)
    user_id = Column(String(36), nullable=True)
    status = Column(String(20), nullable=False, default="started")
    started_at = Column(UTCDateTime(), default=_now, nullable=False)

    session = relationship("TestSession", back_populates="attempts")
