"""
Storage access for the session lifecycle.
"""
from .attempts import AttemptCounter, SqlAlchemyAttemptCounter
from .sessions import SessionRepository, SqlAlchemySessionRepository

__all__ = [
    "AttemptCounter",
    "SqlAlchemyAttemptCounter",
    "SessionRepository",
    "SqlAlchemySessionRepository",
]
