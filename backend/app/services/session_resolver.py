"""
Read path for participants joining a session by code.

Resolves a code to its session and ordered module list, then delegates the
accessibility decision to ``evaluate_access``. Nothing here writes.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from app.core.datetime_utils import Clock, ensure_timezone_aware, utc_now
from app.core.errors import SessionNotFoundError
from app.core.session_access import AccessResult, evaluate_access
from app.models.models import SessionModule, TestSession
from app.repositories.sessions import SessionRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModuleView:
    """A session module joined with the display fields of its test."""

    sequence: int
    is_required: bool
    weight: float
    test_id: str
    name: str
    category: str
    module_type: str
    time_limit: int
    icon: Optional[str]
    card_color: Optional[str]

    @classmethod
    def from_module(cls, module: SessionModule) -> "ModuleView":
        test = module.test
        return cls(
            sequence=module.sequence,
            is_required=True if module.is_required is None else module.is_required,
            weight=module.weight if module.weight is not None else 1.0,
            test_id=test.id,
            name=test.name,
            category=test.category,
            module_type=test.module_type,
            time_limit=test.time_limit,
            icon=test.icon,
            card_color=test.card_color,
        )


@dataclass(frozen=True)
class ResolvedSession:
    """A session found by code, with its ordered modules and access decision."""

    session: TestSession
    modules: List[ModuleView]
    access: AccessResult


def ordered_module_views(session: TestSession) -> List[ModuleView]:
    """Modules ordered ascending by sequence; modules without a test are dropped."""
    modules = [m for m in session.session_modules if m.test is not None]
    return [ModuleView.from_module(m) for m in sorted(modules, key=lambda m: m.sequence)]


class SessionCodeResolver:
    """
    Resolves join codes and evaluates session access.

    Args:
        repository: Session store
        clock: Time source used when callers don't pass ``now``
    """

    def __init__(self, repository: SessionRepository, clock: Clock = utc_now) -> None:
        self._repository = repository
        self._clock = clock

    def _now(self, now: Optional[datetime]) -> datetime:
        return ensure_timezone_aware(now) if now is not None else self._clock()

    async def resolve(
        self, session_code: str, now: Optional[datetime] = None
    ) -> ResolvedSession:
        """
        Look up a session by exact code and evaluate whether it can be joined.

        Args:
            session_code: The code as entered; matched exactly
            now: Evaluation time (defaults to the resolver's clock)

        Returns:
            ResolvedSession with the session, ordered modules and AccessResult

        Raises:
            SessionNotFoundError: If no session has this code
            TransientStoreError: If the store cannot be read
        """
        session = await self._repository.get_by_code(session_code)
        if session is None:
            raise SessionNotFoundError(session_code, by="code")

        access = evaluate_access(session, self._now(now))
        logger.info(
            f"Session access attempt: {session_code} ({session.session_name}) - "
            f"{'ALLOWED' if access.accessible else 'DENIED'} - {access.message}",
            extra={"session_id": session.id, "session_code": session_code},
        )
        return ResolvedSession(
            session=session,
            modules=ordered_module_views(session),
            access=access,
        )

    async def evaluate_access(
        self, session_id: str, now: Optional[datetime] = None
    ) -> AccessResult:
        """
        Evaluate access for a session by id.

        Raises:
            SessionNotFoundError: If no session has this id
            TransientStoreError: If the store cannot be read
        """
        session = await self._repository.get_by_id(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return evaluate_access(session, self._now(now))
