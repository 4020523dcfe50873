"""
Participant access evaluation for test sessions.

``evaluate_access(session, now)`` decides whether a participant may enter a
session at ``now`` and what to tell them. It is pure: no I/O, no clock reads,
no exceptions. The same inputs always produce the same ``AccessResult``.

Checks run in order and the first match wins:

1. cancelled                              -> denied, 410
2. draft                                  -> denied, 200 (not open yet)
3. expired, or active with now > end_time -> denied, 410
4. active with now < start_time           -> denied, 425 (too early)
5. active with start_time <= now <= end   -> allowed, 200
6. active, past start, outside the window -> late entry if allowed and time
                                             remains (200), else denied (425)
7. anything else (completed)              -> denied, 200

Both window boundaries are inclusive. Rule 6 can only match when rule 3 did
not, which leaves it unreachable for well-formed sessions; it is kept so the
late-entry policy has a defined answer for every input.

Usage:
    from app.core.session_access import evaluate_access

    result = evaluate_access(session, utc_now())
    if not result.accessible:
        return result.message, result.response_code
"""
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, Optional, Protocol

from app.core.datetime_utils import ensure_timezone_aware
from app.models.models import SessionStatus

HTTP_OK = 200
HTTP_GONE = 410
HTTP_TOO_EARLY = 425

_ONE_MINUTE = timedelta(minutes=1)
# Countdowns longer than this are shown in whole hours
_COUNTDOWN_HOURS_THRESHOLD_MINUTES = 60


class AccessOutcome(str, Enum):
    """Why a session is or is not accessible.

    Callers that do not speak HTTP can branch on this instead of
    ``response_code``; the two always agree.
    """

    ACCESSIBLE = "accessible"
    LATE_ENTRY = "late_entry"
    CANCELLED = "cancelled"
    NOT_YET_ACTIVE = "not_yet_active"
    EXPIRED = "expired"
    TOO_EARLY = "too_early"
    CLOSED = "closed"
    UNAVAILABLE = "unavailable"


class SessionWindow(Protocol):
    """The attributes of a session that access evaluation reads."""

    status: Any
    start_time: datetime
    end_time: datetime
    allow_late_entry: Any


@dataclass(frozen=True)
class AccessResult:
    """Outcome of evaluating a session at a moment in time.

    Attributes:
        is_active: Status is active and now lies within [start_time, end_time]
        is_expired: Status is expired, or active with now past end_time
        time_remaining_minutes: Whole minutes until end_time, never negative
        accessible: Whether a participant may enter now
        message: Participant-facing explanation
        response_code: HTTP status for callers that expose one
        outcome: Discriminator matching response_code
        minutes_until_start: Whole minutes until start_time when too early
    """

    is_active: bool
    is_expired: bool
    time_remaining_minutes: int
    accessible: bool
    message: str
    response_code: int
    outcome: AccessOutcome
    minutes_until_start: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert the result to a dictionary for API responses."""
        data = asdict(self)
        data["outcome"] = self.outcome.value
        return data


def _coerce_status(value: Any) -> Optional[SessionStatus]:
    # Missing status is treated as draft; unknown values fall through to rule 7
    if value is None:
        return SessionStatus.DRAFT
    if isinstance(value, SessionStatus):
        return value
    try:
        return SessionStatus(value)
    except ValueError:
        return None


def get_time_remaining(end_time: datetime, now: datetime) -> int:
    """Whole minutes from ``now`` until ``end_time``, floored and clamped at 0."""
    delta = ensure_timezone_aware(end_time) - ensure_timezone_aware(now)
    return max(0, delta // _ONE_MINUTE)


def get_minutes_until_start(start_time: datetime, now: datetime) -> int:
    """Whole minutes from ``now`` until ``start_time``, floored and clamped at 0."""
    delta = ensure_timezone_aware(start_time) - ensure_timezone_aware(now)
    return max(0, delta // _ONE_MINUTE)


def is_session_active(session: SessionWindow, now: datetime) -> bool:
    """True when the session is active and ``now`` is inside its window."""
    now = ensure_timezone_aware(now)
    return (
        _coerce_status(session.status) == SessionStatus.ACTIVE
        and ensure_timezone_aware(session.start_time)
        <= now
        <= ensure_timezone_aware(session.end_time)
    )


def is_session_expired(session: SessionWindow, now: datetime) -> bool:
    """True when the session is expired, or active with its window closed."""
    status = _coerce_status(session.status)
    if status == SessionStatus.EXPIRED:
        return True
    return status == SessionStatus.ACTIVE and ensure_timezone_aware(
        now
    ) > ensure_timezone_aware(session.end_time)


def format_countdown(minutes_until_start: int) -> str:
    """Message for a session that has not started yet."""
    if minutes_until_start > _COUNTDOWN_HOURS_THRESHOLD_MINUTES:
        hours = minutes_until_start // 60
        return (
            f"Test session will start in {hours} hour(s). "
            "Please come back at the scheduled time."
        )
    return (
        f"Test session will start in {minutes_until_start} minute(s). "
        "Please come back at the scheduled time."
    )


def format_time_remaining(minutes: int) -> str:
    """Message for an open session, with remaining time as hours + minutes."""
    hours, remainder = divmod(minutes, 60)
    if hours > 0:
        return f"Test session is active. Time remaining: {hours}h {remainder}m"
    return f"Test session is active. Time remaining: {remainder} minutes"


class AccessMessages:
    """Participant-facing messages for inaccessible sessions."""

    CANCELLED = "This test session has been cancelled."
    NOT_YET_ACTIVE = "This test session is not yet active. Please check back later."
    EXPIRED = "This test session has expired and is no longer available."
    CLOSED = "This test session is no longer accepting new participants."
    LATE_ENTRY = "Late entry is allowed for this session."
    UNAVAILABLE = "Test session is not currently available."


def evaluate_access(session: SessionWindow, now: datetime) -> AccessResult:
    """
    Decide whether a participant may enter ``session`` at ``now``.

    Args:
        session: Any object with status, start_time, end_time and
            allow_late_entry (an ORM ``TestSession`` in practice)
        now: The moment to evaluate at; naive values are taken as UTC

    Returns:
        AccessResult describing accessibility, flags and the message to show
    """
    now = ensure_timezone_aware(now)
    start_time = ensure_timezone_aware(session.start_time)
    end_time = ensure_timezone_aware(session.end_time)
    status = _coerce_status(session.status)

    is_active = is_session_active(session, now)
    is_expired = is_session_expired(session, now)
    time_remaining = get_time_remaining(end_time, now)

    def result(
        accessible: bool,
        message: str,
        response_code: int,
        outcome: AccessOutcome,
        minutes_until_start: Optional[int] = None,
    ) -> AccessResult:
        return AccessResult(
            is_active=is_active,
            is_expired=is_expired,
            time_remaining_minutes=time_remaining,
            accessible=accessible,
            message=message,
            response_code=response_code,
            outcome=outcome,
            minutes_until_start=minutes_until_start,
        )

    if status == SessionStatus.CANCELLED:
        return result(False, AccessMessages.CANCELLED, HTTP_GONE, AccessOutcome.CANCELLED)

    if status == SessionStatus.DRAFT:
        return result(
            False, AccessMessages.NOT_YET_ACTIVE, HTTP_OK, AccessOutcome.NOT_YET_ACTIVE
        )

    if is_expired:
        return result(False, AccessMessages.EXPIRED, HTTP_GONE, AccessOutcome.EXPIRED)

    if status == SessionStatus.ACTIVE:
        if now < start_time:
            minutes_until_start = get_minutes_until_start(start_time, now)
            return result(
                False,
                format_countdown(minutes_until_start),
                HTTP_TOO_EARLY,
                AccessOutcome.TOO_EARLY,
                minutes_until_start=minutes_until_start,
            )

        if is_active:
            return result(
                True,
                format_time_remaining(time_remaining),
                HTTP_OK,
                AccessOutcome.ACCESSIBLE,
            )

        if bool(session.allow_late_entry) and time_remaining > 0:
            return result(
                True, AccessMessages.LATE_ENTRY, HTTP_OK, AccessOutcome.LATE_ENTRY
            )
        return result(False, AccessMessages.CLOSED, HTTP_TOO_EARLY, AccessOutcome.CLOSED)

    return result(False, AccessMessages.UNAVAILABLE, HTTP_OK, AccessOutcome.UNAVAILABLE)
