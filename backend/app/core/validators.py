"""
Creation-time validation for test sessions.

These checks back the invariants the lifecycle code relies on: a session's
window is non-empty, its code is typeable, and its module list has no
duplicate positions or tests. The database enforces the same rules with
CHECK and UNIQUE constraints.
"""
import re
from datetime import datetime
from typing import Any, Iterable, Mapping, Optional

from app.core.datetime_utils import ensure_timezone_aware
from app.core.errors import (
    InvalidSessionCodeError,
    InvalidSessionModulesError,
    InvalidTimeWindowError,
)

SESSION_CODE_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")
SESSION_CODE_MIN_LENGTH = 3
SESSION_CODE_MAX_LENGTH = 50

MIN_SESSION_MODULES = 1
MAX_SESSION_MODULES = 20
MIN_MODULE_WEIGHT = 0.1
MAX_MODULE_WEIGHT = 10.0


def validate_time_window(start_time: datetime, end_time: datetime) -> None:
    """Reject windows where end_time is not strictly after start_time.

    Raises:
        InvalidTimeWindowError: If end_time <= start_time
    """
    start = ensure_timezone_aware(start_time)
    end = ensure_timezone_aware(end_time)
    if end <= start:
        raise InvalidTimeWindowError(
            f"End time must be after start time (start={start.isoformat()}, "
            f"end={end.isoformat()})"
        )


def validate_session_code(code: str) -> str:
    """Check a session code's length and character set.

    Returns:
        The code unchanged, so the call can be used inline.

    Raises:
        InvalidSessionCodeError: If the code is too short, too long, or contains
            characters other than letters, digits, hyphens and underscores
    """
    if not SESSION_CODE_MIN_LENGTH <= len(code) <= SESSION_CODE_MAX_LENGTH:
        raise InvalidSessionCodeError(
            f"Session code must be {SESSION_CODE_MIN_LENGTH}-"
            f"{SESSION_CODE_MAX_LENGTH} characters, got {len(code)}"
        )
    if not SESSION_CODE_PATTERN.match(code):
        raise InvalidSessionCodeError(
            "Session code can only contain letters, numbers, hyphens, and underscores"
        )
    return code


def _field(module: Any, name: str, default: Optional[Any] = None) -> Any:
    if isinstance(module, Mapping):
        return module.get(name, default)
    return getattr(module, name, default)


def validate_session_modules(modules: Iterable[Any]) -> None:
    """Validate a session's module assignments.

    Each module may be a mapping or an object exposing ``test_id``,
    ``sequence`` and optionally ``weight``.

    Sequences must be unique and at least 1; they need not be contiguous.

    Raises:
        InvalidSessionModulesError: On an empty/oversized list, duplicate
            sequence, duplicate test, or out-of-range sequence/weight
    """
    modules = list(modules)
    if not MIN_SESSION_MODULES <= len(modules) <= MAX_SESSION_MODULES:
        raise InvalidSessionModulesError(
            f"A session needs {MIN_SESSION_MODULES}-{MAX_SESSION_MODULES} "
            f"test modules, got {len(modules)}"
        )

    sequences = set()
    test_ids = set()
    for module in modules:
        sequence = _field(module, "sequence")
        test_id = _field(module, "test_id")
        weight = _field(module, "weight", 1.0)

        if sequence is None or sequence < 1:
            raise InvalidSessionModulesError(
                f"Sequence must be at least 1, got {sequence}"
            )
        if sequence in sequences:
            raise InvalidSessionModulesError(
                "Session modules must have unique sequence numbers"
            )
        if test_id in test_ids:
            raise InvalidSessionModulesError(
                "Session modules cannot contain duplicate tests"
            )
        if weight is not None and not MIN_MODULE_WEIGHT <= weight <= MAX_MODULE_WEIGHT:
            raise InvalidSessionModulesError(
                f"Module weight must be between {MIN_MODULE_WEIGHT} and "
                f"{MAX_MODULE_WEIGHT}, got {weight}"
            )
        sequences.add(sequence)
        test_ids.add(test_id)
