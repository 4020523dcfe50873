"""
Session code generation and participant links.
"""
import re
import secrets
import string
import time
from typing import Callable, Optional

_BASE36_UPPER = string.digits + string.ascii_uppercase
_NON_LETTERS = re.compile(r"[^A-Z]")


def _letters_prefix(value: str) -> str:
    return _NON_LETTERS.sub("", value[:3].upper())


def generate_session_code(
    session_name: str,
    target_position: str,
    *,
    now_millis: Optional[Callable[[], int]] = None,
) -> str:
    """
    Generate a human-typeable session code.

    Format: ``{NAME3}{POS3}-{last 6 digits of epoch millis}-{3 random base36}``,
    where NAME3/POS3 are the uppercase letters among the first three
    characters of the session name and target position.

    Args:
        session_name: Session display name
        target_position: Position the session is recruiting for
        now_millis: Optional millisecond clock (defaults to wall time)

    Returns:
        A code such as ``"RECSEC-123456-A7Z"``
    """
    millis = now_millis() if now_millis else int(time.time() * 1000)
    timestamp = str(millis)[-6:]
    random_part = "".join(secrets.choice(_BASE36_UPPER) for _ in range(3))
    return (
        f"{_letters_prefix(session_name)}{_letters_prefix(target_position)}"
        f"-{timestamp}-{random_part}"
    )


def generate_participant_link(session_code: str, base_url: str = "") -> str:
    """Build the participant-facing join URL for a session code."""
    return f"{base_url.rstrip('/')}/psikotes/{session_code}"
