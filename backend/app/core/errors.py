"""
Domain errors for the test session lifecycle.

The access evaluator never raises; these are raised by repositories,
validators and the resolver, and are translated to HTTP responses at the
API layer.
"""
from typing import Optional


class SessionLifecycleError(Exception):
    """Base class for all session lifecycle errors."""


class SessionNotFoundError(SessionLifecycleError):
    """Raised when a session id or code does not match any session."""

    def __init__(self, identifier: str, *, by: str = "id"):
        self.identifier = identifier
        self.by = by
        super().__init__(f"Test session with {by} {identifier!r} not found")


class InvalidTimeWindowError(SessionLifecycleError):
    """Raised when a session's end_time is not strictly after its start_time."""


class InvalidSessionModulesError(SessionLifecycleError):
    """Raised when a session's module list violates its uniqueness rules."""


class InvalidSessionCodeError(SessionLifecycleError):
    """Raised when a session code does not match the accepted format."""


class TransientStoreError(SessionLifecycleError):
    """Raised when the session store fails in a way that may succeed on retry.

    Attributes:
        operation_name: Human-readable name of the operation that failed
        original_error: The underlying exception that caused the failure
        message: The formatted error message
    """

    def __init__(
        self,
        operation_name: str,
        original_error: Exception,
        message: Optional[str] = None,
    ):
        self.operation_name = operation_name
        self.original_error = original_error
        self.message = message or f"Failed to {operation_name}: {original_error}"
        super().__init__(self.message)


class DependencyUnavailableError(TransientStoreError):
    """Raised when the attempt store cannot answer (error or timeout)."""
