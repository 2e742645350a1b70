"""Error kinds raised by the booking engine.

``SlotNoLongerAvailable`` is normally reported as a ``CommitResult`` status
rather than raised; it exists for callers that prefer exceptions
(see ``CommitResult.unwrap``).
"""

from typing import Optional


class BookingError(Exception):
    """Base class for all booking engine errors."""


class ConfigurationError(BookingError, ValueError):
    """Business hours, service catalog or roster missing or malformed."""


class BackendUnavailable(BookingError):
    """A calendar or key-value store call failed or timed out."""

    def __init__(self, message: str, backend: str = "unknown") -> None:
        super().__init__(message)
        self.backend = backend


class LockTimeout(BackendUnavailable):
    """A store lock stayed taken for longer than the caller would wait."""

    def __init__(self, key: str, waited: float) -> None:
        super().__init__(f"Lock {key} still taken after {waited:.1f}s", backend="lock")
        self.key = key


class SlotNoLongerAvailable(BookingError):
    """The requested slot was taken by another booking or hold."""

    def __init__(self, message: str = "This time slot is no longer available.") -> None:
        super().__init__(message)


class InvalidRequest(BookingError):
    """Request rejected before any calendar or hold call was made."""

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.field = field


class InvalidTransitionError(BookingError):
    """A state machine was asked for a transition it does not allow."""
