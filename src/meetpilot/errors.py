"""Summary: Error taxonomy for scheduling operations.

Importance: Gives every failure a stable code that the API and CLI can map consistently.
Alternatives: Raise ValueError everywhere and match on message text.
"""

from __future__ import annotations


class SchedulingError(Exception):
    """Summary: Base class for all domain errors.

    Importance: Lets entrypoints catch domain failures without catching programming errors.
    Alternatives: Return result objects with an error field.
    """

    code = "SCHEDULING_ERROR"

    def __init__(self, message: str, reason: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.reason = reason or self.code


class ValidationError(SchedulingError):
    """Missing or malformed input."""

    code = "VALIDATION"


class ForbiddenError(SchedulingError):
    """Actor is not allowed to perform the transition."""

    code = "FORBIDDEN"


class NotFoundError(SchedulingError):
    code = "NOT_FOUND"


class ConflictError(SchedulingError):
    """Summary: State does not permit the operation.

    Importance: Covers duplicate friendships, pending requests, and illegal transitions.
    Alternatives: Use separate exception classes per conflict reason.
    """

    code = "CONFLICT"


ALREADY_FRIENDS = "ALREADY_FRIENDS"
REQUEST_PENDING = "REQUEST_PENDING"
INVALID_TRANSITION = "INVALID_TRANSITION"
SLOT_TAKEN = "SLOT_TAKEN"
INVITATION_EXPIRED = "INVITATION_EXPIRED"


class NoAvailableSlotError(SchedulingError):
    code = "NO_AVAILABLE_SLOT"


class LockTimeoutError(SchedulingError):
    """Summary: The coordinator could not acquire a critical section in time.

    Importance: Prevents a stuck holder from blocking callers forever.
    Alternatives: Block indefinitely on the lock.
    """

    code = "LOCK_TIMEOUT"


class ExternalServiceError(SchedulingError):
    """Provider or store failure, passed through without retry."""

    code = "EXTERNAL_SERVICE_ERROR"
