"""Engine error hierarchy.

Every failure an engine operation can report is an ``EngineError`` subclass so
the HTTP layer can translate them in one place (see ``stayengine.api.errors``).
"""

import uuid
from datetime import date


class EngineError(Exception):
    """Base class for pricing and booking engine errors."""

    retryable: bool = False

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidRange(EngineError, ValueError):
    """Date range is empty, reversed, too long, or outside the booking window."""


class GuestLimitExceeded(EngineError, ValueError):
    """Guest count is below one or above what the homestay accepts."""


class ConflictError(EngineError):
    """Requested dates collide with an active booking or a blocked date."""

    retryable = True

    def __init__(
        self,
        message: str,
        conflicting_booking_ids: list[uuid.UUID] | None = None,
        blocked_dates: list[date] | None = None,
    ) -> None:
        super().__init__(message)
        self.conflicting_booking_ids = conflicting_booking_ids or []
        self.blocked_dates = blocked_dates or []


class InvalidTransition(EngineError):
    """Booking state machine does not allow the requested transition."""

    def __init__(self, message: str, current_status: str | None = None) -> None:
        super().__init__(message)
        self.current_status = current_status


class BookingNotFound(EngineError):
    """No booking with the given id."""


class HomestayNotFound(EngineError):
    """No homestay with the given id."""


class PersistenceUnavailable(EngineError):
    """The persistence store could not be reached or failed mid-operation."""

    retryable = True


class PaymentNotAuthorized(EngineError):
    """Payment authority has no successful authorization for the reference."""


class PaymentAuthorityError(EngineError):
    """Payment authority call failed; the engine never retries it."""

    retryable = True
