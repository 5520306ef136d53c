"""Domain errors raised by the booking and project engines.

Each error carries the HTTP status the API layer responds with. Routers let
these propagate; the handlers in main.py turn them into the error envelope.
"""


class DomainError(Exception):
    """Base exception for engine errors."""

    status_code = 400
    default_message = "Request could not be processed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


# =============================================================================
# Generic
# =============================================================================

class NotFound(DomainError):
    """Entity does not exist."""

    status_code = 404
    default_message = "Not found"


class ValidationFailed(DomainError):
    """Input failed a domain-level validation."""

    def __init__(self, message: str | None = None, errors: list[dict] | None = None):
        super().__init__(message or "Validation failed")
        self.errors = errors or []


class Conflict(DomainError):
    """Overlapping slot or duplicate project."""

    default_message = "Conflicting record exists"


# =============================================================================
# Time & Slots
# =============================================================================

class InvalidTimeFormat(DomainError):
    """Time is not a 24-hour HH:MM string or falls outside the day."""

    default_message = "Invalid time format. Use HH:MM (24-hour)"


class PastDate(DomainError):
    """Slot date is before today."""

    default_message = "Cannot create slots for past dates"


class ImmutableWhenBooked(DomainError):
    """Date, start time or duration changed on a slot that has bookings."""

    default_message = "Cannot change date, time or duration of a slot with active bookings"


class CapacityBelowLoad(DomainError):
    """maxBookings reduced below the active booking count."""

    default_message = "Max bookings cannot be lower than the number of active bookings"


# =============================================================================
# Bookings
# =============================================================================

class SlotUnavailable(DomainError):
    """Slot is not open for booking."""

    default_message = "This slot is not available for booking"


class FullyBooked(DomainError):
    """Slot has no remaining capacity."""

    default_message = "This slot is fully booked"


class PastSlot(DomainError):
    """Slot start is in the past."""

    default_message = "Cannot book a slot in the past"


class EmailMismatch(DomainError):
    """Cancel request email does not match the booking."""

    status_code = 403
    default_message = "Email does not match the booking"


class AlreadyCancelled(DomainError):
    """Booking is already cancelled."""

    default_message = "Booking is already cancelled"


class Terminal(DomainError):
    """Booking is in a terminal state."""

    default_message = "Cannot cancel a completed booking"


class IllegalTransition(DomainError):
    """State change not allowed from the current state."""

    default_message = "Status transition not allowed"


# =============================================================================
# Projects
# =============================================================================

class NotAssignedApprover(DomainError):
    """Acting user is not the project's assigned approver."""

    status_code = 403
    default_message = "Only the assigned approver can approve this quote"


class ApproverLocked(DomainError):
    """Approver cannot change once internal approval is recorded."""

    default_message = "Cannot change the approver after internal approval"


class InvalidApprover(DomainError):
    """Approver does not hold the Higher Management role."""

    default_message = "Assigned approver must hold the Higher Management role"


# =============================================================================
# External
# =============================================================================

class CalendarError(DomainError):
    """Calendar provider rejected or failed the request."""

    status_code = 502
    default_message = "Calendar service error"

    def __init__(self, message: str | None = None, kind: str | None = None, hint: str | None = None):
        super().__init__(message)
        self.kind = kind
        self.hint = hint
