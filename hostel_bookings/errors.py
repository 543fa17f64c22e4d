"""
Error taxonomy for the booking engine.

Every rejected operation raises a subclass of BookingEngineError carrying the
specific precondition that failed. The category decides how the HTTP layer
renders it and whether callers may retry:

    validation  -> 400, never retried
    conflict    -> 409, caller must pick another room / resolve the conflict
    state       -> 409, the booking is in the wrong status for the operation
    concurrency -> 503, retryable with backoff
    not_found   -> 404
"""

from __future__ import annotations

from decimal import Decimal

VALIDATION = "validation"
CONFLICT = "conflict"
STATE = "state"
CONCURRENCY = "concurrency"
NOT_FOUND = "not_found"

_HTTP_STATUS = {
    VALIDATION: 400,
    CONFLICT: 409,
    STATE: 409,
    CONCURRENCY: 503,
    NOT_FOUND: 404,
}


class BookingEngineError(Exception):
    """Base class for every business failure raised by the engine."""

    category = VALIDATION
    retryable = False

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail

    @property
    def kind(self) -> str:
        return type(self).__name__

    @property
    def http_status(self) -> int:
        return _HTTP_STATUS[self.category]


# =============================================================================
# Validation
# =============================================================================


class InvalidDates(BookingEngineError):
    pass


class InvalidAmount(BookingEngineError):
    def __init__(self, amount: Decimal) -> None:
        super().__init__(f"Payment amount must be greater than 0, got {amount}")
        self.amount = amount


class InvalidBookingType(BookingEngineError):
    def __init__(self, booking_type: str) -> None:
        super().__init__(f"Invalid booking type: {booking_type}")


class AmountExceedsDue(BookingEngineError):
    def __init__(self, amount: Decimal, amount_due: Decimal) -> None:
        super().__init__(f"Payment amount {amount} exceeds amount due of {amount_due}")
        self.amount = amount
        self.amount_due = amount_due


class AmountBelowPaid(BookingEngineError):
    def __init__(self, total: Decimal, paid: Decimal) -> None:
        super().__init__(f"New total amount {total} is below the amount already paid ({paid})")


class InsufficientBalance(BookingEngineError):
    def __init__(self, available: Decimal, requested: Decimal) -> None:
        super().__init__(
            f"Insufficient deposit balance: available {available}, requested {requested}"
        )
        self.available = available
        self.requested = requested


class PaymentVerificationFailed(BookingEngineError):
    pass


# =============================================================================
# Conflict (eligibility)
# =============================================================================


class EligibilityError(BookingEngineError):
    """Raised by the eligibility validator when a booking may not be created."""

    category = CONFLICT


class ActiveBookingConflict(EligibilityError):
    pass


class GenderIncompatible(EligibilityError):
    pass


class RoomGenderMismatch(EligibilityError):
    pass


class RoomUnavailable(EligibilityError):
    pass


class DuplicateReference(BookingEngineError):
    category = CONFLICT


# =============================================================================
# State
# =============================================================================


class BookingStateError(BookingEngineError):
    category = STATE


class InvalidTransition(BookingStateError):
    def __init__(self, current: str, target: str) -> None:
        super().__init__(f"Invalid booking transition: {current} -> {target}")
        self.current = current
        self.target = target


class PaymentIncomplete(BookingStateError):
    pass


class TooEarly(BookingStateError):
    pass


class BookingCancelled(BookingStateError):
    pass


class BookingClosed(BookingStateError):
    pass


class BookingHasPayments(BookingStateError):
    pass


class NothingDue(BookingStateError):
    pass


class DepositClosed(BookingStateError):
    pass


# =============================================================================
# Concurrency
# =============================================================================


class LockTimeout(BookingEngineError):
    category = CONCURRENCY
    retryable = True

    def __init__(self, resource: str, resource_id: str) -> None:
        super().__init__(f"Timed out waiting for lock on {resource} {resource_id}; retry later")
        self.resource = resource
        self.resource_id = resource_id


# =============================================================================
# Not found
# =============================================================================


class NotFound(BookingEngineError):
    category = NOT_FOUND


class BookingNotFound(NotFound):
    def __init__(self, booking_id: str) -> None:
        super().__init__(f"Booking with ID {booking_id} not found")


class RoomNotFound(NotFound):
    def __init__(self, room_id: str) -> None:
        super().__init__(f"Room with ID {room_id} not found")


class StudentNotFound(NotFound):
    def __init__(self, student_id: str) -> None:
        super().__init__(f"Student with ID {student_id} not found")


class DepositNotFound(NotFound):
    def __init__(self, key: str) -> None:
        super().__init__(f"Deposit {key} not found")
