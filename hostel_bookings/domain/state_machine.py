"""
Booking state machine and payment arithmetic as pure functions.

Every function takes a BookingRecord and returns a new one; nothing here
touches the database. Services lock the booking row, call these functions and
persist the returned record in the same transaction.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from hostel_bookings.domain.pricing import CENTS, duration_days
from hostel_bookings.domain.records import (
    SEAT_HOLDING_STATUSES,
    BookingRecord,
    BookingStatus,
    PaymentStatus,
)
from hostel_bookings.errors import (
    AmountExceedsDue,
    BookingCancelled,
    InvalidAmount,
    InvalidTransition,
    PaymentIncomplete,
    TooEarly,
)

BOOKING_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset(
        {BookingStatus.CHECKED_IN, BookingStatus.CANCELLED, BookingStatus.NO_SHOW}
    ),
    BookingStatus.CHECKED_IN: frozenset({BookingStatus.CHECKED_OUT}),
    BookingStatus.CHECKED_OUT: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.NO_SHOW: frozenset(),
}

# Payment statuses the overdue sweep never touches
_SETTLED_PAYMENT_STATUSES = frozenset(
    {
        PaymentStatus.PAID,
        PaymentStatus.OVERDUE,
        PaymentStatus.REFUNDED,
        PaymentStatus.CANCELLED,
    }
)


def assert_transition(current: BookingStatus, target: BookingStatus) -> None:
    """Raise InvalidTransition unless current -> target is in the transition table."""
    if target not in BOOKING_TRANSITIONS.get(current, frozenset()):
        raise InvalidTransition(current.value, target.value)


def releases_seat(current: BookingStatus, target: BookingStatus) -> bool:
    """True when moving current -> target gives the booking's seat back to the room."""
    return current in SEAT_HOLDING_STATUSES and target not in SEAT_HOLDING_STATUSES


def append_note(existing: Optional[str], note: Optional[str]) -> Optional[str]:
    if not note:
        return existing
    return f"{existing}\n{note}" if existing else note


# =============================================================================
# Transitions
# =============================================================================


def confirm(booking: BookingRecord, now: datetime, notes: Optional[str] = None) -> BookingRecord:
    assert_transition(booking.status, BookingStatus.CONFIRMED)
    return booking.model_copy(
        update={
            "status": BookingStatus.CONFIRMED,
            "confirmed_at": now,
            "notes": append_note(booking.notes, notes),
        }
    )


def check_in(
    booking: BookingRecord, now: datetime, notes: Optional[str] = None
) -> BookingRecord:
    """
    Move a confirmed booking to checked_in.

    Raises:
        InvalidTransition: booking is not confirmed
        PaymentIncomplete: the booking is not fully paid
        TooEarly: the check-in date has not been reached
    """
    assert_transition(booking.status, BookingStatus.CHECKED_IN)

    if booking.payment_status is not PaymentStatus.PAID or booking.amount_due > 0:
        raise PaymentIncomplete(
            f"Full payment of {booking.total_amount} must be completed before check-in. "
            f"Remaining balance: {booking.amount_due}"
        )

    if now.date() < booking.check_in_date:
        raise TooEarly(
            f"Check-in is not allowed before {booking.check_in_date.isoformat()}"
        )

    return booking.model_copy(
        update={
            "status": BookingStatus.CHECKED_IN,
            "checked_in_at": now,
            "notes": append_note(booking.notes, notes),
        }
    )


def check_out(
    booking: BookingRecord, now: datetime, notes: Optional[str] = None
) -> BookingRecord:
    assert_transition(booking.status, BookingStatus.CHECKED_OUT)
    return booking.model_copy(
        update={
            "status": BookingStatus.CHECKED_OUT,
            "checked_out_at": now,
            "notes": append_note(booking.notes, notes),
        }
    )


def cancel(
    booking: BookingRecord, now: datetime, reason: str, notes: Optional[str] = None
) -> BookingRecord:
    assert_transition(booking.status, BookingStatus.CANCELLED)
    return booking.model_copy(
        update={
            "status": BookingStatus.CANCELLED,
            "payment_status": PaymentStatus.REFUNDED,
            "cancelled_at": now,
            "cancellation_reason": reason,
            "notes": append_note(booking.notes, notes),
        }
    )


def mark_no_show(booking: BookingRecord, now: datetime) -> BookingRecord:
    assert_transition(booking.status, BookingStatus.NO_SHOW)
    return booking.model_copy(
        update={
            "status": BookingStatus.NO_SHOW,
            "notes": append_note(
                booking.notes, f"Marked as no-show on {now.date().isoformat()}"
            ),
        }
    )


def is_payment_overdue(booking: BookingRecord, today: date) -> bool:
    """True when the payment due date has passed and the booking still owes money."""
    if booking.payment_due_date is None:
        return False
    if booking.payment_status in _SETTLED_PAYMENT_STATUSES:
        return False
    if booking.status not in SEAT_HOLDING_STATUSES:
        return False
    return today > booking.payment_due_date


def mark_overdue(booking: BookingRecord) -> BookingRecord:
    """Flag the payment as overdue. Status is left untouched."""
    return booking.model_copy(update={"payment_status": PaymentStatus.OVERDUE})


def is_no_show(booking: BookingRecord, today: date) -> bool:
    """A confirmed booking whose check-in date has fully elapsed without a check-in."""
    return (
        booking.status is BookingStatus.CONFIRMED
        and booking.checked_in_at is None
        and booking.check_in_date < today
    )


def is_auto_cancel_due(booking: BookingRecord, today: date, grace_days: int) -> bool:
    """A pending booking whose payment has been overdue for more than grace_days."""
    return (
        booking.status is BookingStatus.PENDING
        and booking.payment_status is PaymentStatus.OVERDUE
        and booking.payment_due_date is not None
        and (today - booking.payment_due_date).days > grace_days
    )


# =============================================================================
# Ledger arithmetic
# =============================================================================


def amount_due_for(total_amount: Decimal, amount_paid: Decimal) -> Decimal:
    return max(Decimal("0"), Decimal(total_amount) - Decimal(amount_paid)).quantize(CENTS)


def apply_payment(booking: BookingRecord, amount: Decimal) -> BookingRecord:
    """
    Apply a payment to a booking read under its row lock.

    Raises:
        BookingCancelled: the booking was cancelled
        InvalidAmount: amount <= 0
        AmountExceedsDue: amount is larger than the current amount_due
    """
    if booking.status is BookingStatus.CANCELLED:
        raise BookingCancelled("Cannot record payment for cancelled booking")

    amount = Decimal(amount)
    if amount <= 0:
        raise InvalidAmount(amount)

    if amount > booking.amount_due:
        raise AmountExceedsDue(amount, booking.amount_due)

    amount_paid = (Decimal(booking.amount_paid) + amount).quantize(CENTS)
    amount_due = amount_due_for(booking.total_amount, amount_paid)

    if amount_due == 0:
        payment_status = PaymentStatus.PAID
    elif amount_paid > 0:
        payment_status = PaymentStatus.PARTIAL
    else:
        payment_status = booking.payment_status

    return booking.model_copy(
        update={
            "amount_paid": amount_paid,
            "amount_due": amount_due,
            "payment_status": payment_status,
        }
    )


def reprice(booking: BookingRecord, total_amount: Decimal) -> BookingRecord:
    """Replace the total after a date change, keeping amount_due consistent."""
    amount_due = amount_due_for(total_amount, booking.amount_paid)
    update: dict[str, object] = {"total_amount": total_amount, "amount_due": amount_due}
    if amount_due == 0 and booking.amount_paid > 0:
        update["payment_status"] = PaymentStatus.PAID
    elif booking.payment_status is PaymentStatus.PAID and amount_due > 0:
        update["payment_status"] = PaymentStatus.PARTIAL
    return booking.model_copy(update=update)


# =============================================================================
# Projection helpers
# =============================================================================


def booking_duration_days(booking: BookingRecord) -> int:
    return duration_days(booking.check_in_date, booking.check_out_date)


def can_cancel(booking: BookingRecord) -> bool:
    return BookingStatus.CANCELLED in BOOKING_TRANSITIONS[booking.status]


def can_check_in(booking: BookingRecord, today: date) -> bool:
    return (
        booking.status is BookingStatus.CONFIRMED
        and booking.payment_status is PaymentStatus.PAID
        and today >= booking.check_in_date
    )


def can_check_out(booking: BookingRecord) -> bool:
    return booking.status is BookingStatus.CHECKED_IN


def is_overdue(booking: BookingRecord, today: date) -> bool:
    if booking.payment_due_date is None or booking.payment_status is PaymentStatus.PAID:
        return False
    return today > booking.payment_due_date


def payment_progress_percent(booking: BookingRecord) -> float:
    if booking.total_amount <= 0:
        return 0.0
    return round(float(booking.amount_paid / booking.total_amount * 100), 2)
