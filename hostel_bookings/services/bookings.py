"""
Booking lifecycle service.

Each public function is one transaction: it locks the booking row through
locked_booking() (creation locks the room row instead), runs the pure state
machine on the record read under the lock, writes the result together with
any room occupancy change, and only then, after commit, notifies.
"""

import uuid
from contextlib import contextmanager
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Iterator, Optional

import structlog
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError

from hostel_bookings.config import AUTO_CANCEL_GRACE_DAYS, BOOKING_FEE, PAYMENT_DUE_DAYS
from hostel_bookings.db.readers.bookings import (
    count_overlapping_bookings,
    get_booking,
    lock_booking,
)
from hostel_bookings.db.readers.payments import list_payments
from hostel_bookings.db.readers.rooms import get_room_type, lock_room
from hostel_bookings.db.transaction import locked_booking, transaction
from hostel_bookings.db.writers.bookings import delete_booking as delete_booking_row
from hostel_bookings.db.writers.bookings import insert_booking, save_booking
from hostel_bookings.db.writers.payments import insert_payment
from hostel_bookings.domain import eligibility, state_machine
from hostel_bookings.domain.pricing import calculate_total_amount
from hostel_bookings.domain.records import (
    SEAT_HOLDING_STATUSES,
    BookingRecord,
    BookingStatus,
    PaymentMethod,
    PaymentRecord,
    PaymentStatus,
    PaymentType,
)
from hostel_bookings.errors import (
    ActiveBookingConflict,
    AmountBelowPaid,
    BookingCancelled,
    BookingClosed,
    BookingHasPayments,
    BookingNotFound,
    InvalidDates,
    InvalidTransition,
    NothingDue,
    PaymentVerificationFailed,
    RoomNotFound,
    RoomUnavailable,
)
from hostel_bookings.gateway.paystack import PaystackClient
from hostel_bookings.metrics import booking_transitions
from hostel_bookings.schemas.bookings import BookingCreate, BookingUpdate
from hostel_bookings.services import occupancy
from hostel_bookings.services.eligibility import validate_create
from hostel_bookings.services.notifications import LoggingNotifier, NotificationPort, notify_safely
from hostel_bookings.services.payments import track_payment
from hostel_bookings.utils.datetime import utc_now

logger = structlog.get_logger(__name__)

NON_PAYMENT_REASON = "non-payment"
BOOKING_FEE_NOTE = "Booking fee"

_CLOSED_STATUSES = frozenset(
    {BookingStatus.CHECKED_OUT, BookingStatus.CANCELLED, BookingStatus.NO_SHOW}
)


@contextmanager
def _tracked(transition: str) -> Iterator[None]:
    try:
        yield
    except Exception:
        booking_transitions.labels(transition=transition, status="failure").inc()
        raise
    booking_transitions.labels(transition=transition, status="success").inc()


def _notifier(notifier: Optional[NotificationPort]) -> NotificationPort:
    return notifier if notifier is not None else LoggingNotifier()


def _release_if_vacating(conn: Connection, before: BookingRecord, after: BookingRecord) -> None:
    if state_machine.releases_seat(before.status, after.status):
        occupancy.release(conn, before.room_id)


# =============================================================================
# Reads
# =============================================================================


def get_booking_by_id(engine: Engine, booking_id: str) -> BookingRecord:
    """
    Fetch one booking.

    Raises:
        BookingNotFound: No booking with this ID.
    """
    with engine.connect() as conn:
        booking = get_booking(conn, booking_id)
    if booking is None:
        raise BookingNotFound(booking_id)
    return booking


def list_booking_payments(engine: Engine, booking_id: str) -> list[PaymentRecord]:
    """Return a booking's payment ledger, newest first."""
    with engine.connect() as conn:
        if get_booking(conn, booking_id) is None:
            raise BookingNotFound(booking_id)
        return list_payments(conn, booking_id)


# =============================================================================
# Creation
# =============================================================================


def create_booking(
    engine: Engine,
    request: BookingCreate,
    notifier: Optional[NotificationPort] = None,
    now: Optional[datetime] = None,
) -> BookingRecord:
    """
    Create a pending booking and take its seat in the room.

    Args:
        engine: SQLAlchemy engine
        request: Validated booking request
        notifier: Notification port (defaults to LoggingNotifier)
        now: Current time (defaults to utc_now())

    Returns:
        BookingRecord: The new booking as stored

    Raises:
        StudentNotFound, RoomNotFound, InvalidDates, InvalidBookingType
        ActiveBookingConflict, GenderIncompatible, RoomGenderMismatch, RoomUnavailable
        LockTimeout: the room row could not be locked in time
    """
    now = now or utc_now()
    today = now.date()

    with _tracked("create"):
        with transaction(engine, resource="room", resource_id=request.room_id) as conn:
            _, room, room_type = validate_create(conn, request, today)

            total = calculate_total_amount(
                room_type, request.booking_type, request.check_in_date, request.check_out_date
            )
            booking = BookingRecord(
                id=str(uuid.uuid4()),
                hostel_id=room.hostel_id,
                room_id=room.id,
                student_id=request.student_id,
                booking_type=request.booking_type,
                status=BookingStatus.PENDING,
                payment_status=PaymentStatus.PAID if total == 0 else PaymentStatus.PENDING,
                check_in_date=request.check_in_date,
                check_out_date=request.check_out_date,
                total_amount=total,
                amount_due=total,
                booking_fee=BOOKING_FEE,
                payment_due_date=today + timedelta(days=PAYMENT_DUE_DAYS),
                special_requests=request.special_requests,
            )

            try:
                insert_booking(conn, booking)
            except IntegrityError as err:
                # A concurrent create for the same student won the partial unique index
                raise ActiveBookingConflict(
                    "This student already has an active booking. "
                    "Please complete or cancel the current booking before creating a new one."
                ) from err

            occupancy.occupy(conn, room.id)
            created = lock_booking(conn, booking.id)

    logger.info(
        "booking_created",
        booking_id=created.id,
        student_id=created.student_id,
        room_id=created.room_id,
        total_amount=str(created.total_amount),
    )
    notify_safely(_notifier(notifier).booking_created, created)
    return created


# =============================================================================
# Transitions
# =============================================================================


def confirm_booking(
    engine: Engine,
    booking_id: str,
    notes: Optional[str] = None,
    notifier: Optional[NotificationPort] = None,
    now: Optional[datetime] = None,
) -> BookingRecord:
    """Move a pending booking to confirmed. No payment precondition."""
    now = now or utc_now()
    with _tracked("confirm"):
        with locked_booking(engine, booking_id) as (conn, booking):
            updated = state_machine.confirm(booking, now, notes)
            save_booking(conn, updated)

    logger.info("booking_confirmed", booking_id=booking_id)
    notify_safely(_notifier(notifier).booking_confirmed, updated)
    return updated


def cancel_booking(
    engine: Engine,
    booking_id: str,
    reason: str,
    notes: Optional[str] = None,
    owner_id: Optional[str] = None,
    notifier: Optional[NotificationPort] = None,
    now: Optional[datetime] = None,
) -> BookingRecord:
    """
    Cancel a pending or confirmed booking and give its seat back to the room.

    Args:
        engine: SQLAlchemy engine
        booking_id: Booking to cancel
        reason: Cancellation reason stored on the booking
        owner_id: When set, only this student's booking may be cancelled

    Raises:
        BookingNotFound, InvalidTransition, LockTimeout
    """
    now = now or utc_now()
    with _tracked("cancel"):
        with locked_booking(engine, booking_id, owner_id=owner_id) as (conn, booking):
            updated = state_machine.cancel(booking, now, reason, notes)
            save_booking(conn, updated)
            _release_if_vacating(conn, booking, updated)

    logger.info("booking_cancelled", booking_id=booking_id, reason=reason)
    notify_safely(_notifier(notifier).booking_cancelled, updated, reason)
    return updated


def check_in(
    engine: Engine,
    booking_id: str,
    notes: Optional[str] = None,
    notifier: Optional[NotificationPort] = None,
    now: Optional[datetime] = None,
) -> BookingRecord:
    """
    Check a fully paid, confirmed booking in on or after its check-in date.

    Raises:
        BookingNotFound, InvalidTransition, PaymentIncomplete, TooEarly, LockTimeout
    """
    now = now or utc_now()
    with _tracked("check_in"):
        with locked_booking(engine, booking_id) as (conn, booking):
            updated = state_machine.check_in(booking, now, notes)
            save_booking(conn, updated)
            occupancy.refresh(conn, booking.room_id)

    logger.info("booking_checked_in", booking_id=booking_id, room_id=updated.room_id)
    notify_safely(_notifier(notifier).booking_checked_in, updated)
    return updated


def check_out(
    engine: Engine,
    booking_id: str,
    notes: Optional[str] = None,
    notifier: Optional[NotificationPort] = None,
    now: Optional[datetime] = None,
) -> BookingRecord:
    now = now or utc_now()
    with _tracked("check_out"):
        with locked_booking(engine, booking_id) as (conn, booking):
            updated = state_machine.check_out(booking, now, notes)
            save_booking(conn, updated)
            _release_if_vacating(conn, booking, updated)

    logger.info("booking_checked_out", booking_id=booking_id, room_id=updated.room_id)
    notify_safely(_notifier(notifier).booking_checked_out, updated)
    return updated


# =============================================================================
# Scheduler transitions
#
# Each re-checks its time predicate on the row read under the lock, so running
# a sweep twice (or concurrently with a user request) never applies twice.
# They return None when there was nothing to do.
# =============================================================================


def mark_booking_overdue(
    engine: Engine,
    booking_id: str,
    notifier: Optional[NotificationPort] = None,
    now: Optional[datetime] = None,
) -> Optional[BookingRecord]:
    now = now or utc_now()
    with _tracked("mark_overdue"):
        with locked_booking(engine, booking_id) as (conn, booking):
            if not state_machine.is_payment_overdue(booking, now.date()):
                return None
            updated = state_machine.mark_overdue(booking)
            save_booking(conn, updated)

    logger.info(
        "booking_payment_overdue",
        booking_id=booking_id,
        payment_due_date=str(updated.payment_due_date),
        amount_due=str(updated.amount_due),
    )
    notify_safely(_notifier(notifier).payment_overdue, updated)
    return updated


def auto_cancel_booking(
    engine: Engine,
    booking_id: str,
    notifier: Optional[NotificationPort] = None,
    now: Optional[datetime] = None,
) -> Optional[BookingRecord]:
    """Cancel a pending booking left unpaid past the grace period, reason "non-payment"."""
    now = now or utc_now()
    with _tracked("auto_cancel"):
        with locked_booking(engine, booking_id) as (conn, booking):
            if not state_machine.is_auto_cancel_due(booking, now.date(), AUTO_CANCEL_GRACE_DAYS):
                return None
            updated = state_machine.cancel(booking, now, NON_PAYMENT_REASON)
            save_booking(conn, updated)
            _release_if_vacating(conn, booking, updated)

    logger.info("booking_auto_cancelled", booking_id=booking_id)
    notify_safely(_notifier(notifier).booking_cancelled, updated, NON_PAYMENT_REASON)
    return updated


def mark_no_show(
    engine: Engine,
    booking_id: str,
    notifier: Optional[NotificationPort] = None,
    now: Optional[datetime] = None,
) -> Optional[BookingRecord]:
    now = now or utc_now()
    with _tracked("no_show"):
        with locked_booking(engine, booking_id) as (conn, booking):
            if not state_machine.is_no_show(booking, now.date()):
                return None
            updated = state_machine.mark_no_show(booking, now)
            save_booking(conn, updated)
            _release_if_vacating(conn, booking, updated)

    logger.info("booking_no_show", booking_id=booking_id)
    notify_safely(_notifier(notifier).booking_no_show, updated)
    return updated


# =============================================================================
# Edits
# =============================================================================


def update_booking(
    engine: Engine,
    booking_id: str,
    request: BookingUpdate,
    now: Optional[datetime] = None,
) -> BookingRecord:
    """
    Change a booking's dates, notes or special requests.

    New dates are validated and overlap-checked against the room (excluding
    this booking) and the total is recomputed from the room type.

    Raises:
        BookingNotFound, BookingClosed, InvalidDates, RoomUnavailable, AmountBelowPaid
    """
    now = now or utc_now()
    provided = request.model_fields_set

    with _tracked("update"):
        with locked_booking(engine, booking_id) as (conn, booking):
            if booking.status in _CLOSED_STATUSES:
                raise BookingClosed(f"Cannot update a {booking.status.value} booking")

            updated = booking
            check_in_date = request.check_in_date or booking.check_in_date
            check_out_date = request.check_out_date or booking.check_out_date

            if (check_in_date, check_out_date) != (booking.check_in_date, booking.check_out_date):
                if check_in_date != booking.check_in_date:
                    eligibility.check_dates(check_in_date, check_out_date, now.date())
                elif check_out_date <= check_in_date:
                    raise InvalidDates("Check-out date must be after check-in date")

                room = lock_room(conn, booking.room_id)
                overlapping = count_overlapping_bookings(
                    conn, room.id, check_in_date, check_out_date, exclude_booking_id=booking.id
                )
                if overlapping >= room.max_occupancy:
                    raise RoomUnavailable(
                        f"Room {room.room_number} is already booked for the selected dates"
                    )

                room_type = get_room_type(conn, room.room_type_id)
                if room_type is None:
                    raise RoomNotFound(room.id)
                total = calculate_total_amount(
                    room_type, booking.booking_type, check_in_date, check_out_date
                )
                if total < booking.amount_paid:
                    raise AmountBelowPaid(total, booking.amount_paid)

                updated = state_machine.reprice(
                    updated.model_copy(
                        update={"check_in_date": check_in_date, "check_out_date": check_out_date}
                    ),
                    total,
                )

            if "special_requests" in provided:
                updated = updated.model_copy(update={"special_requests": request.special_requests})
            if "notes" in provided:
                updated = updated.model_copy(update={"notes": request.notes})

            save_booking(conn, updated)

    logger.info(
        "booking_updated",
        booking_id=booking_id,
        fields=sorted(provided),
        total_amount=str(updated.total_amount),
    )
    return updated


def delete_booking(engine: Engine, booking_id: str) -> None:
    """
    Physically delete a booking that never received money.

    Raises:
        BookingNotFound
        InvalidTransition: the student is checked in
        BookingHasPayments: money (or the booking fee) was received
    """
    with _tracked("delete"):
        with locked_booking(engine, booking_id) as (conn, booking):
            if booking.status is BookingStatus.CHECKED_IN:
                raise InvalidTransition(booking.status.value, "deleted")
            if booking.amount_paid > 0 or booking.booking_fee_paid:
                raise BookingHasPayments(
                    "Cannot delete a booking with recorded payments; cancel it instead"
                )
            if booking.status in SEAT_HOLDING_STATUSES:
                occupancy.release(conn, booking.room_id)
            delete_booking_row(conn, booking.id)


def pay_booking_fee(
    engine: Engine,
    gateway: PaystackClient,
    booking_id: str,
    reference: str,
    owner_id: Optional[str] = None,
    notifier: Optional[NotificationPort] = None,
    now: Optional[datetime] = None,
) -> tuple[PaymentRecord, BookingRecord]:
    """
    Verify a gateway reference for the flat booking fee and mark the fee paid.

    The gateway is called before any lock is taken. The fee is tracked
    separately: amount_paid and amount_due are not changed.

    Raises:
        BookingNotFound, BookingCancelled, NothingDue (fee already paid)
        PaymentVerificationFailed: gateway did not confirm the exact fee
    """
    now = now or utc_now()
    get_booking_by_id(engine, booking_id)

    verification = gateway.verify(reference)
    if not verification.success:
        raise PaymentVerificationFailed(
            f"Payment verification failed for reference {reference}"
            + (f": {verification.message}" if verification.message else "")
        )
    if verification.amount != Decimal(BOOKING_FEE):
        raise PaymentVerificationFailed(
            f"Paid amount {verification.amount} does not match the booking fee of {BOOKING_FEE}"
        )

    with locked_booking(engine, booking_id, owner_id=owner_id) as (conn, booking):
        if booking.status is BookingStatus.CANCELLED:
            raise BookingCancelled("Cannot pay the booking fee for a cancelled booking")
        if booking.booking_fee_paid:
            raise NothingDue("Booking fee has already been paid")

        payment = PaymentRecord(
            id=str(uuid.uuid4()),
            booking_id=booking.id,
            amount=verification.amount,
            payment_method=PaymentMethod.CARD,
            payment_type=PaymentType.BOOKING_PAYMENT,
            transaction_ref=reference,
            notes=BOOKING_FEE_NOTE,
            payment_date=verification.paid_at or now,
        )
        insert_payment(conn, payment)
        updated = booking.model_copy(
            update={
                "booking_fee": verification.amount,
                "booking_fee_paid": True,
                "booking_fee_paid_at": now,
            }
        )
        save_booking(conn, updated)

    track_payment(payment)
    logger.info("booking_fee_paid", booking_id=booking_id, reference=reference)
    notify_safely(_notifier(notifier).payment_received, updated, payment)
    return payment, updated
