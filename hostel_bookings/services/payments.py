"""Payment ledger: append-only payments and the booking amounts they drive."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

import structlog
from sqlalchemy.engine import Connection, Engine

from hostel_bookings.db.transaction import locked_booking
from hostel_bookings.db.writers.bookings import save_booking
from hostel_bookings.db.writers.payments import insert_payment
from hostel_bookings.domain import state_machine
from hostel_bookings.domain.records import BookingRecord, PaymentMethod, PaymentRecord, PaymentType
from hostel_bookings.metrics import payment_amount, payments_recorded
from hostel_bookings.services.notifications import LoggingNotifier, NotificationPort, notify_safely
from hostel_bookings.utils.datetime import utc_now

logger = structlog.get_logger(__name__)


def append_payment(
    conn: Connection,
    booking: BookingRecord,
    amount: Decimal,
    method: PaymentMethod,
    payment_type: PaymentType,
    now: datetime,
    reference: Optional[str] = None,
    notes: Optional[str] = None,
    received_by: Optional[str] = None,
) -> tuple[PaymentRecord, BookingRecord]:
    """
    Apply a payment to a booking locked by the caller and append its ledger row.

    Args:
        conn: Connection holding the booking's row lock
        booking: Booking as read under that lock

    Returns:
        (payment, booking): the new ledger row and the recomputed booking

    Raises:
        BookingCancelled, InvalidAmount, AmountExceedsDue
    """
    updated = state_machine.apply_payment(booking, amount)
    payment = PaymentRecord(
        id=str(uuid.uuid4()),
        booking_id=booking.id,
        amount=Decimal(amount),
        payment_method=method,
        payment_type=payment_type,
        transaction_ref=reference,
        notes=notes,
        payment_date=now,
        received_by=received_by,
    )
    insert_payment(conn, payment)
    save_booking(conn, updated)
    return payment, updated


def track_payment(payment: PaymentRecord) -> None:
    """Count a committed ledger row."""
    payments_recorded.labels(
        payment_type=payment.payment_type.value, method=payment.payment_method.value
    ).inc()
    payment_amount.labels(payment_type=payment.payment_type.value).inc(float(payment.amount))


def record_payment(
    engine: Engine,
    booking_id: str,
    amount: Decimal,
    method: PaymentMethod,
    reference: Optional[str] = None,
    received_by: Optional[str] = None,
    notes: Optional[str] = None,
    notifier: Optional[NotificationPort] = None,
    now: Optional[datetime] = None,
) -> tuple[PaymentRecord, BookingRecord]:
    """
    Record a payment against a booking in one transaction.

    The booking row is locked before amount_due is read, so two concurrent
    payments can never both pass the "does not exceed amount due" check.

    Args:
        engine: SQLAlchemy engine
        booking_id: Booking to pay
        amount: Amount received (> 0, <= amount_due)
        method: Payment method
        reference: External transaction reference
        received_by: Staff member who took the payment

    Returns:
        (payment, booking): the ledger row and the booking after the payment

    Raises:
        BookingNotFound, BookingCancelled, InvalidAmount, AmountExceedsDue, LockTimeout
    """
    now = now or utc_now()
    with locked_booking(engine, booking_id) as (conn, booking):
        payment, updated = append_payment(
            conn,
            booking,
            amount,
            method,
            PaymentType.BOOKING_PAYMENT,
            now,
            reference=reference,
            notes=notes,
            received_by=received_by,
        )

    track_payment(payment)
    logger.info(
        "payment_recorded",
        booking_id=booking_id,
        payment_id=payment.id,
        amount=str(payment.amount),
        amount_due=str(updated.amount_due),
        payment_status=updated.payment_status.value,
    )
    notifier = notifier if notifier is not None else LoggingNotifier()
    notify_safely(notifier.payment_received, updated, payment)
    return payment, updated
