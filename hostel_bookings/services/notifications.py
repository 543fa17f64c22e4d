"""
Outbound notification port.

The engine only decides *when* a student should hear about a booking event;
content and delivery belong to the host system. Notifications are always sent
after the transaction that caused them has committed, through notify_safely(),
so a delivery failure can never undo a state change.
"""

from typing import Any, Callable, Protocol

import structlog

from hostel_bookings.domain.records import BookingRecord, PaymentRecord

logger = structlog.get_logger(__name__)


class NotificationPort(Protocol):
    def booking_created(self, booking: BookingRecord) -> None: ...

    def booking_confirmed(self, booking: BookingRecord) -> None: ...

    def booking_cancelled(self, booking: BookingRecord, reason: str) -> None: ...

    def booking_checked_in(self, booking: BookingRecord) -> None: ...

    def booking_checked_out(self, booking: BookingRecord) -> None: ...

    def booking_no_show(self, booking: BookingRecord) -> None: ...

    def payment_received(self, booking: BookingRecord, payment: PaymentRecord) -> None: ...

    def payment_overdue(self, booking: BookingRecord) -> None: ...

    def payment_reminder(self, booking: BookingRecord, days_until_due: int) -> None: ...

    def check_in_reminder(self, booking: BookingRecord) -> None: ...

    def check_out_reminder(self, booking: BookingRecord) -> None: ...


class LoggingNotifier:
    """Default notifier: emits one structured log event per notification."""

    def _emit(self, event: str, booking: BookingRecord, **context: Any) -> None:
        logger.info(
            event,
            booking_id=booking.id,
            student_id=booking.student_id,
            status=booking.status.value,
            payment_status=booking.payment_status.value,
            **context,
        )

    def booking_created(self, booking: BookingRecord) -> None:
        self._emit("notify_booking_created", booking, total_amount=str(booking.total_amount))

    def booking_confirmed(self, booking: BookingRecord) -> None:
        self._emit("notify_booking_confirmed", booking)

    def booking_cancelled(self, booking: BookingRecord, reason: str) -> None:
        self._emit("notify_booking_cancelled", booking, reason=reason)

    def booking_checked_in(self, booking: BookingRecord) -> None:
        self._emit("notify_booking_checked_in", booking)

    def booking_checked_out(self, booking: BookingRecord) -> None:
        self._emit("notify_booking_checked_out", booking)

    def booking_no_show(self, booking: BookingRecord) -> None:
        self._emit("notify_booking_no_show", booking)

    def payment_received(self, booking: BookingRecord, payment: PaymentRecord) -> None:
        self._emit(
            "notify_payment_received",
            booking,
            payment_id=payment.id,
            amount=str(payment.amount),
            amount_due=str(booking.amount_due),
        )

    def payment_overdue(self, booking: BookingRecord) -> None:
        self._emit("notify_payment_overdue", booking, amount_due=str(booking.amount_due))

    def payment_reminder(self, booking: BookingRecord, days_until_due: int) -> None:
        self._emit(
            "notify_payment_reminder",
            booking,
            amount_due=str(booking.amount_due),
            days_until_due=days_until_due,
        )

    def check_in_reminder(self, booking: BookingRecord) -> None:
        self._emit(
            "notify_check_in_reminder", booking, check_in_date=booking.check_in_date.isoformat()
        )

    def check_out_reminder(self, booking: BookingRecord) -> None:
        self._emit(
            "notify_check_out_reminder", booking, check_out_date=booking.check_out_date.isoformat()
        )


def notify_safely(send: Callable[..., None], *args: Any) -> bool:
    """
    Deliver one notification, logging and swallowing any failure.

    Args:
        send: Bound notifier method (e.g. notifier.booking_confirmed)
        *args: Arguments for the notifier method

    Returns:
        bool: True when the notifier returned without raising
    """
    try:
        send(*args)
        return True
    except Exception as e:
        logger.exception(
            "notification_failed",
            notification=getattr(send, "__name__", repr(send)),
            error=str(e),
        )
        return False
