"""
Integration tests for the payment ledger, booking edits and the booking fee.
"""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal
from typing import Callable
from unittest.mock import Mock

import pytest
from conftest import NOW, TODAY, read_booking, read_room
from sqlalchemy.engine import Engine

from hostel_bookings.domain.records import (
    BookingRecord,
    BookingStatus,
    PaymentMethod,
    PaymentStatus,
    PaymentType,
)
from hostel_bookings.errors import (
    AmountBelowPaid,
    AmountExceedsDue,
    BookingCancelled,
    BookingClosed,
    BookingHasPayments,
    BookingNotFound,
    InvalidAmount,
    InvalidDates,
    InvalidTransition,
    NothingDue,
    PaymentVerificationFailed,
)
from hostel_bookings.gateway.paystack import GatewayVerification
from hostel_bookings.schemas.bookings import BookingUpdate
from hostel_bookings.services import bookings, payments

Factory = Callable[..., str]
MakeBooking = Callable[..., BookingRecord]


@pytest.fixture
def booking(make_room: Factory, make_student: Factory, make_booking: MakeBooking) -> BookingRecord:
    """A pending 900.00 semester booking."""
    return make_booking(make_student(), make_room())


def fee_gateway(amount: str = "70.00", success: bool = True) -> Mock:
    gateway = Mock()
    gateway.verify.return_value = GatewayVerification(
        success=success,
        amount=Decimal(amount),
        paid_at=NOW,
        reference="FEE-1",
        gateway_reference="4099",
    )
    return gateway


@pytest.mark.integration
def test_scenario_a_partial_then_full_payment(db_engine: Engine, booking: BookingRecord) -> None:
    """Test 900 paid as 500 then 400: partial, then paid with nothing due."""
    notifier = Mock()

    payment, partial = payments.record_payment(
        db_engine, booking.id, Decimal("500"), PaymentMethod.MOBILE_MONEY, notifier=notifier
    )
    assert payment.payment_type is PaymentType.BOOKING_PAYMENT
    assert partial.amount_paid == Decimal("500.00")
    assert partial.amount_due == Decimal("400.00")
    assert partial.payment_status is PaymentStatus.PARTIAL

    _, paid = payments.record_payment(
        db_engine,
        booking.id,
        Decimal("400"),
        PaymentMethod.CASH,
        reference="RCPT-88",
        received_by="front-desk",
    )
    assert paid.amount_paid == Decimal("900.00")
    assert paid.amount_due == Decimal("0.00")
    assert paid.payment_status is PaymentStatus.PAID

    stored = read_booking(db_engine, booking.id)
    assert stored.amount_due == max(Decimal("0"), stored.total_amount - stored.amount_paid)
    ledger = bookings.list_booking_payments(db_engine, booking.id)
    assert sorted(p.amount for p in ledger) == [Decimal("400.00"), Decimal("500.00")]
    assert notifier.payment_received.call_count == 1


@pytest.mark.integration
def test_scenario_b_overpayment_leaves_state_unchanged(
    db_engine: Engine, booking: BookingRecord
) -> None:
    """Test that paying more than is due fails and rolls back completely."""
    payments.record_payment(db_engine, booking.id, Decimal("500"), PaymentMethod.CASH)

    with pytest.raises(AmountExceedsDue, match="400.00"):
        payments.record_payment(db_engine, booking.id, Decimal("1000"), PaymentMethod.CASH)

    stored = read_booking(db_engine, booking.id)
    assert stored.amount_paid == Decimal("500.00")
    assert stored.amount_due == Decimal("400.00")
    assert stored.payment_status is PaymentStatus.PARTIAL
    assert len(bookings.list_booking_payments(db_engine, booking.id)) == 1


@pytest.mark.integration
def test_payment_rejections(db_engine: Engine, booking: BookingRecord) -> None:
    with pytest.raises(InvalidAmount):
        payments.record_payment(db_engine, booking.id, Decimal("0"), PaymentMethod.CASH)
    with pytest.raises(BookingNotFound):
        payments.record_payment(db_engine, "missing", Decimal("10"), PaymentMethod.CASH)

    bookings.cancel_booking(db_engine, booking.id, "No longer needed", now=NOW)
    with pytest.raises(BookingCancelled):
        payments.record_payment(db_engine, booking.id, Decimal("10"), PaymentMethod.CASH)

    assert bookings.list_booking_payments(db_engine, booking.id) == []


@pytest.mark.integration
def test_list_payments_of_unknown_booking(db_engine: Engine) -> None:
    with pytest.raises(BookingNotFound):
        bookings.list_booking_payments(db_engine, "missing")


@pytest.mark.integration
def test_update_dates_reprices_booking(db_engine: Engine, booking: BookingRecord) -> None:
    """Test that a monthly-priced date change recomputes total and amount_due."""
    payments.record_payment(db_engine, booking.id, Decimal("100"), PaymentMethod.CASH)

    updated = bookings.update_booking(
        db_engine,
        booking.id,
        BookingUpdate(special_requests="Lower bunk"),
        now=NOW,
    )
    assert updated.special_requests == "Lower bunk"
    assert updated.total_amount == Decimal("900.00")

    moved = bookings.update_booking(
        db_engine,
        booking.id,
        BookingUpdate(check_in_date=TODAY + timedelta(days=14)),
        now=NOW,
    )
    assert moved.check_in_date == TODAY + timedelta(days=14)
    assert moved.total_amount == Decimal("900.00")  # semester stays flat
    assert moved.amount_due == Decimal("800.00")
    assert moved.special_requests == "Lower bunk"


@pytest.mark.integration
def test_update_rejects_bad_dates_and_closed_bookings(
    db_engine: Engine, booking: BookingRecord
) -> None:
    with pytest.raises(InvalidDates):
        bookings.update_booking(
            db_engine, booking.id, BookingUpdate(check_out_date=booking.check_in_date), now=NOW
        )

    bookings.cancel_booking(db_engine, booking.id, "Cancelled", now=NOW)
    with pytest.raises(BookingClosed):
        bookings.update_booking(db_engine, booking.id, BookingUpdate(notes="late"), now=NOW)


@pytest.mark.integration
def test_update_cannot_price_below_amount_paid(
    db_engine: Engine, make_room: Factory, make_student: Factory, make_booking: MakeBooking
) -> None:
    """Test that shortening a monthly booking below what was already paid is refused."""
    check_in = TODAY + timedelta(days=1)
    booking = make_booking(
        make_student(),
        make_room(),
        booking_type="monthly",
        check_in=check_in,
        check_out=check_in + timedelta(days=60),
    )
    assert booking.total_amount == Decimal("600.00")
    payments.record_payment(db_engine, booking.id, Decimal("450"), PaymentMethod.CASH)

    with pytest.raises(AmountBelowPaid):
        bookings.update_booking(
            db_engine,
            booking.id,
            BookingUpdate(check_out_date=check_in + timedelta(days=20)),
            now=NOW,
        )

    assert read_booking(db_engine, booking.id).total_amount == Decimal("600.00")


@pytest.mark.integration
def test_delete_unpaid_booking_releases_seat(
    db_engine: Engine, make_room: Factory, make_student: Factory, make_booking: MakeBooking
) -> None:
    room_id = make_room()
    booking = make_booking(make_student(), room_id)

    bookings.delete_booking(db_engine, booking.id)

    with pytest.raises(BookingNotFound):
        bookings.get_booking_by_id(db_engine, booking.id)
    assert read_room(db_engine, room_id).current_occupancy == 0


@pytest.mark.integration
def test_delete_refuses_bookings_with_money(db_engine: Engine, booking: BookingRecord) -> None:
    payments.record_payment(db_engine, booking.id, Decimal("50"), PaymentMethod.CASH)

    with pytest.raises(BookingHasPayments):
        bookings.delete_booking(db_engine, booking.id)

    assert bookings.get_booking_by_id(db_engine, booking.id).amount_paid == Decimal("50.00")


@pytest.mark.integration
def test_delete_refuses_checked_in_booking(db_engine: Engine, booking: BookingRecord) -> None:
    bookings.confirm_booking(db_engine, booking.id, now=NOW)
    payments.record_payment(db_engine, booking.id, Decimal("900"), PaymentMethod.CARD)
    bookings.check_in(db_engine, booking.id, now=NOW + timedelta(days=7))

    with pytest.raises(InvalidTransition, match="checked_in -> deleted"):
        bookings.delete_booking(db_engine, booking.id)


@pytest.mark.integration
def test_booking_fee_is_tracked_separately(db_engine: Engine, booking: BookingRecord) -> None:
    """Test that the fee adds a ledger row but leaves amount_paid and amount_due alone."""
    gateway = fee_gateway()

    payment, updated = bookings.pay_booking_fee(db_engine, gateway, booking.id, "FEE-1", now=NOW)

    gateway.verify.assert_called_once_with("FEE-1")
    assert payment.amount == Decimal("70.00")
    assert payment.payment_method is PaymentMethod.CARD
    assert payment.notes == "Booking fee"
    assert updated.booking_fee_paid is True
    assert updated.amount_paid == Decimal("0.00")
    assert updated.amount_due == Decimal("900.00")

    with pytest.raises(NothingDue):
        bookings.pay_booking_fee(db_engine, fee_gateway(), booking.id, "FEE-2", now=NOW)
    with pytest.raises(BookingHasPayments):
        bookings.delete_booking(db_engine, booking.id)


@pytest.mark.integration
@pytest.mark.parametrize("amount,success", [("50.00", True), ("70.00", False)])
def test_booking_fee_requires_verified_exact_amount(
    db_engine: Engine, booking: BookingRecord, amount: str, success: bool
) -> None:
    with pytest.raises(PaymentVerificationFailed):
        bookings.pay_booking_fee(
            db_engine, fee_gateway(amount, success), booking.id, "FEE-1", now=NOW
        )

    stored = read_booking(db_engine, booking.id)
    assert stored.booking_fee_paid is False
    assert stored.status is BookingStatus.PENDING
    assert bookings.list_booking_payments(db_engine, booking.id) == []
