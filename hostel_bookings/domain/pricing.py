"""Booking total computation from a room type's price plan."""

from __future__ import annotations

from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from math import ceil

from hostel_bookings.domain.records import BookingType, RoomTypeRecord
from hostel_bookings.errors import InvalidBookingType

CENTS = Decimal("0.01")


def duration_days(check_in: date, check_out: date) -> int:
    """Whole days between check-in and check-out, rounded up."""
    return ceil((check_out - check_in).days)


def calculate_total_amount(
    room_type: RoomTypeRecord,
    booking_type: BookingType | str,
    check_in: date,
    check_out: date,
) -> Decimal:
    """
    Size a booking's total from its room type and booking type.

    semester -> flat price_per_semester
    monthly  -> price_per_month * ceil(days / 30)
    weekly   -> price_per_week * ceil(days / 7), or price_per_month * weeks / 4
                when the room type has no weekly price

    Raises:
        InvalidBookingType: booking_type is not one of the known plans
    """
    try:
        plan = BookingType(booking_type)
    except ValueError:
        raise InvalidBookingType(str(booking_type)) from None

    days = duration_days(check_in, check_out)

    if plan is BookingType.SEMESTER:
        total = Decimal(room_type.price_per_semester)
    elif plan is BookingType.MONTHLY:
        total = Decimal(room_type.price_per_month) * ceil(days / 30)
    else:
        weeks = ceil(days / 7)
        if room_type.price_per_week:
            total = Decimal(room_type.price_per_week) * weeks
        else:
            total = Decimal(room_type.price_per_month) * weeks / 4

    return total.quantize(CENTS, rounding=ROUND_HALF_UP)
