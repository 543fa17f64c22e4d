"""
Unit tests for booking total computation.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Optional

import pytest

from hostel_bookings.domain.pricing import calculate_total_amount, duration_days
from hostel_bookings.domain.records import BookingType, RoomTypeRecord
from hostel_bookings.errors import InvalidBookingType

CHECK_IN = date(2026, 1, 10)


def room_type(price_per_week: Optional[Decimal] = Decimal("80.00")) -> RoomTypeRecord:
    return RoomTypeRecord(
        id="rt-1",
        hostel_id="h-1",
        name="Single",
        price_per_semester=Decimal("1500.00"),
        price_per_month=Decimal("350.00"),
        price_per_week=price_per_week,
    )


@pytest.mark.unit
def test_duration_days_counts_whole_days() -> None:
    assert duration_days(CHECK_IN, date(2026, 1, 11)) == 1
    assert duration_days(CHECK_IN, date(2026, 2, 9)) == 30


@pytest.mark.unit
def test_semester_is_flat_price() -> None:
    """Test that a semester booking costs price_per_semester regardless of length."""
    total = calculate_total_amount(room_type(), BookingType.SEMESTER, CHECK_IN, date(2026, 5, 30))

    assert total == Decimal("1500.00")


@pytest.mark.unit
@pytest.mark.parametrize(
    "check_out,expected",
    [
        (date(2026, 2, 9), Decimal("350.00")),  # 30 days -> 1 month
        (date(2026, 2, 10), Decimal("700.00")),  # 31 days -> 2 months
        (date(2026, 4, 10), Decimal("1050.00")),  # 90 days -> 3 months
    ],
)
def test_monthly_rounds_months_up(check_out: date, expected: Decimal) -> None:
    assert calculate_total_amount(room_type(), "monthly", CHECK_IN, check_out) == expected


@pytest.mark.unit
def test_weekly_uses_weekly_price() -> None:
    """Test that 8 days of a weekly booking bills two weeks."""
    total = calculate_total_amount(room_type(), BookingType.WEEKLY, CHECK_IN, date(2026, 1, 18))

    assert total == Decimal("160.00")


@pytest.mark.unit
def test_weekly_falls_back_to_quarter_month() -> None:
    """Test that a room type without a weekly price bills a quarter of the monthly price."""
    total = calculate_total_amount(
        room_type(price_per_week=None), BookingType.WEEKLY, CHECK_IN, date(2026, 1, 24)
    )

    assert total == Decimal("175.00")  # 2 weeks * 350 / 4


@pytest.mark.unit
def test_unknown_booking_type_is_rejected() -> None:
    with pytest.raises(InvalidBookingType, match="nightly"):
        calculate_total_amount(room_type(), "nightly", CHECK_IN, date(2026, 1, 12))
