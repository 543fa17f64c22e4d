"""
Booking eligibility rules as pure functions.

The eligibility service gathers the facts from the store (the student, the
room, any active booking, occupant genders, overlapping bookings) and hands
them to these checks, which raise the specific EligibilityError on failure.
"""

from __future__ import annotations

from datetime import date
from typing import Iterable, Optional

from hostel_bookings.domain.occupancy import is_available
from hostel_bookings.domain.records import (
    BookingRecord,
    Gender,
    RoomRecord,
    RoomTypeRecord,
    StudentRecord,
)
from hostel_bookings.errors import (
    ActiveBookingConflict,
    GenderIncompatible,
    InvalidDates,
    RoomGenderMismatch,
    RoomUnavailable,
)

MIXED = "mixed"


def declared_gender(gender: Optional[str]) -> Optional[str]:
    """Lower-cased gender, or None when unset or "prefer not to say"."""
    if not gender:
        return None
    normalized = gender.strip().lower()
    if normalized in (Gender.PREFER_NOT_TO_SAY.value, "prefer not to say"):
        return None
    return normalized


def check_dates(check_in: date, check_out: date, today: date) -> None:
    if check_in < today:
        raise InvalidDates("Check-in date cannot be in the past")
    if check_out <= check_in:
        raise InvalidDates("Check-out date must be after check-in date")


def check_single_active_booking(
    existing: Optional[BookingRecord],
    hostel_name: Optional[str] = None,
    room_number: Optional[str] = None,
) -> None:
    if existing is None:
        return
    status_text = existing.status.value.replace("_", " ").upper()
    raise ActiveBookingConflict(
        f"This student already has an active booking ({status_text}) at "
        f"{hostel_name or 'Unknown Hostel'}, Room {room_number or 'N/A'}. "
        "Please complete or cancel the current booking before creating a new one."
    )


def check_gender(
    student: StudentRecord,
    room_type: RoomTypeRecord,
    occupant_genders: Iterable[Optional[str]],
) -> None:
    """
    Gender policy of the room type and of the room's current occupants.

    A student with no declared gender is never blocked.
    """
    gender = declared_gender(student.gender)
    if gender is None:
        return

    allowed = [g.lower() for g in room_type.allowed_genders]
    if allowed and gender not in allowed and MIXED not in allowed:
        raise GenderIncompatible(
            f"This room is restricted to {', '.join(allowed)} students only. "
            f"The student's gender ({student.gender}) is not compatible with this room type."
        )

    if not allowed or MIXED in allowed:
        return

    current = [g for g in (declared_gender(o) for o in occupant_genders) if g]
    if current and current[0] != gender:
        raise RoomGenderMismatch(
            f"This room currently has {current[0]} occupants. "
            "Mixed gender occupancy is not allowed in this room type."
        )


def check_room_capacity(room: RoomRecord, overlapping_bookings: int) -> None:
    if not is_available(room):
        raise RoomUnavailable(
            f"Room {room.room_number} is not available for booking "
            f"(status={room.status.value}, occupancy "
            f"{room.current_occupancy}/{room.max_occupancy})"
        )
    if overlapping_bookings >= room.max_occupancy:
        raise RoomUnavailable(
            f"Room {room.room_number} is already booked for the selected dates"
        )
