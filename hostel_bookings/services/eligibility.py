"""Eligibility validator: gathers facts under the caller's transaction and runs the rules."""

from datetime import date

import structlog
from sqlalchemy.engine import Connection

from hostel_bookings.db.readers.bookings import (
    count_overlapping_bookings,
    get_active_booking_for_student,
    get_occupant_student_ids,
)
from hostel_bookings.db.readers.rooms import get_room_type, lock_room
from hostel_bookings.db.readers.students import get_genders, get_student
from hostel_bookings.domain import eligibility
from hostel_bookings.domain.records import RoomRecord, RoomTypeRecord, StudentRecord
from hostel_bookings.errors import RoomNotFound, StudentNotFound
from hostel_bookings.schemas.bookings import BookingCreate

logger = structlog.get_logger(__name__)


def validate_create(
    conn: Connection, request: BookingCreate, today: date
) -> tuple[StudentRecord, RoomRecord, RoomTypeRecord]:
    """
    Check that a booking may be created, locking the requested room.

    The room row stays locked until the caller's transaction ends, so the
    capacity checked here cannot change before the seat is taken.

    Args:
        conn (Connection): Connection inside the create transaction.
        request (BookingCreate): The booking request.
        today (date): Current date used for the date checks.

    Returns:
        tuple: (student, locked room, room type)

    Raises:
        StudentNotFound, RoomNotFound: unknown student or room
        InvalidDates: check-in in the past or check-out not after check-in
        ActiveBookingConflict, GenderIncompatible, RoomGenderMismatch, RoomUnavailable
    """
    student = get_student(conn, request.student_id)
    if student is None:
        raise StudentNotFound(request.student_id)

    eligibility.check_dates(request.check_in_date, request.check_out_date, today)

    active = get_active_booking_for_student(conn, request.student_id)
    if active is not None:
        existing, hostel_name, room_number = active
        eligibility.check_single_active_booking(existing, hostel_name, room_number)

    room = lock_room(conn, request.room_id, hostel_id=request.hostel_id)
    room_type = get_room_type(conn, room.room_type_id)
    if room_type is None:
        raise RoomNotFound(request.room_id)

    occupant_genders = get_genders(conn, get_occupant_student_ids(conn, room.id))
    eligibility.check_gender(student, room_type, occupant_genders)

    overlapping = count_overlapping_bookings(
        conn, room.id, request.check_in_date, request.check_out_date
    )
    eligibility.check_room_capacity(room, overlapping)

    logger.debug(
        "booking_eligible",
        student_id=student.id,
        room_id=room.id,
        overlapping=overlapping,
    )
    return student, room, room_type
