import structlog
from sqlalchemy import delete, insert, update
from sqlalchemy.engine import Connection

from hostel_bookings.db.writers._columns import to_columns
from hostel_bookings.domain.records import BookingRecord
from hostel_bookings.models.bookings import Booking

logger = structlog.get_logger(__name__)

# Fields a booking never changes after creation
_IMMUTABLE = frozenset({"id", "student_id", "hostel_id", "room_id", "created_at", "updated_at"})


def insert_booking(conn: Connection, booking: BookingRecord) -> None:
    """
    Insert a new booking row.

    The partial unique index on student_id raises IntegrityError when the
    student already holds an active booking; the caller maps it.
    """
    conn.execute(insert(Booking).values(**to_columns(booking)))
    logger.debug("booking_inserted", booking_id=booking.id, student_id=booking.student_id)


def save_booking(conn: Connection, booking: BookingRecord) -> None:
    """
    Persist every mutable field of a booking read and modified under its row lock.

    Args:
        conn: Connection holding the booking's row lock
        booking: The updated record
    """
    fields = set(BookingRecord.model_fields) - _IMMUTABLE
    conn.execute(
        update(Booking).where(Booking.id == booking.id).values(**to_columns(booking, fields))
    )


def delete_booking(conn: Connection, booking_id: str) -> None:
    conn.execute(delete(Booking).where(Booking.id == booking_id))
    logger.info("booking_deleted", booking_id=booking_id)
