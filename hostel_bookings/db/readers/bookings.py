from datetime import date
from typing import Any, Optional

from sqlalchemy import and_, func, select
from sqlalchemy.engine import Connection, Row

from hostel_bookings.domain.records import (
    OCCUPANT_STATUSES,
    SEAT_HOLDING_STATUSES,
    BookingRecord,
    BookingStatus,
    PaymentStatus,
)
from hostel_bookings.errors import BookingNotFound
from hostel_bookings.models.bookings import Booking
from hostel_bookings.models.catalog import Hostel, Room

_SEAT_HOLDING = [s.value for s in SEAT_HOLDING_STATUSES]
_OCCUPANT = [s.value for s in OCCUPANT_STATUSES]


def to_booking(row: Row[Any]) -> BookingRecord:
    return BookingRecord.model_validate(dict(row._mapping))


def lock_booking(
    conn: Connection, booking_id: str, owner_id: Optional[str] = None
) -> BookingRecord:
    """
    Lock one booking row (SELECT ... FOR UPDATE) and return it as read under the lock.

    Args:
        conn (Connection): Connection inside an open transaction.
        booking_id (str): Booking to lock.
        owner_id (Optional[str]): When set, the booking must belong to this student.

    Returns:
        BookingRecord: The locked booking.

    Raises:
        BookingNotFound: No matching booking.
    """
    stmt = select(Booking).where(Booking.id == booking_id)
    if owner_id is not None:
        stmt = stmt.where(Booking.student_id == owner_id)

    row = conn.execute(stmt.with_for_update()).fetchone()
    if row is None:
        raise BookingNotFound(booking_id)
    return to_booking(row)


def get_booking(conn: Connection, booking_id: str) -> Optional[BookingRecord]:
    """
    Fetch a booking without locking it.

    Args:
        conn (Connection): An active SQLAlchemy database connection.
        booking_id (str): Booking ID.

    Returns:
        Optional[BookingRecord]: The booking or None if not found.
    """
    row = conn.execute(select(Booking).where(Booking.id == booking_id)).fetchone()
    return to_booking(row) if row else None


def get_active_booking_for_student(
    conn: Connection, student_id: str
) -> Optional[tuple[BookingRecord, Optional[str], Optional[str]]]:
    """
    Find a student's booking in pending/confirmed/checked_in, if any.

    Returns:
        Optional[tuple]: (booking, hostel name, room number) or None
    """
    row = conn.execute(
        select(Booking, Hostel.name.label("hostel_name"), Room.room_number.label("room_number"))
        .outerjoin(Hostel, Hostel.id == Booking.hostel_id)
        .outerjoin(Room, Room.id == Booking.room_id)
        .where(Booking.student_id == student_id)
        .where(Booking.status.in_(_SEAT_HOLDING))
        .limit(1)
    ).fetchone()
    if row is None:
        return None

    mapping = dict(row._mapping)
    hostel_name = mapping.pop("hostel_name")
    room_number = mapping.pop("room_number")
    return BookingRecord.model_validate(mapping), hostel_name, room_number


def count_overlapping_bookings(
    conn: Connection,
    room_id: str,
    check_in: date,
    check_out: date,
    exclude_booking_id: Optional[str] = None,
) -> int:
    """
    Count confirmed/checked-in bookings on a room whose check-in falls in [check_in, check_out].
    """
    stmt = (
        select(func.count())
        .select_from(Booking)
        .where(Booking.room_id == room_id)
        .where(Booking.status.in_(_OCCUPANT))
        .where(Booking.check_in_date.between(check_in, check_out))
    )
    if exclude_booking_id is not None:
        stmt = stmt.where(Booking.id != exclude_booking_id)
    return int(conn.execute(stmt).scalar_one())


def get_occupant_student_ids(conn: Connection, room_id: str) -> list[str]:
    """Students currently confirmed or checked in to a room."""
    result = conn.execute(
        select(Booking.student_id)
        .where(Booking.room_id == room_id)
        .where(Booking.status.in_(_OCCUPANT))
    )
    return list(result.scalars().all())


def count_seat_holders(conn: Connection, room_id: str) -> int:
    """Number of bookings currently holding a seat in the room."""
    return int(
        conn.execute(
            select(func.count())
            .select_from(Booking)
            .where(Booking.room_id == room_id)
            .where(Booking.status.in_(_SEAT_HOLDING))
        ).scalar_one()
    )


# =============================================================================
# Scheduler candidate queries
# =============================================================================


def find_overdue_candidates(conn: Connection, today: date) -> list[str]:
    """Bookings whose payment_due_date has passed and that still owe money."""
    settled = [
        PaymentStatus.PAID.value,
        PaymentStatus.OVERDUE.value,
        PaymentStatus.REFUNDED.value,
        PaymentStatus.CANCELLED.value,
    ]
    result = conn.execute(
        select(Booking.id)
        .where(Booking.payment_due_date < today)
        .where(Booking.payment_status.not_in(settled))
        .where(Booking.status.in_(_SEAT_HOLDING))
        .order_by(Booking.payment_due_date)
    )
    return list(result.scalars().all())


def find_auto_cancel_candidates(conn: Connection, cutoff: date) -> list[str]:
    """Pending bookings overdue since before cutoff."""
    result = conn.execute(
        select(Booking.id)
        .where(Booking.status == BookingStatus.PENDING.value)
        .where(Booking.payment_status == PaymentStatus.OVERDUE.value)
        .where(Booking.payment_due_date < cutoff)
        .order_by(Booking.payment_due_date)
    )
    return list(result.scalars().all())


def find_no_show_candidates(conn: Connection, today: date) -> list[str]:
    """Confirmed bookings whose check-in date is fully in the past with no check-in."""
    result = conn.execute(
        select(Booking.id)
        .where(Booking.status == BookingStatus.CONFIRMED.value)
        .where(Booking.check_in_date < today)
        .where(Booking.checked_in_at.is_(None))
        .order_by(Booking.check_in_date)
    )
    return list(result.scalars().all())


def find_payment_reminder_candidates(
    conn: Connection, today: date, horizon: date
) -> list[BookingRecord]:
    """Confirmed bookings with money outstanding and a due date between today and horizon."""
    result = conn.execute(
        select(Booking)
        .where(Booking.status == BookingStatus.CONFIRMED.value)
        .where(
            Booking.payment_status.in_(
                [PaymentStatus.PENDING.value, PaymentStatus.PARTIAL.value]
            )
        )
        .where(Booking.payment_due_date >= today)
        .where(Booking.payment_due_date <= horizon)
    )
    return [to_booking(row) for row in result]


def find_bookings_by_date(
    conn: Connection,
    status: BookingStatus,
    check_in: Optional[date] = None,
    check_out: Optional[date] = None,
) -> list[BookingRecord]:
    """Bookings in a status whose check-in (or check-out) date is exactly the given day."""
    conditions = [Booking.status == status.value]
    if check_in is not None:
        conditions.append(Booking.check_in_date == check_in)
    if check_out is not None:
        conditions.append(Booking.check_out_date == check_out)
    result = conn.execute(select(Booking).where(and_(*conditions)))
    return [to_booking(row) for row in result]
