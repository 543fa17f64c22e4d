from sqlalchemy import case, update
from sqlalchemy.engine import Connection

from hostel_bookings.domain.occupancy import OVERRIDE_STATUSES
from hostel_bookings.domain.records import RoomRecord, RoomStatus
from hostel_bookings.errors import RoomNotFound
from hostel_bookings.models.catalog import Room

_OVERRIDES = [s.value for s in OVERRIDE_STATUSES]


def apply_occupancy_delta(conn: Connection, room_id: str, delta: int) -> None:
    """
    Shift a room's occupancy by delta in one UPDATE statement.

    Occupancy is clamped to [0, max_occupancy] and the status is re-derived in
    the same statement: occupied when full, available otherwise, with
    maintenance/reserved left untouched. A delta of 0 only re-derives status.

    Args:
        conn: Connection inside the caller's transaction
        room_id: Room to update
        delta: +1 to take a seat, -1 to release one

    Raises:
        RoomNotFound: no such room
    """
    shifted = Room.current_occupancy + delta
    occupancy = case(
        (shifted > Room.max_occupancy, Room.max_occupancy),
        (shifted < 0, 0),
        else_=shifted,
    )
    status = case(
        (Room.status.in_(_OVERRIDES), Room.status),
        (occupancy >= Room.max_occupancy, RoomStatus.OCCUPIED.value),
        else_=RoomStatus.AVAILABLE.value,
    )
    result = conn.execute(
        update(Room).where(Room.id == room_id).values(current_occupancy=occupancy, status=status)
    )
    if result.rowcount == 0:
        raise RoomNotFound(room_id)


def save_room_occupancy(conn: Connection, room: RoomRecord) -> None:
    """Write a locked room's occupancy and status. No other room field is ever written."""
    conn.execute(
        update(Room)
        .where(Room.id == room.id)
        .values(current_occupancy=room.current_occupancy, status=room.status.value)
    )
