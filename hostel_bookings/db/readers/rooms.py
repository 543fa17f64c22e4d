from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.engine import Connection, Row

from hostel_bookings.domain.records import RoomRecord, RoomTypeRecord
from hostel_bookings.errors import RoomNotFound
from hostel_bookings.models.catalog import Room, RoomType


def _to_room(row: Row[Any]) -> RoomRecord:
    return RoomRecord.model_validate(dict(row._mapping))


def lock_room(conn: Connection, room_id: str, hostel_id: Optional[str] = None) -> RoomRecord:
    """
    Lock a room row for the rest of the transaction and return it.

    Raises:
        RoomNotFound: No matching room.
    """
    stmt = select(Room).where(Room.id == room_id)
    if hostel_id is not None:
        stmt = stmt.where(Room.hostel_id == hostel_id)
    row = conn.execute(stmt.with_for_update()).fetchone()
    if row is None:
        raise RoomNotFound(room_id)
    return _to_room(row)


def get_room_type(conn: Connection, room_type_id: str) -> Optional[RoomTypeRecord]:
    row = conn.execute(select(RoomType).where(RoomType.id == room_type_id)).fetchone()
    return RoomTypeRecord.model_validate(dict(row._mapping)) if row else None


def list_room_ids(conn: Connection) -> list[str]:
    result = conn.execute(select(Room.id).order_by(Room.id))
    return list(result.scalars().all())
