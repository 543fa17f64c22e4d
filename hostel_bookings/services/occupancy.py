"""
Occupancy tracker: keeps rooms.current_occupancy and rooms.status in lockstep
with the bookings that hold a seat.

occupy()/release()/refresh() run inside the caller's transaction so the room
changes commit or roll back together with the booking transition that caused
them. reconcile() is the scheduled repair path for any drift.
"""

from dataclasses import dataclass

import structlog
from sqlalchemy.engine import Connection, Engine

from hostel_bookings.db.readers.bookings import count_seat_holders
from hostel_bookings.db.readers.rooms import list_room_ids, lock_room
from hostel_bookings.db.transaction import transaction
from hostel_bookings.db.writers.rooms import apply_occupancy_delta, save_room_occupancy
from hostel_bookings.domain import occupancy
from hostel_bookings.metrics import occupancy_corrections

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ReconcileReport:
    rooms_checked: int
    rooms_corrected: int
    rooms_failed: int


def occupy(conn: Connection, room_id: str) -> None:
    apply_occupancy_delta(conn, room_id, 1)


def release(conn: Connection, room_id: str) -> None:
    apply_occupancy_delta(conn, room_id, -1)


def refresh(conn: Connection, room_id: str) -> None:
    """Re-derive a room's status without changing its occupancy."""
    apply_occupancy_delta(conn, room_id, 0)


def reconcile(engine: Engine, room_id: str) -> bool:
    """
    Recount the bookings holding a seat in a room and repair any drift.

    Args:
        engine: SQLAlchemy engine
        room_id: Room to reconcile

    Returns:
        bool: True when the stored occupancy or status was corrected
    """
    with transaction(engine, resource="room", resource_id=room_id) as conn:
        room = lock_room(conn, room_id)
        seat_holders = count_seat_holders(conn, room_id)
        expected = occupancy.reconcile(room, seat_holders)

        if not occupancy.has_drifted(room, expected):
            return False

        save_room_occupancy(conn, expected)

    occupancy_corrections.inc()
    logger.warning(
        "occupancy_corrected",
        room_id=room_id,
        recorded_occupancy=room.current_occupancy,
        expected_occupancy=expected.current_occupancy,
        recorded_status=room.status.value,
        expected_status=expected.status.value,
    )
    return True


def reconcile_all(engine: Engine) -> ReconcileReport:
    """
    Run reconcile() for every room, one transaction per room.

    A failure on one room is logged and the pass continues.
    """
    with engine.connect() as conn:
        room_ids = list_room_ids(conn)

    corrected = 0
    failed = 0
    for room_id in room_ids:
        try:
            if reconcile(engine, room_id):
                corrected += 1
        except Exception as e:
            failed += 1
            logger.exception("occupancy_reconcile_failed", room_id=room_id, error=str(e))

    logger.info(
        "occupancy_reconciled",
        rooms_checked=len(room_ids),
        rooms_corrected=corrected,
        rooms_failed=failed,
    )
    return ReconcileReport(
        rooms_checked=len(room_ids), rooms_corrected=corrected, rooms_failed=failed
    )
