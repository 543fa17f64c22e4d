"""Room occupancy rules as pure functions over RoomRecord."""

from __future__ import annotations

from hostel_bookings.domain.records import RoomRecord, RoomStatus

# Statuses set by operators; occupancy changes never override them.
OVERRIDE_STATUSES = frozenset({RoomStatus.MAINTENANCE, RoomStatus.RESERVED})


def derive_status(current: RoomStatus, occupancy: int, max_occupancy: int) -> RoomStatus:
    """
    Room status implied by its occupancy.

    A room is occupied exactly when it is full. Maintenance and reserved are
    operator overrides and are kept as they are.
    """
    if current in OVERRIDE_STATUSES:
        return current
    return RoomStatus.OCCUPIED if occupancy >= max_occupancy else RoomStatus.AVAILABLE


def is_available(room: RoomRecord) -> bool:
    return room.status is RoomStatus.AVAILABLE and room.current_occupancy < room.max_occupancy


def reconcile(room: RoomRecord, seat_holders: int) -> RoomRecord:
    """Room as it should be given the number of bookings currently holding a seat."""
    occupancy = max(0, min(room.max_occupancy, seat_holders))
    return room.model_copy(
        update={
            "current_occupancy": occupancy,
            "status": derive_status(room.status, occupancy, room.max_occupancy),
        }
    )


def has_drifted(recorded: RoomRecord, expected: RoomRecord) -> bool:
    return (
        recorded.current_occupancy != expected.current_occupancy
        or recorded.status is not expected.status
    )
