"""
Unit tests for room status derivation and occupancy reconciliation.
"""

from __future__ import annotations

import pytest

from hostel_bookings.domain import occupancy
from hostel_bookings.domain.records import RoomRecord, RoomStatus


def room(
    current: int, max_occupancy: int = 2, status: RoomStatus = RoomStatus.AVAILABLE
) -> RoomRecord:
    return RoomRecord(
        id="r-1",
        hostel_id="h-1",
        room_type_id="rt-1",
        room_number="C3",
        max_occupancy=max_occupancy,
        current_occupancy=current,
        status=status,
    )


@pytest.mark.unit
@pytest.mark.parametrize(
    "current_status,occupants,expected",
    [
        (RoomStatus.AVAILABLE, 1, RoomStatus.AVAILABLE),
        (RoomStatus.AVAILABLE, 2, RoomStatus.OCCUPIED),
        (RoomStatus.OCCUPIED, 1, RoomStatus.AVAILABLE),
        (RoomStatus.MAINTENANCE, 0, RoomStatus.MAINTENANCE),
        (RoomStatus.RESERVED, 2, RoomStatus.RESERVED),
    ],
)
def test_derive_status(current_status: RoomStatus, occupants: int, expected: RoomStatus) -> None:
    """Test that a room is occupied exactly when full, unless an operator override is set."""
    assert occupancy.derive_status(current_status, occupants, 2) is expected


@pytest.mark.unit
def test_is_available() -> None:
    assert occupancy.is_available(room(1))
    assert not occupancy.is_available(room(2, status=RoomStatus.OCCUPIED))
    assert not occupancy.is_available(room(0, status=RoomStatus.RESERVED))


@pytest.mark.unit
def test_reconcile_clamps_to_capacity() -> None:
    """Test that more seat holders than beds clamps occupancy at max_occupancy."""
    expected = occupancy.reconcile(room(0), seat_holders=3)

    assert expected.current_occupancy == 2
    assert expected.status is RoomStatus.OCCUPIED


@pytest.mark.unit
def test_has_drifted() -> None:
    recorded = room(2, status=RoomStatus.OCCUPIED)
    expected = occupancy.reconcile(recorded, seat_holders=1)

    assert occupancy.has_drifted(recorded, expected)
    assert not occupancy.has_drifted(expected, occupancy.reconcile(expected, 1))
