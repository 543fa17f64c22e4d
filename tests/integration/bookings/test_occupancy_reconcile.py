"""
Integration tests for occupancy tracking and the drift repair pass.
"""

from __future__ import annotations

from typing import Callable

import pytest
from conftest import force_room_fields, read_room
from sqlalchemy.engine import Engine

from hostel_bookings.domain.records import BookingRecord, BookingStatus, RoomStatus
from hostel_bookings.errors import RoomNotFound
from hostel_bookings.services import bookings, occupancy

Factory = Callable[..., str]
MakeBooking = Callable[..., BookingRecord]


@pytest.mark.integration
def test_reconcile_repairs_drift_once(
    db_engine: Engine, make_room: Factory, make_student: Factory, make_booking: MakeBooking
) -> None:
    """Test that a corrupted counter is recomputed from seat-holding bookings."""
    room_id = make_room(max_occupancy=3)
    make_booking(make_student(), room_id)
    force_room_fields(db_engine, room_id, current_occupancy=3, status="occupied")

    assert occupancy.reconcile(db_engine, room_id) is True
    room = read_room(db_engine, room_id)
    assert room.current_occupancy == 1
    assert room.status is RoomStatus.AVAILABLE

    assert occupancy.reconcile(db_engine, room_id) is False


@pytest.mark.integration
def test_reconcile_counts_pending_bookings_as_seat_holders(
    db_engine: Engine, make_room: Factory, make_student: Factory, make_booking: MakeBooking
) -> None:
    """Test that a pending booking keeps the seat it took at creation across a repair pass."""
    room_id = make_room(max_occupancy=1)
    booking = make_booking(make_student(), room_id)
    assert booking.status is BookingStatus.PENDING

    assert occupancy.reconcile(db_engine, room_id) is False

    room = read_room(db_engine, room_id)
    assert room.current_occupancy == 1
    assert room.status is RoomStatus.OCCUPIED


@pytest.mark.integration
def test_reconcile_keeps_operator_status(
    db_engine: Engine, make_room: Factory, make_student: Factory, make_booking: MakeBooking
) -> None:
    room_id = make_room(max_occupancy=2)
    make_booking(make_student(), room_id)
    force_room_fields(db_engine, room_id, current_occupancy=0, status="maintenance")

    assert occupancy.reconcile(db_engine, room_id) is True

    room = read_room(db_engine, room_id)
    assert room.current_occupancy == 1
    assert room.status is RoomStatus.MAINTENANCE


@pytest.mark.integration
def test_reconcile_ignores_bookings_that_released_their_seat(
    db_engine: Engine, make_room: Factory, make_student: Factory, make_booking: MakeBooking
) -> None:
    room_id = make_room(max_occupancy=1)
    booking = make_booking(make_student(), room_id)
    bookings.cancel_booking(db_engine, booking.id, "Changed plans")
    force_room_fields(db_engine, room_id, current_occupancy=1, status="occupied")

    occupancy.reconcile(db_engine, room_id)

    room = read_room(db_engine, room_id)
    assert room.current_occupancy == 0
    assert room.status is RoomStatus.AVAILABLE


@pytest.mark.integration
def test_reconcile_all_reports_corrections(
    db_engine: Engine, make_room: Factory, make_student: Factory, make_booking: MakeBooking
) -> None:
    healthy = make_room(room_number="A1")
    drifted = make_room(room_number="A2", max_occupancy=1)
    make_booking(make_student(), healthy)
    make_booking(make_student(), drifted)
    force_room_fields(db_engine, drifted, current_occupancy=0, status="available")

    report = occupancy.reconcile_all(db_engine)

    assert report == occupancy.ReconcileReport(rooms_checked=2, rooms_corrected=1, rooms_failed=0)
    room = read_room(db_engine, drifted)
    assert room.current_occupancy == 1
    assert room.status is RoomStatus.OCCUPIED


@pytest.mark.integration
def test_occupancy_delta_is_clamped(db_engine: Engine, make_room: Factory) -> None:
    """Test that releasing an empty room and filling a full one stay within bounds."""
    empty = make_room(max_occupancy=2)
    full = make_room(max_occupancy=2, current_occupancy=2, status="occupied", room_number="B1")

    with db_engine.begin() as conn:
        occupancy.release(conn, empty)
        occupancy.occupy(conn, full)

    assert read_room(db_engine, empty).current_occupancy == 0
    assert read_room(db_engine, full).current_occupancy == 2
    assert read_room(db_engine, full).status is RoomStatus.OCCUPIED


@pytest.mark.integration
def test_occupancy_delta_on_unknown_room(db_engine: Engine) -> None:
    with pytest.raises(RoomNotFound):
        with db_engine.begin() as conn:
            occupancy.occupy(conn, "missing")
