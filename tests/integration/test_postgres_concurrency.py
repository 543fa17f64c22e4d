"""
Concurrency tests against a real PostgreSQL server.

SQLite serialises writers and ignores FOR UPDATE, so these only run when
TEST_POSTGRES_URL points at a disposable database.
"""

from __future__ import annotations

import os
import uuid
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta
from decimal import Decimal
from typing import Callable, Generator, TypeVar

import pytest
from sqlalchemy import create_engine, insert
from sqlalchemy.engine import Engine
from sqlalchemy.schema import CreateSchema

from hostel_bookings.config import SCHEMA
from hostel_bookings.domain.records import BookingType, PaymentMethod, RoomStatus
from hostel_bookings.errors import AmountExceedsDue, BookingEngineError, InsufficientBalance
from hostel_bookings.models.base import Base
from hostel_bookings.models.catalog import Hostel, Room, RoomType, Student
from hostel_bookings.models.deposits import Deposit
from hostel_bookings.schemas.bookings import BookingCreate
from hostel_bookings.services import bookings, deposits, payments
from hostel_bookings.utils.datetime import utc_now, utc_today

POSTGRES_URL = os.getenv("TEST_POSTGRES_URL")

pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(not POSTGRES_URL, reason="TEST_POSTGRES_URL not set"),
]

T = TypeVar("T")
WORKERS = 8


@pytest.fixture
def pg_engine() -> Generator[Engine, None, None]:
    engine = create_engine(POSTGRES_URL or "", pool_size=WORKERS, max_overflow=4)
    with engine.begin() as conn:
        conn.execute(CreateSchema(SCHEMA, if_not_exists=True))
    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


def _seed_room(engine: Engine, max_occupancy: int) -> tuple[str, str]:
    hostel_id, room_type_id, room_id = (str(uuid.uuid4()) for _ in range(3))
    with engine.begin() as conn:
        conn.execute(insert(Hostel).values(id=hostel_id, name="Unity Hall"))
        conn.execute(
            insert(RoomType).values(
                id=room_type_id,
                hostel_id=hostel_id,
                name="Shared",
                price_per_semester=Decimal("900.00"),
                price_per_month=Decimal("300.00"),
                price_per_week=Decimal("70.00"),
                allowed_genders=[],
            )
        )
        conn.execute(
            insert(Room).values(
                id=room_id,
                hostel_id=hostel_id,
                room_type_id=room_type_id,
                room_number="C301",
                max_occupancy=max_occupancy,
                current_occupancy=0,
                status=RoomStatus.AVAILABLE.value,
            )
        )
    return hostel_id, room_id


def _seed_student(engine: Engine) -> str:
    student_id = str(uuid.uuid4())
    with engine.begin() as conn:
        conn.execute(
            insert(Student).values(
                id=student_id, name="Esi Owusu", email=f"{student_id[:8]}@students.example.edu"
            )
        )
    return student_id


def _request(hostel_id: str, room_id: str, student_id: str) -> BookingCreate:
    check_in = utc_today() + timedelta(days=7)
    return BookingCreate(
        student_id=student_id,
        hostel_id=hostel_id,
        room_id=room_id,
        booking_type=BookingType.SEMESTER,
        check_in_date=check_in,
        check_out_date=check_in + timedelta(days=120),
    )


def _race(attempts: int, func: Callable[[int], T]) -> list[object]:
    """Run func(i) for every attempt concurrently; collect results and business errors."""

    def _call(i: int) -> object:
        try:
            return func(i)
        except BookingEngineError as e:
            return e

    with ThreadPoolExecutor(max_workers=WORKERS) as pool:
        return list(pool.map(_call, range(attempts)))


def test_concurrent_creates_for_one_student_yield_one_booking(pg_engine: Engine) -> None:
    hostel_id, room_id = _seed_room(pg_engine, max_occupancy=4)
    student_id = _seed_student(pg_engine)
    request = _request(hostel_id, room_id, student_id)

    outcomes = _race(WORKERS, lambda _: bookings.create_booking(pg_engine, request))

    created = [o for o in outcomes if not isinstance(o, BookingEngineError)]
    assert len(created) == 1
    assert all(
        type(o).__name__ == "ActiveBookingConflict"
        for o in outcomes
        if isinstance(o, BookingEngineError)
    )


def test_concurrent_creates_never_overfill_a_room(pg_engine: Engine) -> None:
    hostel_id, room_id = _seed_room(pg_engine, max_occupancy=2)
    students = [_seed_student(pg_engine) for _ in range(WORKERS)]

    outcomes = _race(
        WORKERS,
        lambda i: bookings.create_booking(pg_engine, _request(hostel_id, room_id, students[i])),
    )

    created = [o for o in outcomes if not isinstance(o, BookingEngineError)]
    assert len(created) == 2


def test_concurrent_payments_never_exceed_total(pg_engine: Engine) -> None:
    """Test that racing 200.00 payments against a 900.00 total stop at exactly 900.00."""
    hostel_id, room_id = _seed_room(pg_engine, max_occupancy=1)
    booking = bookings.create_booking(
        pg_engine, _request(hostel_id, room_id, _seed_student(pg_engine))
    )

    outcomes = _race(
        WORKERS,
        lambda _: payments.record_payment(
            pg_engine, booking.id, Decimal("200"), PaymentMethod.CASH
        ),
    )

    accepted = [o for o in outcomes if not isinstance(o, BookingEngineError)]
    assert len(accepted) == 4
    assert all(
        isinstance(o, AmountExceedsDue) for o in outcomes if isinstance(o, BookingEngineError)
    )

    stored = bookings.get_booking_by_id(pg_engine, booking.id)
    assert stored.amount_paid == Decimal("800.00")
    assert stored.amount_due == Decimal("100.00")
    assert len(bookings.list_booking_payments(pg_engine, booking.id)) == 4


def test_concurrent_deposit_applications_stay_within_due(pg_engine: Engine) -> None:
    hostel_id, room_id = _seed_room(pg_engine, max_occupancy=1)
    student_id = _seed_student(pg_engine)
    booking = bookings.create_booking(pg_engine, _request(hostel_id, room_id, student_id))
    with pg_engine.begin() as conn:
        conn.execute(
            insert(Deposit).values(
                id=str(uuid.uuid4()),
                user_id=student_id,
                amount=Decimal("5000.00"),
                status="completed",
                deposit_type="account_credit",
                payment_reference="PG-SEED",
                payment_date=utc_now(),
                verified_at=utc_now(),
            )
        )

    outcomes = _race(
        WORKERS,
        lambda _: deposits.apply_to_booking(pg_engine, student_id, booking.id, Decimal("300")),
    )

    rejected = [o for o in outcomes if isinstance(o, BookingEngineError)]
    assert not [o for o in rejected if isinstance(o, InsufficientBalance)]
    stored = bookings.get_booking_by_id(pg_engine, booking.id)
    assert stored.amount_paid == stored.total_amount == Decimal("900.00")
    assert stored.amount_due == Decimal("0.00")
    balance = deposits.get_balance(pg_engine, student_id)
    assert balance["available_balance"] == Decimal("4100.00")
