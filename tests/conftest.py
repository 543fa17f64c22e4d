"""
Shared fixtures: an in-memory SQLite ledger store and catalog factories.

The models live in the "hostel" schema; SQLite has no schemas, so the test
engine translates it away with schema_translate_map.
"""

from __future__ import annotations

import os

# hostel_bookings.config refuses to import without a DATABASE_URL
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

import uuid  # noqa: E402
from datetime import date, datetime, timedelta, timezone  # noqa: E402
from decimal import Decimal  # noqa: E402
from typing import Any, Callable, Generator, Optional, Sequence  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import create_engine, insert, select, update  # noqa: E402
from sqlalchemy.engine import Engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from hostel_bookings.config import SCHEMA  # noqa: E402
from hostel_bookings.db.readers.bookings import get_booking  # noqa: E402
from hostel_bookings.db.writers.deposits import insert_deposit  # noqa: E402
from hostel_bookings.domain.records import (  # noqa: E402
    BookingRecord,
    BookingType,
    DepositRecord,
    DepositStatus,
    DepositType,
    RoomRecord,
)
from hostel_bookings.models.base import Base  # noqa: E402
from hostel_bookings.models.bookings import Booking  # noqa: E402
from hostel_bookings.models.catalog import Hostel, Room, RoomType, Student  # noqa: E402
from hostel_bookings.models.deposits import Deposit  # noqa: F401, E402
from hostel_bookings.models.payments import Payment  # noqa: F401, E402
from hostel_bookings.schemas.bookings import BookingCreate  # noqa: E402
from hostel_bookings.services import bookings  # noqa: E402

# Fixed clock for every service call made by the tests
NOW = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)
TODAY = NOW.date()

SEMESTER_PRICE = Decimal("900.00")
MONTHLY_PRICE = Decimal("300.00")
WEEKLY_PRICE = Decimal("70.00")


def _new_id() -> str:
    return str(uuid.uuid4())


@pytest.fixture
def db_engine() -> Generator[Engine, None, None]:
    """In-memory SQLite engine with every table created."""
    engine = create_engine(
        "sqlite+pysqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
        execution_options={"schema_translate_map": {SCHEMA: None}},
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def hostel_id(db_engine: Engine) -> str:
    hostel = _new_id()
    with db_engine.begin() as conn:
        conn.execute(insert(Hostel).values(id=hostel, name="Unity Hall"))
    return hostel


@pytest.fixture
def make_room_type(db_engine: Engine, hostel_id: str) -> Callable[..., str]:
    """Factory for room types; unrestricted gender policy by default."""

    def _make(
        allowed_genders: Sequence[str] = (),
        price_per_week: Optional[Decimal] = WEEKLY_PRICE,
        name: str = "Two-bed shared",
    ) -> str:
        room_type_id = _new_id()
        with db_engine.begin() as conn:
            conn.execute(
                insert(RoomType).values(
                    id=room_type_id,
                    hostel_id=hostel_id,
                    name=name,
                    price_per_semester=SEMESTER_PRICE,
                    price_per_month=MONTHLY_PRICE,
                    price_per_week=price_per_week,
                    allowed_genders=list(allowed_genders),
                )
            )
        return room_type_id

    return _make


@pytest.fixture
def make_room(
    db_engine: Engine, hostel_id: str, make_room_type: Callable[..., str]
) -> Callable[..., str]:
    """Factory for rooms in the test hostel."""

    def _make(
        max_occupancy: int = 2,
        current_occupancy: int = 0,
        status: str = "available",
        room_type_id: Optional[str] = None,
        room_number: str = "A101",
    ) -> str:
        room_id = _new_id()
        with db_engine.begin() as conn:
            conn.execute(
                insert(Room).values(
                    id=room_id,
                    hostel_id=hostel_id,
                    room_type_id=room_type_id or make_room_type(),
                    room_number=room_number,
                    max_occupancy=max_occupancy,
                    current_occupancy=current_occupancy,
                    status=status,
                )
            )
        return room_id

    return _make


@pytest.fixture
def make_student(db_engine: Engine) -> Callable[..., str]:
    def _make(gender: Optional[str] = None, name: str = "Ama Mensah") -> str:
        student_id = _new_id()
        with db_engine.begin() as conn:
            conn.execute(
                insert(Student).values(
                    id=student_id,
                    name=name,
                    email=f"{student_id[:8]}@students.example.edu",
                    gender=gender,
                )
            )
        return student_id

    return _make


@pytest.fixture
def make_booking(db_engine: Engine, hostel_id: str) -> Callable[..., BookingRecord]:
    """Create a booking through the service with the fixed test clock."""

    def _make(
        student_id: str,
        room_id: str,
        booking_type: BookingType = BookingType.SEMESTER,
        check_in: Optional[date] = None,
        check_out: Optional[date] = None,
        now: datetime = NOW,
        **service_kwargs: Any,
    ) -> BookingRecord:
        check_in = check_in or now.date() + timedelta(days=7)
        check_out = check_out or check_in + timedelta(days=120)
        request = BookingCreate(
            student_id=student_id,
            hostel_id=hostel_id,
            room_id=room_id,
            booking_type=booking_type,
            check_in_date=check_in,
            check_out_date=check_out,
        )
        return bookings.create_booking(db_engine, request, now=now, **service_kwargs)

    return _make


@pytest.fixture
def add_deposit(db_engine: Engine) -> Callable[..., str]:
    """Insert a deposit row directly (already settled by default)."""

    def _add(
        user_id: str,
        amount: Decimal,
        status: DepositStatus = DepositStatus.COMPLETED,
        paid_at: datetime = NOW,
        expires_at: Optional[datetime] = None,
    ) -> str:
        deposit = DepositRecord(
            id=_new_id(),
            user_id=user_id,
            amount=Decimal(amount),
            status=status,
            deposit_type=DepositType.ACCOUNT_CREDIT,
            payment_reference=f"DEP-{uuid.uuid4().hex[:12]}",
            payment_date=paid_at,
            verified_at=paid_at if status is DepositStatus.COMPLETED else None,
            expires_at=expires_at or paid_at + timedelta(days=30),
        )
        with db_engine.begin() as conn:
            insert_deposit(conn, deposit)
        return deposit.id

    return _add


def read_room(engine: Engine, room_id: str) -> RoomRecord:
    with engine.connect() as conn:
        row = conn.execute(select(Room).where(Room.id == room_id)).fetchone()
    assert row is not None
    return RoomRecord.model_validate(dict(row._mapping))


def read_booking(engine: Engine, booking_id: str) -> BookingRecord:
    with engine.connect() as conn:
        booking = get_booking(conn, booking_id)
    assert booking is not None
    return booking


def force_booking_fields(engine: Engine, booking_id: str, **values: Any) -> None:
    """Write booking columns directly, bypassing the state machine."""
    with engine.begin() as conn:
        conn.execute(update(Booking).where(Booking.id == booking_id).values(**values))


def force_room_fields(engine: Engine, room_id: str, **values: Any) -> None:
    with engine.begin() as conn:
        conn.execute(update(Room).where(Room.id == room_id).values(**values))
