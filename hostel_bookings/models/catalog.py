"""SQLAlchemy models for the hostel catalog (hostels, room types, rooms, students).

Catalog CRUD lives outside this service; the engine reads these tables and
only ever writes room occupancy/status.
"""

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.sql import func

from hostel_bookings.config import SCHEMA
from hostel_bookings.models.base import Base


class Hostel(Base):
    __tablename__ = "hostels"
    __table_args__ = {"schema": SCHEMA}

    id = Column(String(36), primary_key=True)
    name = Column(String(200), nullable=False)


class RoomType(Base):
    """
    ORM model for a room type.

    Carries the pricing used to size a booking and the gender policy used by
    the eligibility validator. allowed_genders is a JSON list such as
    ["female"] or ["mixed"]; an empty list means unrestricted.
    """

    __tablename__ = "room_types"
    __table_args__ = {"schema": SCHEMA}

    id = Column(String(36), primary_key=True)
    hostel_id = Column(String(36), ForeignKey(f"{SCHEMA}.hostels.id"), nullable=False)
    name = Column(String(100), nullable=False)
    price_per_semester = Column(Numeric(10, 2), nullable=False)
    price_per_month = Column(Numeric(10, 2), nullable=False)
    price_per_week = Column(Numeric(10, 2), nullable=True)
    allowed_genders = Column(JSON, nullable=False, default=list)


class Room(Base):
    __tablename__ = "rooms"
    __table_args__ = {"schema": SCHEMA}

    id = Column(String(36), primary_key=True)
    hostel_id = Column(String(36), ForeignKey(f"{SCHEMA}.hostels.id"), nullable=False, index=True)
    room_type_id = Column(String(36), ForeignKey(f"{SCHEMA}.room_types.id"), nullable=False)
    room_number = Column(String(20), nullable=False)
    max_occupancy = Column(Integer, nullable=False)
    current_occupancy = Column(Integer, nullable=False, default=0)
    status = Column(String(20), nullable=False, default="available")
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )


class Student(Base):
    """ORM model for the user directory fields the engine needs (identity and gender)."""

    __tablename__ = "students"
    __table_args__ = {"schema": SCHEMA}

    id = Column(String(36), primary_key=True)
    name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False)
    gender = Column(String(30), nullable=True)
