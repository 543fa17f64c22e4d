# models/bookings.py

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    text,
)
from sqlalchemy.sql import func

from hostel_bookings.config import SCHEMA
from hostel_bookings.models.base import Base

ACTIVE_STATUS_PREDICATE = "status IN ('pending', 'confirmed', 'checked_in')"


class Booking(Base):
    """
    ORM model for a student's reservation of one room for a date range.

    amount_due is stored alongside amount_paid and is rewritten on every
    ledger mutation as max(0, total_amount - amount_paid). The partial unique
    index on student_id backs the single-active-booking rule when two creates
    for the same student race past the validator.
    """

    __tablename__ = "bookings"
    __table_args__ = (
        CheckConstraint("check_out_date > check_in_date", name="ck_bookings_date_order"),
        CheckConstraint("amount_paid >= 0", name="ck_bookings_amount_paid_non_negative"),
        CheckConstraint("amount_due >= 0", name="ck_bookings_amount_due_non_negative"),
        Index(
            "uq_bookings_student_active",
            "student_id",
            unique=True,
            postgresql_where=text(ACTIVE_STATUS_PREDICATE),
            sqlite_where=text(ACTIVE_STATUS_PREDICATE),
        ),
        {"schema": SCHEMA},
    )

    id = Column(String(36), primary_key=True)
    hostel_id = Column(String(36), ForeignKey(f"{SCHEMA}.hostels.id"), nullable=False, index=True)
    room_id = Column(String(36), ForeignKey(f"{SCHEMA}.rooms.id"), nullable=False, index=True)
    student_id = Column(String(36), nullable=False, index=True)
    booking_type = Column(String(20), nullable=False)
    status = Column(String(20), nullable=False, default="pending", index=True)
    payment_status = Column(String(20), nullable=False, default="pending", index=True)
    check_in_date = Column(Date, nullable=False)
    check_out_date = Column(Date, nullable=False)
    total_amount = Column(Numeric(10, 2), nullable=False)
    amount_paid = Column(Numeric(10, 2), nullable=False, default=0)
    amount_due = Column(Numeric(10, 2), nullable=False, default=0)
    booking_fee = Column(Numeric(10, 2), nullable=False, default=0)
    booking_fee_paid = Column(Boolean, nullable=False, default=False)
    booking_fee_paid_at = Column(DateTime(timezone=True), nullable=True)
    payment_due_date = Column(Date, nullable=True)
    special_requests = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    checked_in_at = Column(DateTime(timezone=True), nullable=True)
    checked_out_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
