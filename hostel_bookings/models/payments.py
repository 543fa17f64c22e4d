"""SQLAlchemy model for the append-only payment ledger."""

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Numeric, String, Text
from sqlalchemy.sql import func

from hostel_bookings.config import SCHEMA
from hostel_bookings.models.base import Base


class Payment(Base):
    """
    ORM model for one funds movement against a booking.

    Rows are inserted once and never updated or deleted; reversals are new rows.
    """

    __tablename__ = "payments"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_payments_amount_positive"),
        {"schema": SCHEMA},
    )

    id = Column(String(36), primary_key=True)
    booking_id = Column(
        String(36), ForeignKey(f"{SCHEMA}.bookings.id"), nullable=False, index=True
    )
    amount = Column(Numeric(10, 2), nullable=False)
    payment_method = Column(String(30), nullable=False)
    payment_type = Column(String(30), nullable=False)
    transaction_ref = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
    payment_date = Column(DateTime(timezone=True), nullable=False)
    received_by = Column(String(100), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
