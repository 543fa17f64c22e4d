"""SQLAlchemy model for the per-user deposit ledger."""

from sqlalchemy import Column, DateTime, Numeric, String, Text
from sqlalchemy.sql import func

from hostel_bookings.config import SCHEMA
from hostel_bookings.models.base import Base


class Deposit(Base):
    """
    ORM model for a standing credit (positive amount) or withdrawal (negative amount).

    A user's available balance is the sum of COMPLETED rows. Withdrawals are
    appended as new negative rows; only status moves after insertion.
    """

    __tablename__ = "deposits"
    __table_args__ = {"schema": SCHEMA}

    id = Column(String(36), primary_key=True)
    user_id = Column(String(36), nullable=False, index=True)
    amount = Column(Numeric(10, 2), nullable=False)
    status = Column(String(20), nullable=False, default="pending", index=True)
    deposit_type = Column(String(30), nullable=False, default="account_credit")
    payment_reference = Column(String(255), nullable=False, unique=True)
    gateway_reference = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
    payment_date = Column(DateTime(timezone=True), nullable=True)
    verified_at = Column(DateTime(timezone=True), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
