from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from hostel_bookings.domain import state_machine
from hostel_bookings.domain.records import (
    BookingRecord,
    BookingStatus,
    BookingType,
    PaymentMethod,
    PaymentRecord,
    PaymentStatus,
    PaymentType,
)


class ClosedModel(BaseModel):
    """Request body that rejects unknown fields."""

    model_config = ConfigDict(extra="forbid")


class BookingCreate(ClosedModel):
    """
    Schema for creating a booking. The total is computed server-side.
    """

    student_id: str = Field(..., description="Student (user) ID")
    hostel_id: str = Field(..., description="Hostel ID")
    room_id: str = Field(..., description="Room ID; must belong to the hostel")
    booking_type: BookingType = Field(..., description="semester, monthly or weekly")
    check_in_date: date
    check_out_date: date
    special_requests: Optional[str] = Field(None, max_length=2000)


class BookingUpdate(ClosedModel):
    """
    Schema for updating a booking. All fields are optional.
    Changing dates recomputes the total.
    """

    check_in_date: Optional[date] = None
    check_out_date: Optional[date] = None
    special_requests: Optional[str] = Field(None, max_length=2000)
    notes: Optional[str] = Field(None, max_length=2000)


class BookingNotes(ClosedModel):
    notes: Optional[str] = Field(None, max_length=2000)


class BookingCancel(ClosedModel):
    reason: str = Field(..., min_length=1, max_length=500, description="Cancellation reason")
    notes: Optional[str] = Field(None, max_length=2000)


class PaymentCreate(ClosedModel):
    amount: Decimal = Field(..., max_digits=10, decimal_places=2)
    payment_method: PaymentMethod
    transaction_ref: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = Field(None, max_length=2000)
    received_by: Optional[str] = Field(None, max_length=100)


class BookingFeePayment(ClosedModel):
    reference: str = Field(
        ..., min_length=1, max_length=255, description="Gateway payment reference"
    )


class BookingView(BaseModel):
    """
    Post-mutation projection of a booking, including computed fields.
    """

    id: str
    hostel_id: str
    room_id: str
    student_id: str
    booking_type: BookingType
    status: BookingStatus
    payment_status: PaymentStatus
    check_in_date: date
    check_out_date: date
    total_amount: Decimal
    amount_paid: Decimal
    amount_due: Decimal
    booking_fee: Decimal
    booking_fee_paid: bool
    booking_fee_paid_at: Optional[datetime] = None
    payment_due_date: Optional[date] = None
    special_requests: Optional[str] = None
    notes: Optional[str] = None
    confirmed_at: Optional[datetime] = None
    checked_in_at: Optional[datetime] = None
    checked_out_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    duration_days: int
    is_overdue: bool
    can_check_in: bool
    can_check_out: bool
    can_cancel: bool
    payment_progress_percent: float

    @classmethod
    def from_record(cls, booking: BookingRecord, today: date) -> BookingView:
        return cls(
            **booking.model_dump(),
            duration_days=state_machine.booking_duration_days(booking),
            is_overdue=state_machine.is_overdue(booking, today),
            can_check_in=state_machine.can_check_in(booking, today),
            can_check_out=state_machine.can_check_out(booking),
            can_cancel=state_machine.can_cancel(booking),
            payment_progress_percent=state_machine.payment_progress_percent(booking),
        )


class PaymentView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    booking_id: str
    amount: Decimal
    payment_method: PaymentMethod
    payment_type: PaymentType
    transaction_ref: Optional[str] = None
    notes: Optional[str] = None
    payment_date: datetime
    received_by: Optional[str] = None

    @classmethod
    def from_record(cls, payment: PaymentRecord) -> PaymentView:
        return cls.model_validate(payment)


class PaymentRecorded(BaseModel):
    payment: PaymentView
    booking: BookingView


class OverdueSweepResponse(BaseModel):
    processed: int
    failed: int
