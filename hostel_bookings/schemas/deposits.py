from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from hostel_bookings.domain.records import DepositRecord, DepositStatus, DepositType
from hostel_bookings.schemas.bookings import BookingView, ClosedModel, PaymentView


class DepositCreate(ClosedModel):
    """
    Schema for starting a deposit. The deposit stays pending until the
    gateway reference is verified.
    """

    user_id: str
    amount: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    reference: str = Field(
        ..., min_length=1, max_length=255, description="Gateway payment reference"
    )
    deposit_type: DepositType = DepositType.ACCOUNT_CREDIT
    notes: Optional[str] = Field(None, max_length=2000)


class DepositVerify(ClosedModel):
    reference: str = Field(..., min_length=1, max_length=255)
    expected_amount: Optional[Decimal] = Field(None, gt=0, max_digits=10, decimal_places=2)


class DepositApply(ClosedModel):
    user_id: str
    booking_id: str
    amount: Decimal = Field(..., max_digits=10, decimal_places=2)


class DepositRefund(ClosedModel):
    reason: str = Field(..., min_length=1, max_length=500)


class DepositView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    amount: Decimal
    status: DepositStatus
    deposit_type: DepositType
    payment_reference: str
    gateway_reference: Optional[str] = None
    notes: Optional[str] = None
    payment_date: Optional[datetime] = None
    verified_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, deposit: DepositRecord) -> DepositView:
        return cls.model_validate(deposit)


class BalanceView(BaseModel):
    user_id: str
    available_balance: Decimal
    pending_balance: Decimal
    by_status: dict[DepositStatus, Decimal]


class DepositApplied(BaseModel):
    deposit: DepositView
    booking: BookingView
    payment: PaymentView
