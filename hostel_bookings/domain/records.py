"""
Immutable records for bookings, rooms, payments and deposits.

Rows read from the store are validated into these frozen pydantic models and
every state change produces a new record via model_copy(update=...). The pure
functions in the sibling modules operate on these records only, so the state
machine is testable without a database.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CHECKED_IN = "checked_in"
    CHECKED_OUT = "checked_out"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


class BookingType(str, Enum):
    SEMESTER = "semester"
    MONTHLY = "monthly"
    WEEKLY = "weekly"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"
    OVERDUE = "overdue"
    REFUNDED = "refunded"
    CANCELLED = "cancelled"


class RoomStatus(str, Enum):
    AVAILABLE = "available"
    OCCUPIED = "occupied"
    MAINTENANCE = "maintenance"
    RESERVED = "reserved"


class PaymentMethod(str, Enum):
    CASH = "cash"
    BANK_TRANSFER = "bank_transfer"
    MOBILE_MONEY = "mobile_money"
    CARD = "card"
    CHEQUE = "cheque"
    ACCOUNT_CREDIT = "account_credit"


class PaymentType(str, Enum):
    BOOKING_PAYMENT = "booking_payment"
    DEPOSIT = "deposit"
    REFUND = "refund"
    PENALTY = "penalty"


class DepositStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class DepositType(str, Enum):
    BOOKING_DEPOSIT = "booking_deposit"
    ROOM_BALANCE = "room_balance"
    ACCOUNT_CREDIT = "account_credit"


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"
    PREFER_NOT_TO_SAY = "prefer_not_to_say"


# Bookings in these statuses count against the single-active-booking rule and
# hold a seat in their room.
ACTIVE_STATUSES = frozenset(
    {BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.CHECKED_IN}
)
SEAT_HOLDING_STATUSES = ACTIVE_STATUSES
OCCUPANT_STATUSES = frozenset({BookingStatus.CONFIRMED, BookingStatus.CHECKED_IN})


class Record(BaseModel):
    model_config = ConfigDict(frozen=True, from_attributes=True)


class BookingRecord(Record):
    id: str
    hostel_id: str
    room_id: str
    student_id: str
    booking_type: BookingType
    status: BookingStatus = BookingStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.PENDING
    check_in_date: date
    check_out_date: date
    total_amount: Decimal
    amount_paid: Decimal = Decimal("0")
    amount_due: Decimal = Decimal("0")
    booking_fee: Decimal = Decimal("0")
    booking_fee_paid: bool = False
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


class RoomTypeRecord(Record):
    id: str
    hostel_id: str
    name: str
    price_per_semester: Decimal
    price_per_month: Decimal
    price_per_week: Optional[Decimal] = None
    allowed_genders: list[str] = Field(default_factory=list)


class RoomRecord(Record):
    id: str
    hostel_id: str
    room_type_id: str
    room_number: str
    max_occupancy: int
    current_occupancy: int = 0
    status: RoomStatus = RoomStatus.AVAILABLE


class StudentRecord(Record):
    id: str
    name: str
    email: str
    gender: Optional[str] = None


class PaymentRecord(Record):
    id: str
    booking_id: str
    amount: Decimal
    payment_method: PaymentMethod
    payment_type: PaymentType
    transaction_ref: Optional[str] = None
    notes: Optional[str] = None
    payment_date: datetime
    received_by: Optional[str] = None


class DepositRecord(Record):
    id: str
    user_id: str
    amount: Decimal
    status: DepositStatus = DepositStatus.PENDING
    deposit_type: DepositType = DepositType.ACCOUNT_CREDIT
    payment_reference: str
    gateway_reference: Optional[str] = None
    notes: Optional[str] = None
    payment_date: Optional[datetime] = None
    verified_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
