"""Deposit intake and the deposit-to-booking reconciler."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.engine import Engine

from hostel_bookings.dependencies import get_db_engine, get_gateway, get_notifier
from hostel_bookings.domain.records import DepositStatus
from hostel_bookings.gateway.paystack import PaystackClient
from hostel_bookings.schemas.bookings import BookingView, PaymentView
from hostel_bookings.schemas.deposits import (
    BalanceView,
    DepositApplied,
    DepositApply,
    DepositCreate,
    DepositRefund,
    DepositVerify,
    DepositView,
)
from hostel_bookings.services import deposits
from hostel_bookings.services.notifications import NotificationPort
from hostel_bookings.utils.datetime import utc_today

router = APIRouter()


@router.post("/deposits", status_code=status.HTTP_201_CREATED, response_model=DepositView)
def create_deposit(payload: DepositCreate, engine: Engine = Depends(get_db_engine)) -> DepositView:
    deposit = deposits.create_deposit(
        engine,
        payload.user_id,
        payload.amount,
        payload.reference,
        deposit_type=payload.deposit_type,
        notes=payload.notes,
    )
    return DepositView.from_record(deposit)


@router.post("/deposits/verify", response_model=DepositView)
def verify_deposit(
    payload: DepositVerify,
    engine: Engine = Depends(get_db_engine),
    gateway: PaystackClient = Depends(get_gateway),
) -> DepositView:
    deposit = deposits.verify_deposit(engine, gateway, payload.reference, payload.expected_amount)
    return DepositView.from_record(deposit)


@router.post("/deposits/apply-to-booking", response_model=DepositApplied)
def apply_deposit_to_booking(
    payload: DepositApply,
    engine: Engine = Depends(get_db_engine),
    notifier: NotificationPort = Depends(get_notifier),
) -> DepositApplied:
    """
    Pay a booking's balance from the user's deposit balance.

    Returns:
        DepositApplied: the withdrawal deposit, the updated booking and the payment row
    """
    deposit, booking, payment = deposits.apply_to_booking(
        engine, payload.user_id, payload.booking_id, payload.amount, notifier
    )
    return DepositApplied(
        deposit=DepositView.from_record(deposit),
        booking=BookingView.from_record(booking, utc_today()),
        payment=PaymentView.from_record(payment),
    )


@router.get("/deposits/users/{user_id}/balance", response_model=BalanceView)
def get_balance(user_id: str, engine: Engine = Depends(get_db_engine)) -> BalanceView:
    return BalanceView(**deposits.get_balance(engine, user_id))


@router.get("/deposits/users/{user_id}", response_model=list[DepositView])
def list_deposits(
    user_id: str,
    deposit_status: Optional[DepositStatus] = Query(None, alias="status"),
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    engine: Engine = Depends(get_db_engine),
) -> list[DepositView]:
    rows = deposits.list_deposits(engine, user_id, deposit_status, limit=limit, offset=offset)
    return [DepositView.from_record(d) for d in rows]


@router.post("/deposits/{deposit_id}/refund", response_model=DepositView)
def refund_deposit(
    deposit_id: str,
    payload: DepositRefund,
    engine: Engine = Depends(get_db_engine),
) -> DepositView:
    return DepositView.from_record(deposits.refund_deposit(engine, deposit_id, payload.reason))
