"""
Booking command surface.

Every mutating endpoint returns the post-mutation BookingView projection.
Business failures propagate as BookingEngineError and are rendered by the
application's exception handler.
"""

from __future__ import annotations

from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.engine import Engine

from hostel_bookings.dependencies import get_db_engine, get_gateway, get_notifier
from hostel_bookings.gateway.paystack import PaystackClient
from hostel_bookings.schemas.bookings import (
    BookingCancel,
    BookingCreate,
    BookingFeePayment,
    BookingNotes,
    BookingUpdate,
    BookingView,
    OverdueSweepResponse,
    PaymentCreate,
    PaymentRecorded,
    PaymentView,
)
from hostel_bookings.services import bookings, payments, scheduler
from hostel_bookings.services.notifications import NotificationPort
from hostel_bookings.utils.datetime import utc_today

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.post("/bookings/overdue/mark", response_model=OverdueSweepResponse)
def mark_overdue_bookings(
    engine: Engine = Depends(get_db_engine),
    notifier: NotificationPort = Depends(get_notifier),
) -> OverdueSweepResponse:
    """
    Run the overdue sweep now (system/admin trigger).

    Returns:
        OverdueSweepResponse: Bookings flagged overdue and per-booking failures
    """
    result = scheduler.mark_overdue_bookings(engine, notifier)
    logger.info("overdue_sweep_triggered", processed=result.processed, failed=result.failed)
    return OverdueSweepResponse(processed=result.processed, failed=result.failed)


@router.post("/bookings", status_code=status.HTTP_201_CREATED, response_model=BookingView)
def create_booking(
    payload: BookingCreate,
    engine: Engine = Depends(get_db_engine),
    notifier: NotificationPort = Depends(get_notifier),
) -> BookingView:
    booking = bookings.create_booking(engine, payload, notifier)
    return BookingView.from_record(booking, utc_today())


@router.get("/bookings/{booking_id}", response_model=BookingView)
def get_booking(booking_id: str, engine: Engine = Depends(get_db_engine)) -> BookingView:
    booking = bookings.get_booking_by_id(engine, booking_id)
    return BookingView.from_record(booking, utc_today())


@router.patch("/bookings/{booking_id}", response_model=BookingView)
def update_booking(
    booking_id: str,
    payload: BookingUpdate,
    engine: Engine = Depends(get_db_engine),
) -> BookingView:
    booking = bookings.update_booking(engine, booking_id, payload)
    return BookingView.from_record(booking, utc_today())


@router.delete("/bookings/{booking_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_booking(booking_id: str, engine: Engine = Depends(get_db_engine)) -> Response:
    bookings.delete_booking(engine, booking_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/bookings/{booking_id}/confirm", response_model=BookingView)
def confirm_booking(
    booking_id: str,
    payload: Optional[BookingNotes] = None,
    engine: Engine = Depends(get_db_engine),
    notifier: NotificationPort = Depends(get_notifier),
) -> BookingView:
    notes = payload.notes if payload else None
    booking = bookings.confirm_booking(engine, booking_id, notes, notifier)
    return BookingView.from_record(booking, utc_today())


@router.post("/bookings/{booking_id}/cancel", response_model=BookingView)
def cancel_booking(
    booking_id: str,
    payload: BookingCancel,
    engine: Engine = Depends(get_db_engine),
    notifier: NotificationPort = Depends(get_notifier),
) -> BookingView:
    booking = bookings.cancel_booking(
        engine, booking_id, payload.reason, payload.notes, notifier=notifier
    )
    return BookingView.from_record(booking, utc_today())


@router.post("/bookings/{booking_id}/check-in", response_model=BookingView)
def check_in(
    booking_id: str,
    payload: Optional[BookingNotes] = None,
    engine: Engine = Depends(get_db_engine),
    notifier: NotificationPort = Depends(get_notifier),
) -> BookingView:
    notes = payload.notes if payload else None
    booking = bookings.check_in(engine, booking_id, notes, notifier)
    return BookingView.from_record(booking, utc_today())


@router.post("/bookings/{booking_id}/check-out", response_model=BookingView)
def check_out(
    booking_id: str,
    payload: Optional[BookingNotes] = None,
    engine: Engine = Depends(get_db_engine),
    notifier: NotificationPort = Depends(get_notifier),
) -> BookingView:
    notes = payload.notes if payload else None
    booking = bookings.check_out(engine, booking_id, notes, notifier)
    return BookingView.from_record(booking, utc_today())


@router.post(
    "/bookings/{booking_id}/payments",
    status_code=status.HTTP_201_CREATED,
    response_model=PaymentRecorded,
)
def record_payment(
    booking_id: str,
    payload: PaymentCreate,
    engine: Engine = Depends(get_db_engine),
    notifier: NotificationPort = Depends(get_notifier),
) -> PaymentRecorded:
    payment, booking = payments.record_payment(
        engine,
        booking_id,
        payload.amount,
        payload.payment_method,
        reference=payload.transaction_ref,
        received_by=payload.received_by,
        notes=payload.notes,
        notifier=notifier,
    )
    return PaymentRecorded(
        payment=PaymentView.from_record(payment),
        booking=BookingView.from_record(booking, utc_today()),
    )


@router.get("/bookings/{booking_id}/payments", response_model=list[PaymentView])
def list_payments(booking_id: str, engine: Engine = Depends(get_db_engine)) -> list[PaymentView]:
    return [PaymentView.from_record(p) for p in bookings.list_booking_payments(engine, booking_id)]


@router.post("/bookings/{booking_id}/booking-fee", response_model=PaymentRecorded)
def pay_booking_fee(
    booking_id: str,
    payload: BookingFeePayment,
    engine: Engine = Depends(get_db_engine),
    gateway: PaystackClient = Depends(get_gateway),
    notifier: NotificationPort = Depends(get_notifier),
) -> PaymentRecorded:
    payment, booking = bookings.pay_booking_fee(
        engine, gateway, booking_id, payload.reference, notifier=notifier
    )
    return PaymentRecorded(
        payment=PaymentView.from_record(payment),
        booking=BookingView.from_record(booking, utc_today()),
    )
