"""Deposit ledger rules as pure functions over DepositRecord."""

from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

from hostel_bookings.domain.records import DepositRecord, DepositStatus
from hostel_bookings.utils.datetime import as_utc


def refund_block_reason(
    deposit: DepositRecord, now: datetime, window_days: int
) -> Optional[str]:
    """
    Why a deposit cannot be refunded, or None when it can.

    Only completed credits (positive amounts) that have not expired and were
    paid within the refund window are refundable.
    """
    if deposit.status is not DepositStatus.COMPLETED:
        return "Only completed deposits can be refunded"
    if deposit.amount <= 0:
        return "Withdrawals cannot be refunded"
    if deposit.expires_at is not None and as_utc(deposit.expires_at) < now:
        return "This deposit has expired and cannot be refunded"
    paid_at = deposit.payment_date or deposit.verified_at or deposit.created_at
    if paid_at is None or now - as_utc(paid_at) > timedelta(days=window_days):
        return "This deposit is outside the refund period"
    return None


def verification_failure(
    success: bool, paid: Decimal, expected: Optional[Decimal]
) -> Optional[str]:
    """Why a gateway verification does not settle a deposit, or None when it does."""
    if not success:
        return "Payment was not successful"
    if paid <= 0:
        return "Gateway reported no amount paid"
    if expected is not None and paid < expected:
        return f"Amount paid {paid} is less than the expected {expected}"
    return None


def is_expired(deposit: DepositRecord, now: datetime) -> bool:
    return (
        deposit.status is DepositStatus.PENDING
        and deposit.expires_at is not None
        and as_utc(deposit.expires_at) < now
    )
