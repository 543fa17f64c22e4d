"""
Deposit reconciler and deposit intake.

apply_to_booking() moves money from a user's standing deposit balance into a
booking's payment ledger: the negative withdrawal row, the payment row and
the booking amounts commit together under the booking's row lock.

The balance read inside apply_to_booking() is a point-in-time aggregate and
is not locked against a deposit completing concurrently; a withdrawal racing
a new completed deposit is eventually consistent, not linearizable.
"""

import uuid
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

import structlog
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from hostel_bookings.config import DEPOSIT_EXPIRY_DAYS, DEPOSIT_REFUND_WINDOW_DAYS
from hostel_bookings.db.readers.deposits import (
    get_available_balance,
    get_balance_by_status,
    get_deposit,
    get_deposit_by_reference,
)
from hostel_bookings.db.readers.deposits import list_deposits as list_deposit_rows
from hostel_bookings.db.readers.students import get_student
from hostel_bookings.db.transaction import locked_booking, transaction
from hostel_bookings.db.writers.deposits import insert_deposit, update_deposit
from hostel_bookings.domain import deposits as rules
from hostel_bookings.domain.pricing import CENTS
from hostel_bookings.domain.records import (
    BookingRecord,
    BookingStatus,
    DepositRecord,
    DepositStatus,
    DepositType,
    PaymentMethod,
    PaymentRecord,
    PaymentType,
)
from hostel_bookings.errors import (
    BookingClosed,
    DepositClosed,
    DepositNotFound,
    DuplicateReference,
    InsufficientBalance,
    InvalidAmount,
    NothingDue,
    PaymentVerificationFailed,
    StudentNotFound,
)
from hostel_bookings.gateway.paystack import PaystackClient
from hostel_bookings.metrics import deposit_operations
from hostel_bookings.services.notifications import LoggingNotifier, NotificationPort, notify_safely
from hostel_bookings.services.payments import append_payment, track_payment
from hostel_bookings.utils.datetime import utc_now

logger = structlog.get_logger(__name__)

_UNPAYABLE_STATUSES = frozenset(
    {BookingStatus.CANCELLED, BookingStatus.CHECKED_OUT, BookingStatus.NO_SHOW}
)


def _withdrawal_reference(booking_id: str) -> str:
    return f"BOOKING-{booking_id[:8]}-{uuid.uuid4().hex[:12]}"


# =============================================================================
# Reconciler
# =============================================================================


def apply_to_booking(
    engine: Engine,
    user_id: str,
    booking_id: str,
    amount: Decimal,
    notifier: Optional[NotificationPort] = None,
    now: Optional[datetime] = None,
) -> tuple[DepositRecord, BookingRecord, PaymentRecord]:
    """
    Pay part or all of a booking's balance from the user's deposit balance.

    The applied amount is min(amount, amount_due). The withdrawal deposit,
    the payment and the booking update commit in one transaction.

    Args:
        engine: SQLAlchemy engine
        user_id: Deposit owner; must also own the booking
        booking_id: Booking to pay
        amount: Requested amount (> 0)

    Returns:
        (deposit, booking, payment)

    Raises:
        InvalidAmount, BookingNotFound, BookingClosed, NothingDue, InsufficientBalance, LockTimeout
    """
    now = now or utc_now()
    amount = Decimal(amount)
    if amount <= 0:
        raise InvalidAmount(amount)

    try:
        with locked_booking(engine, booking_id, owner_id=user_id) as (conn, booking):
            if booking.status in _UNPAYABLE_STATUSES:
                raise BookingClosed(f"Cannot apply deposit to a {booking.status.value} booking")
            if booking.amount_due <= 0:
                raise NothingDue("No amount due for this booking")

            available = get_available_balance(conn, user_id)
            if available < amount:
                raise InsufficientBalance(available, amount)

            applied = min(amount, booking.amount_due).quantize(CENTS)
            withdrawal = DepositRecord(
                id=str(uuid.uuid4()),
                user_id=user_id,
                amount=-applied,
                status=DepositStatus.COMPLETED,
                deposit_type=DepositType.ROOM_BALANCE,
                payment_reference=_withdrawal_reference(booking.id),
                notes=f"Applied to booking {booking.id}",
                payment_date=now,
                verified_at=now,
            )
            insert_deposit(conn, withdrawal)

            payment, updated = append_payment(
                conn,
                booking,
                applied,
                PaymentMethod.ACCOUNT_CREDIT,
                PaymentType.DEPOSIT,
                now,
                reference=withdrawal.payment_reference,
                notes="Paid from deposit balance",
            )
    except Exception:
        deposit_operations.labels(operation="apply", status="failure").inc()
        raise

    deposit_operations.labels(operation="apply", status="success").inc()
    track_payment(payment)
    logger.info(
        "deposit_applied",
        user_id=user_id,
        booking_id=booking_id,
        requested=str(amount),
        applied=str(applied),
        amount_due=str(updated.amount_due),
    )
    notifier = notifier if notifier is not None else LoggingNotifier()
    notify_safely(notifier.payment_received, updated, payment)
    return withdrawal, updated, payment


# =============================================================================
# Intake
# =============================================================================


def create_deposit(
    engine: Engine,
    user_id: str,
    amount: Decimal,
    reference: str,
    deposit_type: DepositType = DepositType.ACCOUNT_CREDIT,
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> DepositRecord:
    """
    Register a pending deposit awaiting gateway verification.

    Raises:
        InvalidAmount, StudentNotFound
        DuplicateReference: the payment reference is already in use
    """
    now = now or utc_now()
    amount = Decimal(amount)
    if amount <= 0:
        raise InvalidAmount(amount)

    deposit = DepositRecord(
        id=str(uuid.uuid4()),
        user_id=user_id,
        amount=amount.quantize(CENTS),
        status=DepositStatus.PENDING,
        deposit_type=deposit_type,
        payment_reference=reference,
        notes=notes,
        expires_at=now + timedelta(days=DEPOSIT_EXPIRY_DAYS),
    )

    try:
        with transaction(engine, resource="deposit", resource_id=reference) as conn:
            if get_student(conn, user_id) is None:
                raise StudentNotFound(user_id)
            if get_deposit_by_reference(conn, reference) is not None:
                raise DuplicateReference(
                    "A deposit with this payment reference is already being processed"
                )
            insert_deposit(conn, deposit)
    except IntegrityError as err:
        raise DuplicateReference(
            "A deposit with this payment reference is already being processed"
        ) from err

    deposit_operations.labels(operation="create", status="success").inc()
    logger.info("deposit_created", deposit_id=deposit.id, user_id=user_id, amount=str(amount))
    return deposit


def verify_deposit(
    engine: Engine,
    gateway: PaystackClient,
    reference: str,
    expected_amount: Optional[Decimal] = None,
    now: Optional[datetime] = None,
) -> DepositRecord:
    """
    Settle a pending deposit from the gateway's verification of its reference.

    Completed deposits are returned unchanged. On a failed verification the
    deposit is marked failed (committed) and PaymentVerificationFailed is raised.

    Raises:
        DepositNotFound, DepositClosed (already failed or refunded), PaymentVerificationFailed
    """
    now = now or utc_now()
    with engine.connect() as conn:
        deposit = get_deposit_by_reference(conn, reference)
    if deposit is None:
        raise DepositNotFound(reference)
    if deposit.status is DepositStatus.COMPLETED:
        return deposit
    if deposit.status is not DepositStatus.PENDING:
        raise DepositClosed(f"This deposit is {deposit.status.value} and cannot be verified")

    verification = gateway.verify(reference)
    failure = rules.verification_failure(verification.success, verification.amount, expected_amount)

    settled: Optional[DepositRecord] = None
    with transaction(engine, resource="deposit", resource_id=reference) as conn:
        current = get_deposit_by_reference(conn, reference, lock=True)
        if current is None:
            raise DepositNotFound(reference)
        if current.status is not DepositStatus.PENDING:
            # Settled by a concurrent verification while the gateway was called
            settled = current
        elif failure is not None:
            update_deposit(
                conn,
                current.id,
                expected_status=DepositStatus.PENDING,
                status=DepositStatus.FAILED,
                notes=f"Verification failed: {failure}",
            )
        else:
            settled = current.model_copy(
                update={
                    "status": DepositStatus.COMPLETED,
                    "amount": verification.amount,
                    "gateway_reference": verification.gateway_reference,
                    "payment_date": verification.paid_at or now,
                    "verified_at": now,
                }
            )
            update_deposit(
                conn,
                current.id,
                expected_status=DepositStatus.PENDING,
                status=settled.status,
                amount=settled.amount,
                gateway_reference=settled.gateway_reference,
                payment_date=settled.payment_date,
                verified_at=settled.verified_at,
            )

    if settled is None:
        deposit_operations.labels(operation="verify", status="failure").inc()
        logger.warning("deposit_verification_failed", reference=reference, reason=failure)
        raise PaymentVerificationFailed(f"Deposit verification failed: {failure}")

    if settled.status is not DepositStatus.COMPLETED:
        raise DepositClosed(f"This deposit is {settled.status.value} and cannot be verified")

    deposit_operations.labels(operation="verify", status="success").inc()
    logger.info(
        "deposit_verified",
        deposit_id=settled.id,
        user_id=settled.user_id,
        amount=str(settled.amount),
    )
    return settled


def get_balance(engine: Engine, user_id: str) -> dict[str, object]:
    """
    Summarise a user's deposit ledger.

    Returns:
        dict: available_balance (sum of completed), pending_balance and the
        per-status totals under by_status
    """
    with engine.connect() as conn:
        by_status = get_balance_by_status(conn, user_id)
    return {
        "user_id": user_id,
        "available_balance": by_status[DepositStatus.COMPLETED],
        "pending_balance": by_status[DepositStatus.PENDING],
        "by_status": by_status,
    }


def list_deposits(
    engine: Engine,
    user_id: str,
    status: Optional[DepositStatus] = None,
    limit: int = 10,
    offset: int = 0,
) -> list[DepositRecord]:
    with engine.connect() as conn:
        return list_deposit_rows(conn, user_id, status=status, limit=limit, offset=offset)


def refund_deposit(
    engine: Engine,
    deposit_id: str,
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
) -> DepositRecord:
    """
    Mark a completed credit as refunded.

    The refund is refused when the user's available balance no longer covers
    the deposit (part of it was already applied to a booking).

    Raises:
        DepositNotFound, DepositClosed, InsufficientBalance
    """
    now = now or utc_now()
    with transaction(engine, resource="deposit", resource_id=deposit_id) as conn:
        deposit = get_deposit(conn, deposit_id, lock=True)
        if deposit is None:
            raise DepositNotFound(deposit_id)

        blocked = rules.refund_block_reason(deposit, now, DEPOSIT_REFUND_WINDOW_DAYS)
        if blocked is not None:
            deposit_operations.labels(operation="refund", status="failure").inc()
            raise DepositClosed(blocked)

        available = get_available_balance(conn, deposit.user_id)
        if available < deposit.amount:
            deposit_operations.labels(operation="refund", status="failure").inc()
            raise InsufficientBalance(available, deposit.amount)

        refunded = deposit.model_copy(
            update={
                "status": DepositStatus.REFUNDED,
                "notes": f"Refunded: {reason}" if reason else "Deposit refunded",
            }
        )
        update_deposit(
            conn,
            deposit.id,
            expected_status=DepositStatus.COMPLETED,
            status=refunded.status,
            notes=refunded.notes,
        )

    deposit_operations.labels(operation="refund", status="success").inc()
    logger.info("deposit_refunded", deposit_id=deposit_id, amount=str(deposit.amount))
    return refunded


def expire_deposit(
    engine: Engine, deposit_id: str, now: Optional[datetime] = None
) -> Optional[DepositRecord]:
    """
    Fail one pending deposit whose expiry has passed.

    The expiry is re-checked under the deposit's row lock.

    Returns:
        Optional[DepositRecord]: The expired deposit, or None when it was
        settled or not yet expired by the time the lock was taken
    """
    now = now or utc_now()
    with transaction(engine, resource="deposit", resource_id=deposit_id) as conn:
        deposit = get_deposit(conn, deposit_id, lock=True)
        if deposit is None or not rules.is_expired(deposit, now):
            return None
        expired = deposit.model_copy(
            update={
                "status": DepositStatus.FAILED,
                "notes": "Deposit expired - payment not completed",
            }
        )
        update_deposit(
            conn,
            deposit_id,
            expected_status=DepositStatus.PENDING,
            status=expired.status,
            notes=expired.notes,
        )

    deposit_operations.labels(operation="expire", status="success").inc()
    logger.info("deposit_expired", deposit_id=deposit_id, user_id=deposit.user_id)
    return expired
