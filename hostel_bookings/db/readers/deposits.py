from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.engine import Connection, Row

from hostel_bookings.domain.pricing import CENTS
from hostel_bookings.domain.records import DepositRecord, DepositStatus
from hostel_bookings.models.deposits import Deposit


def _to_deposit(row: Row[Any]) -> DepositRecord:
    return DepositRecord.model_validate(dict(row._mapping))


def get_deposit(
    conn: Connection, deposit_id: str, user_id: Optional[str] = None, lock: bool = False
) -> Optional[DepositRecord]:
    stmt = select(Deposit).where(Deposit.id == deposit_id)
    if user_id is not None:
        stmt = stmt.where(Deposit.user_id == user_id)
    if lock:
        stmt = stmt.with_for_update()
    row = conn.execute(stmt).fetchone()
    return _to_deposit(row) if row else None


def get_deposit_by_reference(
    conn: Connection, reference: str, lock: bool = False
) -> Optional[DepositRecord]:
    """
    Fetch a deposit by its unique payment reference.

    Args:
        conn (Connection): An active SQLAlchemy database connection.
        reference (str): Payment reference.
        lock (bool): Take a row lock (used while verifying).

    Returns:
        Optional[DepositRecord]: The deposit or None if not found.
    """
    stmt = select(Deposit).where(Deposit.payment_reference == reference)
    if lock:
        stmt = stmt.with_for_update()
    row = conn.execute(stmt).fetchone()
    return _to_deposit(row) if row else None


def get_balance_by_status(conn: Connection, user_id: str) -> dict[DepositStatus, Decimal]:
    """
    Sum a user's deposit amounts grouped by status.

    This is a point-in-time aggregate and takes no locks.

    Returns:
        dict[DepositStatus, Decimal]: Totals for every status (zero when absent).
    """
    result = conn.execute(
        select(Deposit.status, func.coalesce(func.sum(Deposit.amount), 0))
        .where(Deposit.user_id == user_id)
        .group_by(Deposit.status)
    )
    totals = {status: Decimal("0") for status in DepositStatus}
    for status, total in result:
        totals[DepositStatus(status)] = Decimal(str(total)).quantize(CENTS)
    return totals


def get_available_balance(conn: Connection, user_id: str) -> Decimal:
    return get_balance_by_status(conn, user_id)[DepositStatus.COMPLETED]


def list_deposits(
    conn: Connection,
    user_id: str,
    status: Optional[DepositStatus] = None,
    limit: int = 10,
    offset: int = 0,
) -> list[DepositRecord]:
    stmt = select(Deposit).where(Deposit.user_id == user_id)
    if status is not None:
        stmt = stmt.where(Deposit.status == status.value)
    stmt = stmt.order_by(Deposit.created_at.desc()).limit(limit).offset(offset)
    return [_to_deposit(row) for row in conn.execute(stmt)]


def find_expired_pending(conn: Connection, now: datetime) -> list[str]:
    result = conn.execute(
        select(Deposit.id)
        .where(Deposit.status == DepositStatus.PENDING.value)
        .where(Deposit.expires_at < now)
    )
    return list(result.scalars().all())
