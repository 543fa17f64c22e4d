from enum import Enum
from typing import Any, Optional

from sqlalchemy import insert, update
from sqlalchemy.engine import Connection

from hostel_bookings.db.writers._columns import to_columns
from hostel_bookings.domain.records import DepositRecord, DepositStatus
from hostel_bookings.models.deposits import Deposit


def insert_deposit(conn: Connection, deposit: DepositRecord) -> None:
    conn.execute(insert(Deposit).values(**to_columns(deposit)))


def update_deposit(
    conn: Connection,
    deposit_id: str,
    expected_status: Optional[DepositStatus] = None,
    **fields: Any,
) -> bool:
    """
    Update a deposit's status-related fields.

    Ownership is immutable once inserted; callers only move status and stamp
    verification details.

    Args:
        conn: Connection inside the caller's transaction
        deposit_id: Deposit to update
        expected_status: Only update while the row is still in this status
        **fields: Column values to set

    Returns:
        bool: True if a row was updated
    """
    values = {k: (v.value if isinstance(v, Enum) else v) for k, v in fields.items()}
    stmt = update(Deposit).where(Deposit.id == deposit_id)
    if expected_status is not None:
        stmt = stmt.where(Deposit.status == expected_status.value)
    result = conn.execute(stmt.values(**values))
    return bool(result.rowcount)
