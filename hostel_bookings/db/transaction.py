"""
Transaction scopes with explicit, bounded row locking.

Every mutation of a booking goes through locked_booking(): it opens the
transaction, applies the lock timeout, then locks and reads the booking row
before handing it to the caller. The caller never sees booking amounts that
were read outside the lock, and the lock is held until commit or rollback.

Example:
    >>> with locked_booking(engine, booking_id) as (conn, booking):
    ...     updated = apply_payment(booking, amount)
    ...     save_booking(conn, updated)
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Callable, Iterator, Optional, TypeVar

import structlog
from sqlalchemy import text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import DBAPIError

from hostel_bookings.config import LOCK_TIMEOUT_MS
from hostel_bookings.db.readers.bookings import lock_booking
from hostel_bookings.domain.records import BookingRecord
from hostel_bookings.errors import LockTimeout
from hostel_bookings.metrics import lock_timeouts

logger = structlog.get_logger(__name__)

T = TypeVar("T")

# PostgreSQL SQLSTATE for lock_not_available (raised when lock_timeout expires)
LOCK_NOT_AVAILABLE = "55P03"


def _is_lock_timeout(err: DBAPIError) -> bool:
    orig = err.orig
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if code == LOCK_NOT_AVAILABLE:
        return True
    # SQLite reports a busy writer this way
    return "database is locked" in str(orig)


def _apply_lock_timeout(conn: Connection) -> None:
    if conn.dialect.name == "postgresql":
        conn.execute(text(f"SET LOCAL lock_timeout = {int(LOCK_TIMEOUT_MS)}"))


@contextmanager
def transaction(
    engine: Engine, resource: str = "booking", resource_id: str = "-"
) -> Iterator[Connection]:
    """
    Open one ACID transaction with a bounded lock wait.

    Commits when the block exits normally and rolls back wholesale on any
    exception. A lock wait that exceeds LOCK_TIMEOUT_MS surfaces as the
    retryable LockTimeout.

    Args:
        engine: SQLAlchemy engine
        resource: Name of the locked resource, used in errors and metrics
        resource_id: Identifier of the locked resource

    Raises:
        LockTimeout: the row lock could not be acquired in time
    """
    try:
        with engine.begin() as conn:
            _apply_lock_timeout(conn)
            yield conn
    except DBAPIError as err:
        if _is_lock_timeout(err):
            lock_timeouts.labels(resource=resource).inc()
            logger.warning("lock_timeout", resource=resource, resource_id=resource_id)
            raise LockTimeout(resource, resource_id) from err
        raise


@contextmanager
def locked_booking(
    engine: Engine, booking_id: str, owner_id: Optional[str] = None
) -> Iterator[tuple[Connection, BookingRecord]]:
    """
    Transaction whose first step is the pessimistic write lock on one booking.

    Args:
        engine: SQLAlchemy engine
        booking_id: Booking to lock
        owner_id: When given, the booking must belong to this student

    Yields:
        (conn, booking): the open connection and the booking as read under the lock

    Raises:
        BookingNotFound: no such booking (or not owned by owner_id)
        LockTimeout: the lock could not be acquired in time
    """
    with transaction(engine, resource="booking", resource_id=booking_id) as conn:
        booking = lock_booking(conn, booking_id, owner_id=owner_id)
        yield conn, booking


def retry_on_lock_timeout(
    func: Callable[..., T],
    *args: object,
    attempts: int = 3,
    backoff: float = 0.2,
    **kwargs: object,
) -> T:
    """
    Call func, retrying with linear backoff while it raises LockTimeout.

    Args:
        func: Operation to run (it opens its own transaction)
        attempts: Total number of tries before the LockTimeout propagates
        backoff: Seconds to sleep per failed attempt (attempt * backoff)
    """
    retries = 0
    while True:
        try:
            return func(*args, **kwargs)
        except LockTimeout as err:
            retries += 1
            if retries >= attempts:
                raise
            logger.info(
                "lock_timeout_retry",
                resource=err.resource,
                resource_id=err.resource_id,
                attempt=retries,
            )
            time.sleep(backoff * retries)
