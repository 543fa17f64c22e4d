"""
SQLAlchemy engine singleton with production-ready connection pooling.

This module creates a single engine instance with connection pooling configured
for concurrent request handlers and the lifecycle scheduler sharing one store.
"""

from typing import Any

from sqlalchemy import create_engine, select, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from hostel_bookings.config import DATABASE_URL
from hostel_bookings.models.bookings import Booking

if not DATABASE_URL:
    raise RuntimeError("DATABASE_URL is not set.")


def _pool_options(url: str) -> dict[str, Any]:
    # SQLite (tests, local runs) has no server-side pool to size
    if url.startswith("sqlite"):
        return {}
    return {
        "pool_size": 10,  # Number of connections to maintain in the pool
        "max_overflow": 20,  # Additional connections when pool is exhausted
        "pool_pre_ping": True,  # Verify connections before using (detect stale connections)
        "pool_recycle": 3600,  # Recycle connections after 1 hour
    }


engine: Engine = create_engine(
    DATABASE_URL,
    future=True,
    echo=False,
    **_pool_options(DATABASE_URL),
)


def check_engine_health(target: Engine = engine) -> bool:
    """
    Check if database engine is healthy and connections are working.

    This function is used by the /ready endpoint to verify database
    connectivity before allowing traffic to the service.

    Returns:
        bool: True if database is reachable and healthy, False otherwise
    """
    try:
        with target.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception:
        return False


def check_ledger_schema(target: Engine = engine) -> bool:
    """True when the migrated booking tables can be queried (alembic upgrade has run)."""
    try:
        with target.connect() as conn:
            conn.execute(select(Booking.id).limit(1))
        return True
    except SQLAlchemyError:
        return False
