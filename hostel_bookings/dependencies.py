"""
FastAPI dependency injection providers.

Route handlers receive the engine, the notifier and the payment gateway
through these providers, so tests can swap each one with
app.dependency_overrides.

Testing Example:
    >>> app.dependency_overrides[get_db_engine] = lambda: sqlite_engine
    >>> app.dependency_overrides[get_gateway] = lambda: mock_gateway
    >>> client = TestClient(app)
"""

from __future__ import annotations

from functools import lru_cache
from typing import Generator

from sqlalchemy.engine import Engine

from hostel_bookings.db.engine import engine
from hostel_bookings.gateway.paystack import PaystackClient
from hostel_bookings.services.notifications import LoggingNotifier, NotificationPort


def get_db_engine() -> Generator[Engine, None, None]:
    """
    Provide database engine for dependency injection.

    Yields:
        Engine: SQLAlchemy database engine
    """
    yield engine


@lru_cache(maxsize=1)
def get_notifier() -> NotificationPort:
    return LoggingNotifier()


@lru_cache(maxsize=1)
def get_gateway() -> PaystackClient:
    """Shared Paystack client (one requests.Session per process)."""
    return PaystackClient()
