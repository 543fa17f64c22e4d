"""
Unit tests for how business failures and request validation surface over HTTP.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Generator
from unittest.mock import MagicMock, Mock, patch

import pytest
from fastapi.testclient import TestClient

from hostel_bookings.dependencies import get_db_engine, get_gateway, get_notifier
from hostel_bookings.errors import (
    ActiveBookingConflict,
    AmountExceedsDue,
    BookingNotFound,
    InvalidDates,
    InvalidTransition,
    LockTimeout,
)
from hostel_bookings.main import app


@pytest.fixture
def client() -> Generator[TestClient, None, None]:
    """Test client whose services never reach a database."""
    app.dependency_overrides[get_db_engine] = lambda: MagicMock()
    app.dependency_overrides[get_notifier] = lambda: Mock()
    app.dependency_overrides[get_gateway] = lambda: Mock()
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()


@pytest.mark.unit
@pytest.mark.parametrize(
    "error,status_code,category",
    [
        (InvalidDates("Check-out date must be after check-in date"), 400, "validation"),
        (ActiveBookingConflict("already has an active booking"), 409, "conflict"),
        (InvalidTransition("cancelled", "confirmed"), 409, "state"),
        (BookingNotFound("b-404"), 404, "not_found"),
    ],
)
def test_business_errors_render_kind_category_and_detail(
    client: TestClient, error: Exception, status_code: int, category: str
) -> None:
    """Test that each error category maps to its status with a specific detail."""
    with patch("hostel_bookings.routes.bookings.bookings.confirm_booking", side_effect=error):
        response = client.post("/bookings/b-1/confirm")

    assert response.status_code == status_code
    body = response.json()
    assert body["error"] == type(error).__name__
    assert body["category"] == category
    assert body["detail"] == str(error)


@pytest.mark.unit
def test_amount_exceeds_due_names_the_due_amount(client: TestClient) -> None:
    error = AmountExceedsDue(Decimal("1000"), Decimal("400.00"))
    with patch("hostel_bookings.routes.bookings.payments.record_payment", side_effect=error):
        response = client.post(
            "/bookings/b-1/payments", json={"amount": "1000", "payment_method": "cash"}
        )

    assert response.status_code == 400
    assert response.json()["detail"] == "Payment amount 1000 exceeds amount due of 400.00"


@pytest.mark.unit
def test_lock_timeout_is_retryable_with_retry_after(client: TestClient) -> None:
    """Test that a lock timeout is a 503 carrying Retry-After."""
    with patch(
        "hostel_bookings.routes.bookings.bookings.check_in",
        side_effect=LockTimeout("booking", "b-1"),
    ):
        response = client.post("/bookings/b-1/check-in")

    assert response.status_code == 503
    assert response.headers["Retry-After"] == "1"
    assert response.json()["category"] == "concurrency"


@pytest.mark.unit
def test_unexpected_errors_are_generic_500(client: TestClient) -> None:
    with patch(
        "hostel_bookings.routes.bookings.bookings.get_booking_by_id",
        side_effect=RuntimeError("connection reset"),
    ):
        response = client.get("/bookings/b-1")

    assert response.status_code == 500
    assert response.json() == {"detail": "Internal server error"}


@pytest.mark.unit
def test_unknown_fields_are_rejected(client: TestClient) -> None:
    """Test that request bodies are closed: unknown fields fail with 422."""
    response = client.post(
        "/bookings",
        json={
            "student_id": "s-1",
            "hostel_id": "h-1",
            "room_id": "r-1",
            "booking_type": "semester",
            "check_in_date": "2026-03-09",
            "check_out_date": "2026-07-07",
            "total_amount": "1",
        },
    )

    assert response.status_code == 422
    assert "total_amount" in response.text


@pytest.mark.unit
def test_unknown_booking_type_is_rejected_at_the_boundary(client: TestClient) -> None:
    response = client.post(
        "/bookings",
        json={
            "student_id": "s-1",
            "hostel_id": "h-1",
            "room_id": "r-1",
            "booking_type": "nightly",
            "check_in_date": "2026-03-09",
            "check_out_date": "2026-07-07",
        },
    )

    assert response.status_code == 422


@pytest.mark.unit
def test_cancel_requires_a_reason(client: TestClient) -> None:
    response = client.post("/bookings/b-1/cancel", json={})

    assert response.status_code == 422


@pytest.mark.unit
def test_deposit_list_rejects_unknown_status_filter(client: TestClient) -> None:
    response = client.get("/deposits/users/s-1?status=lost")

    assert response.status_code == 422
