"""
Integration tests for the liveness and readiness probes.
"""

from __future__ import annotations

from typing import Generator
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine

from hostel_bookings.dependencies import get_db_engine
from hostel_bookings.main import app


@pytest.fixture
def client(db_engine: Engine) -> Generator[TestClient, None, None]:
    app.dependency_overrides[get_db_engine] = lambda: db_engine
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.mark.integration
def test_health_endpoint_returns_ok(client: TestClient) -> None:
    """Test that /health returns 200 without touching the database."""
    with patch("hostel_bookings.routes.health.check_engine_health") as mock_health:
        response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    mock_health.assert_not_called()


@pytest.mark.integration
def test_ready_when_ledger_schema_is_migrated(client: TestClient) -> None:
    """Test that /ready reports both checks ok against a created schema."""
    response = client.get("/ready")

    assert response.status_code == 200
    assert response.json() == {
        "status": "ready",
        "checks": {"database": "ok", "ledger_schema": "ok"},
    }


@pytest.mark.integration
def test_not_ready_before_migrations() -> None:
    """Test that an empty database is reachable but not ready."""
    empty = create_engine(
        "sqlite+pysqlite://", execution_options={"schema_translate_map": {"hostel": None}}
    )
    app.dependency_overrides[get_db_engine] = lambda: empty
    try:
        response = TestClient(app).get("/ready")
    finally:
        app.dependency_overrides.clear()
        empty.dispose()

    assert response.status_code == 503
    assert response.json()["checks"] == {"database": "ok", "ledger_schema": "failed"}


@pytest.mark.integration
def test_not_ready_when_database_unreachable(client: TestClient) -> None:
    with patch("hostel_bookings.routes.health.check_engine_health", return_value=False):
        response = client.get("/ready")

    assert response.status_code == 503
    data = response.json()
    assert data["status"] == "not ready"
    assert data["checks"] == {"database": "failed", "ledger_schema": "skipped"}
