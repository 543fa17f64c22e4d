"""
Liveness and readiness probes.

Readiness covers the two things every booking operation needs: a reachable
database and a migrated ledger schema.
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.engine import Engine

from hostel_bookings.db.engine import check_engine_health, check_ledger_schema
from hostel_bookings.dependencies import get_db_engine

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.get("/health")
def health_check() -> JSONResponse:
    """Liveness: the process is up and serving."""
    return JSONResponse(content={"status": "ok"})


@router.get("/ready")
def readiness_check(engine: Engine = Depends(get_db_engine)) -> JSONResponse:
    """
    Readiness: 200 when the store is reachable and migrated, 503 otherwise.

    Example:
        >>> GET /ready
        {"status": "ready", "checks": {"database": "ok", "ledger_schema": "ok"}}
    """
    checks = {"database": "failed", "ledger_schema": "skipped"}

    if check_engine_health(engine):
        checks["database"] = "ok"
        checks["ledger_schema"] = "ok" if check_ledger_schema(engine) else "failed"

    if all(result == "ok" for result in checks.values()):
        return JSONResponse(content={"status": "ready", "checks": checks})

    logger.error("readiness_check_failed", **checks)
    return JSONResponse(status_code=503, content={"status": "not ready", "checks": checks})
