# hostel_bookings/main.py

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from hostel_bookings.config import ALLOWED_ORIGINS
from hostel_bookings.errors import BookingEngineError, LockTimeout
from hostel_bookings.logging_config import setup_logging
from hostel_bookings.middleware import RequestIDMiddleware
from hostel_bookings.routes.bookings import router as bookings_router
from hostel_bookings.routes.deposits import router as deposits_router
from hostel_bookings.routes.health import router as health_router
from hostel_bookings.routes.metrics import router as metrics_router

# Initialize structured logging
setup_logging(service="api")
logger = structlog.get_logger(__name__)

# Seconds a client should wait before retrying after a lock timeout
RETRY_AFTER_SECONDS = 1

app = FastAPI(
    title="Hostel Bookings API",
    description="Booking lifecycle and payment reconciliation engine",
    version="1.0.0",
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS if "*" not in ALLOWED_ORIGINS else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestIDMiddleware)

# Register routers
app.include_router(health_router, tags=["Health"])
app.include_router(metrics_router, tags=["Metrics"])
app.include_router(bookings_router, tags=["Bookings"])
app.include_router(deposits_router, tags=["Deposits"])


@app.exception_handler(BookingEngineError)
async def booking_engine_error_handler(request: Request, exc: BookingEngineError) -> JSONResponse:
    """Render a business failure as {"error", "category", "detail"} with its category's status."""
    log = logger.warning if exc.category != "not_found" else logger.info
    log(
        "request_rejected",
        error=exc.kind,
        category=exc.category,
        detail=exc.detail,
        path=request.url.path,
    )

    headers = {"Retry-After": str(RETRY_AFTER_SECONDS)} if isinstance(exc, LockTimeout) else None
    return JSONResponse(
        status_code=exc.http_status,
        content={"error": exc.kind, "category": exc.category, "detail": exc.detail},
        headers=headers,
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("request_failed", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})
