"""
structlog setup shared by the API process and the lifecycle scheduler.

Both processes write one event per line to stdout: JSON at INFO and above for
log aggregation, a colored console rendering at DEBUG. Every event carries the
name of the process that emitted it under "service".
"""

from __future__ import annotations

import logging
import sys
from typing import Any, Callable, MutableMapping, Optional

import structlog

from hostel_bookings.config import LOG_LEVEL

# Type alias for structlog processor
Processor = Callable[[Any, str, MutableMapping[str, Any]], Any]

# Libraries that log every request or statement at INFO
QUIET_LOGGERS = (
    "urllib3",
    "requests",
    "sqlalchemy.engine",
    "sqlalchemy.pool",
    "alembic.runtime.migration",
    "uvicorn.access",
)


def add_service(service: str) -> Processor:
    """Processor stamping the emitting process name on each event."""

    def _add_service(
        logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
    ) -> MutableMapping[str, Any]:
        event_dict.setdefault("service", service)
        return event_dict

    return _add_service


def build_processors(service: str, level: str) -> list[Processor]:
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        add_service(service),
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]
    if level == "DEBUG":
        processors.append(structlog.dev.ConsoleRenderer(colors=True))
    else:
        # Tracebacks become strings before JSON rendering
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    return processors


def setup_logging(service: str = "api", level: Optional[str] = None) -> None:
    """
    Configure stdlib logging and structlog for this process.

    Args:
        service: Process name stamped on every event ("api" or "scheduler")
        level: Log level name; defaults to LOG_LEVEL from the environment
    """
    level = (level or LOG_LEVEL).upper()

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    structlog.configure(
        processors=build_processors(service, level),
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
