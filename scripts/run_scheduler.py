"""
Run the booking lifecycle scheduler in the foreground.

Serves the scheduler's Prometheus metrics on SCHEDULER_METRICS_PORT and stops
cleanly on SIGINT/SIGTERM after the current tick finishes.
"""

import signal
import threading
from types import FrameType
from typing import Optional

import structlog
from prometheus_client import start_http_server

from hostel_bookings.config import SCHEDULER_METRICS_PORT, SCHEDULER_POLL_SECONDS
from hostel_bookings.db.engine import engine
from hostel_bookings.logging_config import setup_logging
from hostel_bookings.services.scheduler import Scheduler, default_jobs

setup_logging(service="scheduler")
logger = structlog.get_logger(__name__)


def main(poll_interval: float = SCHEDULER_POLL_SECONDS) -> None:
    stop_event = threading.Event()

    def _stop(signum: int, frame: Optional[FrameType]) -> None:
        logger.info("scheduler_stop_requested", signal=signal.Signals(signum).name)
        stop_event.set()

    signal.signal(signal.SIGINT, _stop)
    signal.signal(signal.SIGTERM, _stop)

    start_http_server(SCHEDULER_METRICS_PORT)
    logger.info("scheduler_metrics_serving", port=SCHEDULER_METRICS_PORT)

    scheduler = Scheduler(default_jobs(engine))
    scheduler.run_forever(stop_event, poll_interval=poll_interval)


if __name__ == "__main__":
    main()
