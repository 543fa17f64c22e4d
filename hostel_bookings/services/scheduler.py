"""
Lifecycle scheduler: periodic sweeps over the booking state machine.

A Scheduler owns a list of ScheduledJobs and runs every due job on tick().
Each sweep selects candidate ids with a read-only query, then re-enters the
booking service once per candidate; the service re-checks the predicate under
the booking's row lock, so sweeps are idempotent and safe to run alongside
interactive requests. One candidate failing never aborts the rest of a sweep.
"""

import random
import threading
import time
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Callable, Iterable, Optional

import structlog
from sqlalchemy.engine import Engine

from hostel_bookings.config import (
    AUTO_CANCEL_GRACE_DAYS,
    OCCUPANCY_SYNC_INTERVAL_SECONDS,
    SWEEP_LOCK_ATTEMPTS,
)
from hostel_bookings.db.readers.bookings import (
    find_auto_cancel_candidates,
    find_bookings_by_date,
    find_no_show_candidates,
    find_overdue_candidates,
    find_payment_reminder_candidates,
)
from hostel_bookings.db.readers.deposits import find_expired_pending
from hostel_bookings.db.transaction import retry_on_lock_timeout
from hostel_bookings.domain.records import BookingRecord, BookingStatus
from hostel_bookings.metrics import sweep_duration, sweep_items, sweep_runs
from hostel_bookings.services import bookings, deposits, occupancy
from hostel_bookings.services.notifications import LoggingNotifier, NotificationPort, notify_safely
from hostel_bookings.utils.datetime import utc_now

logger = structlog.get_logger(__name__)

PAYMENT_REMINDER_DAYS = 3


@dataclass(frozen=True)
class SweepResult:
    processed: int = 0
    failed: int = 0


def _run_per_item(
    job: str, candidates: Iterable[str], action: Callable[[str], object]
) -> SweepResult:
    """
    Apply action to each candidate id, isolating failures.

    A candidate whose row lock is contended is retried before it counts as
    failed. None results count as no-ops.
    """
    processed = 0
    failed = 0
    for item_id in candidates:
        try:
            if retry_on_lock_timeout(action, item_id, attempts=SWEEP_LOCK_ATTEMPTS) is not None:
                processed += 1
                sweep_items.labels(job=job, status="processed").inc()
        except Exception as e:
            failed += 1
            sweep_items.labels(job=job, status="failed").inc()
            logger.exception("sweep_item_failed", job=job, item_id=item_id, error=str(e))
    return SweepResult(processed=processed, failed=failed)


# =============================================================================
# Sweeps
# =============================================================================


def mark_overdue_bookings(
    engine: Engine, notifier: Optional[NotificationPort] = None, now: Optional[datetime] = None
) -> SweepResult:
    """
    Flag every booking past its payment due date that still owes money as overdue.

    Re-running on already overdue bookings is a no-op.
    """
    now = now or utc_now()
    with engine.connect() as conn:
        candidates = find_overdue_candidates(conn, now.date())
    return _run_per_item(
        "mark_overdue",
        candidates,
        lambda booking_id: bookings.mark_booking_overdue(engine, booking_id, notifier, now),
    )


def auto_cancel_unpaid_bookings(
    engine: Engine, notifier: Optional[NotificationPort] = None, now: Optional[datetime] = None
) -> SweepResult:
    now = now or utc_now()
    cutoff = now.date() - timedelta(days=AUTO_CANCEL_GRACE_DAYS)
    with engine.connect() as conn:
        candidates = find_auto_cancel_candidates(conn, cutoff)
    return _run_per_item(
        "auto_cancel",
        candidates,
        lambda booking_id: bookings.auto_cancel_booking(engine, booking_id, notifier, now),
    )


def mark_no_show_bookings(
    engine: Engine, notifier: Optional[NotificationPort] = None, now: Optional[datetime] = None
) -> SweepResult:
    now = now or utc_now()
    with engine.connect() as conn:
        candidates = find_no_show_candidates(conn, now.date())
    return _run_per_item(
        "no_show",
        candidates,
        lambda booking_id: bookings.mark_no_show(engine, booking_id, notifier, now),
    )


def sync_room_occupancy(engine: Engine) -> SweepResult:
    report = occupancy.reconcile_all(engine)
    return SweepResult(processed=report.rooms_corrected, failed=report.rooms_failed)


def expire_pending_deposits(engine: Engine, now: Optional[datetime] = None) -> SweepResult:
    """Fail pending deposits whose expiry has passed; re-running is a no-op."""
    now = now or utc_now()
    with engine.connect() as conn:
        candidates = find_expired_pending(conn, now)
    return _run_per_item(
        "expire_deposits",
        candidates,
        lambda deposit_id: deposits.expire_deposit(engine, deposit_id, now),
    )


class ReminderSweep:
    """
    Sends one reminder per booking per target day.

    Reminder jobs run more often than once a day; bookings already reminded
    for a given day are remembered in memory and skipped.
    """

    def __init__(
        self,
        name: str,
        select: Callable[[Engine, date], list[BookingRecord]],
        send: Callable[[NotificationPort, BookingRecord, date], None],
    ) -> None:
        self.name = name
        self.select = select
        self.send = send
        self._sent: set[tuple[str, date]] = set()

    def __call__(
        self,
        engine: Engine,
        notifier: Optional[NotificationPort] = None,
        now: Optional[datetime] = None,
    ) -> SweepResult:
        now = now or utc_now()
        today = now.date()
        notifier = notifier if notifier is not None else LoggingNotifier()
        self._sent = {key for key in self._sent if key[1] >= today}

        processed = 0
        failed = 0
        for booking in self.select(engine, today):
            key = (booking.id, today)
            if key in self._sent:
                continue
            if notify_safely(self.send, notifier, booking, today):
                self._sent.add(key)
                processed += 1
            else:
                failed += 1
        sweep_items.labels(job=self.name, status="processed").inc(processed)
        if failed:
            sweep_items.labels(job=self.name, status="failed").inc(failed)
        return SweepResult(processed=processed, failed=failed)


def _payment_reminder_candidates(engine: Engine, today: date) -> list[BookingRecord]:
    with engine.connect() as conn:
        return find_payment_reminder_candidates(
            conn, today, today + timedelta(days=PAYMENT_REMINDER_DAYS)
        )


def _check_in_tomorrow(engine: Engine, today: date) -> list[BookingRecord]:
    with engine.connect() as conn:
        return find_bookings_by_date(
            conn, BookingStatus.CONFIRMED, check_in=today + timedelta(days=1)
        )


def _check_out_tomorrow(engine: Engine, today: date) -> list[BookingRecord]:
    with engine.connect() as conn:
        return find_bookings_by_date(
            conn, BookingStatus.CHECKED_IN, check_out=today + timedelta(days=1)
        )


def _send_payment_reminder(
    notifier: NotificationPort, booking: BookingRecord, today: date
) -> None:
    days_until_due = (booking.payment_due_date - today).days if booking.payment_due_date else 0
    notifier.payment_reminder(booking, days_until_due)


def _send_check_in_reminder(
    notifier: NotificationPort, booking: BookingRecord, today: date
) -> None:
    notifier.check_in_reminder(booking)


def _send_check_out_reminder(
    notifier: NotificationPort, booking: BookingRecord, today: date
) -> None:
    notifier.check_out_reminder(booking)


# =============================================================================
# Scheduler
# =============================================================================


@dataclass
class ScheduledJob:
    """
    One periodic job.

    func receives the tick time. jitter adds a random delay of up to that many
    seconds to each rescheduling so replicas do not sweep in lockstep.
    """

    name: str
    interval: timedelta
    func: Callable[[datetime], SweepResult]
    jitter: timedelta = timedelta(0)
    next_run: Optional[datetime] = field(default=None, compare=False)

    def is_due(self, now: datetime) -> bool:
        return self.next_run is None or now >= self.next_run

    def schedule_next(self, now: datetime) -> None:
        delay = self.interval
        if self.jitter:
            delay += timedelta(seconds=random.uniform(0, self.jitter.total_seconds()))
        self.next_run = now + delay


class Scheduler:
    """
    Runs ScheduledJobs from a single loop.

    Example:
        >>> scheduler = Scheduler(default_jobs(engine))
        >>> stop = threading.Event()
        >>> scheduler.run_forever(stop)
    """

    def __init__(self, jobs: list[ScheduledJob]) -> None:
        self.jobs = jobs

    def run_job(self, job: ScheduledJob, now: datetime) -> Optional[SweepResult]:
        """Run one job, logging and swallowing its failure."""
        start_time = time.time()
        try:
            result = job.func(now)
        except Exception as e:
            sweep_runs.labels(job=job.name, status="failure").inc()
            logger.exception("sweep_failed", job=job.name, error=str(e))
            return None
        finally:
            sweep_duration.labels(job=job.name).observe(time.time() - start_time)

        sweep_runs.labels(job=job.name, status="success").inc()
        logger.info(
            "sweep_completed", job=job.name, processed=result.processed, failed=result.failed
        )
        return result

    def tick(self, now: Optional[datetime] = None) -> dict[str, Optional[SweepResult]]:
        """
        Run every job that is due at now.

        Returns:
            dict: job name -> SweepResult (None when the job itself failed)
        """
        now = now or utc_now()
        results: dict[str, Optional[SweepResult]] = {}
        for job in self.jobs:
            if not job.is_due(now):
                continue
            results[job.name] = self.run_job(job, now)
            job.schedule_next(now)
        return results

    def run_forever(self, stop_event: threading.Event, poll_interval: float = 30.0) -> None:
        logger.info("scheduler_started", jobs=[job.name for job in self.jobs])
        while not stop_event.is_set():
            self.tick()
            stop_event.wait(poll_interval)
        logger.info("scheduler_stopped")


def default_jobs(
    engine: Engine, notifier: Optional[NotificationPort] = None
) -> list[ScheduledJob]:
    """The standard sweep set, bound to an engine and notifier."""
    notifier = notifier if notifier is not None else LoggingNotifier()
    daily = timedelta(days=1)
    hourly = timedelta(hours=1)

    payment_reminders = ReminderSweep(
        "payment_reminders", _payment_reminder_candidates, _send_payment_reminder
    )
    check_in_reminders = ReminderSweep(
        "check_in_reminders", _check_in_tomorrow, _send_check_in_reminder
    )
    check_out_reminders = ReminderSweep(
        "check_out_reminders", _check_out_tomorrow, _send_check_out_reminder
    )

    return [
        ScheduledJob(
            "mark_overdue", daily, lambda now: mark_overdue_bookings(engine, notifier, now)
        ),
        ScheduledJob(
            "auto_cancel", daily, lambda now: auto_cancel_unpaid_bookings(engine, notifier, now)
        ),
        ScheduledJob("no_show", daily, lambda now: mark_no_show_bookings(engine, notifier, now)),
        ScheduledJob(
            "occupancy_sync",
            timedelta(seconds=OCCUPANCY_SYNC_INTERVAL_SECONDS),
            lambda now: sync_room_occupancy(engine),
            jitter=timedelta(seconds=60),
        ),
        ScheduledJob(
            "payment_reminders", daily, lambda now: payment_reminders(engine, notifier, now)
        ),
        ScheduledJob(
            "check_in_reminders", hourly, lambda now: check_in_reminders(engine, notifier, now)
        ),
        ScheduledJob(
            "check_out_reminders", hourly, lambda now: check_out_reminders(engine, notifier, now)
        ),
        ScheduledJob(
            "expire_deposits", daily, lambda now: expire_pending_deposits(engine, now)
        ),
    ]
