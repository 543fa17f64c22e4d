"""
Prometheus metrics for booking transitions, the payment ledger, deposits and
the lifecycle scheduler.

Metrics are exposed via the /metrics endpoint for scraping by Prometheus.

Metric Types:
    - Counter: Cumulative metrics that only increase (e.g., payments recorded)
    - Histogram: Observations bucketed by value (e.g., sweep duration)
    - Gauge: Point-in-time value that can go up or down

Example:
    >>> from hostel_bookings.metrics import booking_transitions
    >>> booking_transitions.labels(transition="confirm", status="success").inc()
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram

# =============================================================================
# Booking Metrics
# =============================================================================

booking_transitions = Counter(
    "hostel_booking_transitions_total",
    "Total number of booking state machine transitions (success and failure)",
    ["transition", "status"],
)
"""
Counter for booking transitions.

Labels:
    transition: create, confirm, check_in, check_out, cancel, no_show,
                mark_overdue, auto_cancel, update, delete
    status: success or failure
"""

# =============================================================================
# Ledger Metrics
# =============================================================================

payments_recorded = Counter(
    "hostel_payments_recorded_total",
    "Total number of payment rows appended to the ledger",
    ["payment_type", "method"],
)
"""
Counter for appended payments.

Labels:
    payment_type: booking_payment, deposit, refund, penalty
    method: cash, card, mobile_money, account_credit, ...
"""

payment_amount = Counter(
    "hostel_payment_amount_total",
    "Sum of money applied to bookings",
    ["payment_type"],
)

deposit_operations = Counter(
    "hostel_deposit_operations_total",
    "Total deposit ledger operations",
    ["operation", "status"],
)
"""
Counter for deposit operations.

Labels:
    operation: create, verify, apply, refund, expire
    status: success or failure
"""

# =============================================================================
# Concurrency Metrics
# =============================================================================

lock_timeouts = Counter(
    "hostel_lock_timeouts_total",
    "Transactions that gave up waiting for a row lock",
    ["resource"],
)

# =============================================================================
# Scheduler Metrics
# =============================================================================

sweep_runs = Counter(
    "hostel_sweep_runs_total",
    "Total lifecycle sweep runs",
    ["job", "status"],
)

sweep_items = Counter(
    "hostel_sweep_items_total",
    "Bookings or deposits processed by lifecycle sweeps",
    ["job", "status"],
)

sweep_duration = Histogram(
    "hostel_sweep_duration_seconds",
    "Duration of lifecycle sweeps in seconds",
    ["job"],
    buckets=(0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 300.0, float("inf")),
)
"""
Histogram for sweep duration.

Labels:
    job: Scheduler job name (mark_overdue, auto_cancel, ...)

Buckets: 0.1s, 0.5s, 1s, 2.5s, 5s, 10s, 30s, 60s, 300s, +Inf
"""

occupancy_corrections = Counter(
    "hostel_occupancy_corrections_total",
    "Rooms whose occupancy drifted and was corrected by reconciliation",
)

# =============================================================================
# Payment Gateway Metrics
# =============================================================================

gateway_requests = Counter(
    "hostel_gateway_requests_total",
    "Total payment gateway requests made",
    ["endpoint", "status_code"],
)

gateway_latency = Histogram(
    "hostel_gateway_latency_seconds",
    "Payment gateway request latency in seconds",
    ["endpoint"],
    buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, float("inf")),
)
