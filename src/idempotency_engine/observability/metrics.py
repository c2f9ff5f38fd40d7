"""Prometheus metrics for the idempotency engine.

Metrics include:

- Admission counters by result (bypass, admitted, replay, conflict, ...)
- Outcome counters for captured responses (persisted, discarded, failed)
- Pending resources gauge
- Explicit error report counter

Examples:
    >>> record_admission("replay")
    >>> record_outcome("persisted")
"""

from prometheus_client import Counter, Gauge

# Labels: result (bypass, admitted, replay, conflict, invalid_intent, storage_error)
admissions_total = Counter(
    "idempotency_admissions_total",
    "Total number of operations seen by the idempotency engine",
    ["result"],
)

# Labels: outcome (persisted, discarded, superseded, capture_failed)
outcomes_total = Counter(
    "idempotency_outcomes_total",
    "Total number of admitted operations whose outcome was processed",
    ["outcome"],
)

# Resources created by this process whose outcome is not yet processed
pending_resources = Gauge(
    "idempotency_pending_resources",
    "Number of resources awaiting their captured response",
)

error_reports_total = Counter(
    "idempotency_error_reports_total",
    "Total number of explicit error reports received",
)


def record_admission(result: str) -> None:
    """Record how an operation was handled at admission."""
    admissions_total.labels(result=result).inc()


def record_outcome(outcome: str) -> None:
    """Record what happened to an admitted operation's captured response."""
    outcomes_total.labels(outcome=outcome).inc()


def increment_pending() -> None:
    pending_resources.inc()


def decrement_pending() -> None:
    pending_resources.dec()


def record_error_report() -> None:
    error_reports_total.inc()
