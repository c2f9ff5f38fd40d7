"""Observability utilities for the idempotency engine.

This package provides:
- Prometheus metrics for admission results and captured outcomes
- Structured logging with contextual information

Failures on the detached capture path are never raised to callers; these
are the channels through which they are reported.
"""

from idempotency_engine.observability.logging import configure_logging, get_logger
from idempotency_engine.observability.metrics import (
    record_admission,
    record_error_report,
    record_outcome,
)

__all__ = [
    "configure_logging",
    "get_logger",
    "record_admission",
    "record_outcome",
    "record_error_report",
]
