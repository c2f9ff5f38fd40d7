"""Structured logging for the idempotency engine.

The engine logs dotted event names in three families, each carrying the
idempotency key as bound context:

- ``admission.*``: how a request was handled on arrival (bypassed,
  admitted, replayed, conflict, invalid_intent, storage_failed,
  hit_downstream_failed)
- ``resource.*``: what happened to a resource afterwards (completed,
  discarded, superseded, error_reported, cleanup_failed)
- ``capture.*``: failures while observing a response

Nothing is configured on import. Hosts that want JSON lines call
``configure_logging`` once; otherwise structlog's defaults apply.

Examples:
    Emit JSON lines on stderr::

        import sys
        from idempotency_engine.observability.logging import configure_logging

        configure_logging(level="INFO", json_output=True, stream=sys.stderr)

    A replayed request then logs::

        {"key": "payment-123", "method": "POST", "path": "/api/payments",
         "event": "admission.replayed", "logger": "idempotency_engine.core.engine",
         "level": "info", "component": "idempotency",
         "timestamp": "2024-01-01T00:00:00.000000Z"}
"""

import logging
import sys
from typing import Any, TextIO

import structlog
from structlog._config import BoundLoggerLazyProxy

ENGINE_EVENT_FAMILIES = ("admission.", "resource.", "capture.")


def tag_engine_events(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Add ``component="idempotency"`` to events emitted by the engine."""
    event = event_dict.get("event")
    if isinstance(event, str) and event.startswith(ENGINE_EVENT_FAMILIES):
        event_dict.setdefault("component", "idempotency")
    return event_dict


def _resolve_level(level: str | int) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {level!r}")
    return resolved


def configure_logging(
    level: str | int = "INFO",
    json_output: bool = True,
    stream: TextIO | None = None,
) -> None:
    """Route engine events through structlog.

    Args:
        level: Minimum level, as a name (``"DEBUG"``) or a logging constant.
            Bypassed admissions are logged at DEBUG.
        json_output: Render JSON lines when True, console lines otherwise
        stream: Where to write, stdout by default

    Raises:
        ValueError: If the level name is unknown
    """
    output = stream if stream is not None else sys.stdout
    if json_output:
        renderer: Any = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=output.isatty())

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            tag_engine_events,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(_resolve_level(level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=output),
    )


def get_logger(name: str) -> Any:
    """Return a lazy structlog logger that records ``name`` as ``logger``.

    The logger resolves the configuration on each ``bind``, so modules can
    create it at import time before ``configure_logging`` runs.
    """
    return BoundLoggerLazyProxy(None, initial_values={"logger": name})
