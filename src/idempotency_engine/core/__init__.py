"""Core coordination logic for idempotency handling.

This package contains the transport-neutral heart of the engine:
- State machine: decisions for keyed requests (ABSENT -> PENDING -> COMPLETED)
- Interceptor: observing a response while it is delivered
- Replay: capturing a response into a snapshot and writing it back out
- Engine: admission, outcome persistence and error reporting

Transport adapters wrap the engine for a specific server interface.
"""

from idempotency_engine.core.engine import Downstream, IdempotencyEngine
from idempotency_engine.core.interceptor import (
    NullSink,
    ObservedResponse,
    ResponseInterceptor,
    ResponseSink,
)
from idempotency_engine.core.replay import build_response_snapshot, replay_response

__all__ = [
    "Downstream",
    "IdempotencyEngine",
    "NullSink",
    "ObservedResponse",
    "ResponseInterceptor",
    "ResponseSink",
    "build_response_snapshot",
    "replay_response",
]
