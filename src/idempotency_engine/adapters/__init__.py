"""Transport adapters for the idempotency engine.

- asgi.py: ASGI middleware for FastAPI, Starlette, etc.

Adapters convert server-specific requests into the engine's Request and
bridge the server's response channel to a ResponseSink.
"""

from idempotency_engine.adapters.asgi import (
    IdempotencyASGIMiddleware,
    idempotency_key,
    is_replay,
)

__all__ = ["IdempotencyASGIMiddleware", "idempotency_key", "is_replay"]
