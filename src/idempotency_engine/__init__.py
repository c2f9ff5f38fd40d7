"""
Request-level idempotency for request/response pipelines.

A client-supplied idempotency key makes an operation run at most once:
concurrent duplicates are rejected, key reuse for a different request is
rejected, and the response of a completed operation is replayed verbatim.
"""

from idempotency_engine.config import IdempotencyConfig
from idempotency_engine.core.engine import IdempotencyEngine
from idempotency_engine.exceptions import (
    ConflictError,
    IdempotencyError,
    InvalidIntentError,
    InvalidKeyError,
    StorageError,
)
from idempotency_engine.request import Request

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "ConflictError",
    "IdempotencyConfig",
    "IdempotencyEngine",
    "IdempotencyError",
    "InvalidIntentError",
    "InvalidKeyError",
    "Request",
    "StorageError",
]
