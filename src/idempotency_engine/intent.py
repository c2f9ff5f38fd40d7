"""Intent comparison for idempotency keys.

When a request arrives with a key that already has a resource, the engine
asks an intent comparator whether the request is the same logical operation
as the one that created the resource. A mismatch means the key is being
misused and the request is rejected, whatever the state of the resource.

The default comparator checks the request target, method, query parameters
and body. Headers are ignored because they commonly vary between retries
(tracing identifiers, dates, auth token refreshes).
"""

import json
from typing import Any, Protocol, runtime_checkable
from urllib.parse import parse_qs

from idempotency_engine.models import RequestSnapshot
from idempotency_engine.request import Request


@runtime_checkable
class IntentComparator(Protocol):
    """Decides whether a request matches the one that created a resource."""

    def matches(self, original: RequestSnapshot, current: Request) -> bool:
        """Return True when ``current`` is the same logical request as ``original``.

        Args:
            original: Snapshot of the request that created the resource.
            current: The request being admitted.
        """
        ...


class DefaultIntentComparator:
    """Structural equality on path, method, query parameters and body.

    - Path: exact match.
    - Method: case-insensitive match.
    - Query: parsed parameters compared as a mapping, so parameter order
      does not matter but the order of repeated values does.
    - Body: JSON bodies are compared as decoded values, so whitespace and
      object key order are irrelevant; any other body is compared byte for
      byte.

    Examples:
        >>> comparator = DefaultIntentComparator()
        >>> original = RequestSnapshot.from_request(
        ...     Request("POST", "/orders", body=b'{"a": 1, "b": 2}')
        ... )
        >>> comparator.matches(original, Request("POST", "/orders", body=b'{"b":2,"a":1}'))
        True
        >>> comparator.matches(original, Request("POST", "/refunds", body=b'{"a": 1, "b": 2}'))
        False
    """

    def matches(self, original: RequestSnapshot, current: Request) -> bool:
        if current.path != original.path:
            return False
        if current.method.upper() != original.method.upper():
            return False
        if parse_qs(current.query_string, keep_blank_values=True) != original.query:
            return False
        return _structural_body(current.body) == _structural_body(original.get_body_bytes())


def _structural_body(body: bytes) -> Any:
    """Decode a body into a value suitable for structural comparison.

    Args:
        body: Raw request body

    Returns:
        None for an empty body, ("json", value) for a JSON body,
        ("raw", bytes) otherwise
    """
    if not body or not body.strip():
        return None
    try:
        # Tag decoded JSON so the string "x" never equals the raw bytes b'"x"'
        return ("json", json.loads(body))
    except ValueError:
        return ("raw", body)
