"""Core type definitions and models for the idempotency engine.

This module provides the data structures that make up an idempotency
resource: the immutable snapshot of the request that created it, the
snapshot of the response captured once that request completed, and the
resource itself, keyed by the caller-supplied idempotency key.

Examples:
    Creating a pending resource::

        from idempotency_engine.models import IdempotencyResource, RequestSnapshot
        from idempotency_engine.request import Request

        request = Request("POST", "/api/orders", body=b'{"sku": "A-1"}')
        resource = IdempotencyResource(
            key="order-create-abc123",
            request=RequestSnapshot.from_request(request),
            lease_token=str(uuid.uuid4()),
        )
        resource.state  # ResourceState.PENDING

    Attaching the captured response::

        response = ResponseSnapshot.build(
            status=201,
            headers={"content-type": "application/json"},
            body=b'{"id": 1}',
        )
        completed = resource.with_response(response)
        completed.state  # ResourceState.COMPLETED
"""

import base64
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from urllib.parse import parse_qs
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from idempotency_engine.request import Request
from idempotency_engine.utils.headers import normalize_headers


def _validate_b64(v: str) -> str:
    try:
        base64.b64decode(v, validate=True)
    except Exception as e:
        raise ValueError(f"Invalid base64 encoding: {e}") from e
    return v


class ResourceState(str, Enum):
    """Lifecycle state of an idempotency key.

    Attributes:
        ABSENT: No resource exists for the key.
        PENDING: A resource exists but its operation has not completed.
        COMPLETED: A resource exists with a response ready for replay.
    """

    ABSENT = "ABSENT"
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"


class RequestSnapshot(BaseModel):
    """Immutable capture of an inbound request at admission time.

    Only used to compare the intent of later requests carrying the same
    key; a snapshot is never re-executed.

    Attributes:
        method: Uppercased HTTP method.
        path: URL path, exactly as received.
        query: Parsed query parameters. Blank values are kept and the order
            of repeated values is preserved.
        headers: Request headers with lowercased names.
        body_b64: Base64-encoded request body.
    """

    method: str = Field(..., min_length=1, examples=["POST", "PUT"])
    path: str = Field(..., examples=["/api/orders"])
    query: dict[str, list[str]] = Field(
        default_factory=dict,
        examples=[{"dry_run": ["true"]}],
    )
    headers: dict[str, str] = Field(
        default_factory=dict,
        examples=[{"content-type": "application/json"}],
    )
    body_b64: str = Field(default="", examples=["eyJza3UiOiAiQS0xIn0="])

    model_config = {"frozen": True}

    @field_validator("body_b64")
    @classmethod
    def validate_base64(cls, v: str) -> str:
        return _validate_b64(v)

    @classmethod
    def from_request(cls, request: Request) -> "RequestSnapshot":
        """Snapshot a live request.

        Examples:
            >>> snapshot = RequestSnapshot.from_request(
            ...     Request("post", "/items", query_string="a=1&a=2&b=")
            ... )
            >>> snapshot.method, snapshot.query
            ('POST', {'a': ['1', '2'], 'b': ['']})
        """
        return cls(
            method=request.method.upper(),
            path=request.path,
            query=parse_qs(request.query_string, keep_blank_values=True),
            headers=normalize_headers(request.headers),
            body_b64=base64.b64encode(request.body).decode("ascii"),
        )

    def get_body_bytes(self) -> bytes:
        return base64.b64decode(self.body_b64)


class ResponseSnapshot(BaseModel):
    """Captured outcome of a completed operation.

    The body is base64-encoded so binary payloads survive any store that
    serializes resources as text.

    Attributes:
        status: HTTP status code (e.g., 200, 201, 404).
        headers: Whitelisted response headers with lowercased names.
        body_b64: Base64-encoded response body.

    Examples:
        >>> response = ResponseSnapshot(status=200, headers={}, body_b64="SGVsbG8=")
        >>> response.get_body_bytes()
        b'Hello'
    """

    status: int = Field(
        ...,
        description="HTTP status code",
        ge=100,
        le=599,
        examples=[200, 201, 404, 500],
    )
    headers: dict[str, str] = Field(
        default_factory=dict,
        description="Whitelisted response headers",
        examples=[{"content-type": "application/json"}],
    )
    body_b64: str = Field(
        default="",
        description="Base64-encoded response body",
        examples=["eyJpZCI6IDF9"],
    )

    model_config = {"frozen": True}

    @field_validator("body_b64")
    @classmethod
    def validate_base64(cls, v: str) -> str:
        return _validate_b64(v)

    @classmethod
    def build(cls, status: int, headers: dict[str, str], body: bytes) -> "ResponseSnapshot":
        """Build a snapshot from a raw body."""
        return cls(
            status=status,
            headers=headers,
            body_b64=base64.b64encode(body).decode("ascii"),
        )

    def get_body_bytes(self) -> bytes:
        """Decode and return the response body as bytes."""
        return base64.b64decode(self.body_b64)


class IdempotencyResource(BaseModel):
    """The unit of idempotency state, keyed by the idempotency key.

    A resource without a response is Pending; once the response is attached
    it is Completed and replayable until deleted. The request snapshot is
    fixed at creation and the response can be attached only once.

    Attributes:
        key: The idempotency key provided by the client.
        request: Snapshot of the request that created the resource.
        response: Captured response, None while the operation is in flight.
        lease_token: UUID identifying this incarnation of the key. A key
            that was deleted and admitted again gets a new lease token, so
            late writes from the earlier incarnation can be told apart.
        created_at: When the resource was created.
    """

    key: str = Field(
        ...,
        description="Idempotency key provided by the client",
        min_length=1,
        max_length=1024,
        examples=["payment-user123-20231215", "order-create-abc123"],
    )
    request: RequestSnapshot
    response: ResponseSnapshot | None = Field(
        default=None,
        description="Captured response (set once the operation completes)",
    )
    lease_token: str = Field(
        ...,
        description="UUID of this incarnation of the key",
        examples=["550e8400-e29b-41d4-a716-446655440000"],
    )
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    model_config = {"frozen": True}

    @field_validator("lease_token")
    @classmethod
    def validate_lease_token(cls, v: str) -> str:
        """Validate that the lease token is a valid UUID.

        Raises:
            ValueError: If the lease token is not a valid UUID.
        """
        try:
            UUID(v)
        except ValueError as e:
            raise ValueError(f"Invalid UUID format for lease_token: {e}") from e
        return v

    @property
    def state(self) -> ResourceState:
        if self.response is None:
            return ResourceState.PENDING
        return ResourceState.COMPLETED

    def with_response(self, response: ResponseSnapshot) -> "IdempotencyResource":
        """Return a completed copy of this resource.

        Raises:
            ValueError: If a response is already attached.
        """
        if self.response is not None:
            raise ValueError(f"Resource {self.key} already has a response")
        return self.model_copy(update={"response": response})

    def same_incarnation(self, other: Any) -> bool:
        return isinstance(other, IdempotencyResource) and other.lease_token == self.lease_token
