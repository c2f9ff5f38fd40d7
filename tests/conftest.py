"""
Pytest configuration and shared fixtures for idempotency_engine tests.
"""

import asyncio
from collections.abc import Callable

import pytest

from idempotency_engine.core.engine import IdempotencyEngine
from idempotency_engine.request import Request
from idempotency_engine.storage.memory import MemoryResourceStore


class RecordingSink:
    """ResponseSink that records what the caller would receive."""

    def __init__(self) -> None:
        self.status: int | None = None
        self.headers: list[tuple[str, str]] = []
        self.chunks: list[bytes] = []
        self.finished = False

    async def start(self, status: int, headers: list[tuple[str, str]]) -> None:
        self.status = status
        self.headers = list(headers)

    async def write(self, body: bytes, more_body: bool = False) -> None:
        self.chunks.append(body)
        self.finished = not more_body

    @property
    def body(self) -> bytes:
        return b"".join(self.chunks)


class CountingDownstream:
    """Downstream processing that counts how often it does real work."""

    def __init__(
        self,
        status: int = 201,
        body: bytes = b'{"id":1}',
        headers: list[tuple[str, str]] | None = None,
        delay: float = 0.0,
    ) -> None:
        self.status = status
        self.body = body
        self.headers = headers if headers is not None else [("content-type", "application/json")]
        self.delay = delay
        self.calls = 0
        self.hits = 0

    @property
    def executions(self) -> int:
        return self.calls - self.hits

    async def __call__(self, request: Request, sink) -> None:
        self.calls += 1
        if request.hit:
            self.hits += 1
            return
        if self.delay:
            await asyncio.sleep(self.delay)
        await sink.start(self.status, self.headers)
        await sink.write(self.body)


@pytest.fixture
def sample_idempotency_key() -> str:
    """Provide a sample idempotency key for tests."""
    return "test-key-12345"


@pytest.fixture
def sample_request_body() -> bytes:
    """Provide a sample request body for tests."""
    return b'{"sku": "A-1", "quantity": 2}'


@pytest.fixture
def store() -> MemoryResourceStore:
    """Create a fresh memory store for each test."""
    return MemoryResourceStore()


@pytest.fixture
def engine(store: MemoryResourceStore) -> IdempotencyEngine:
    """Create an engine with default collaborators over the test store."""
    return IdempotencyEngine(store=store)


@pytest.fixture
def sink_factory() -> type[RecordingSink]:
    return RecordingSink


@pytest.fixture
def downstream_factory() -> type[CountingDownstream]:
    return CountingDownstream


@pytest.fixture
def make_request(sample_request_body: bytes) -> Callable[..., Request]:
    """Build keyed requests; pass key=None for an unkeyed one."""

    def _make(
        key: str | None = "abc",
        method: str = "POST",
        path: str = "/api/orders",
        body: bytes | None = None,
        query_string: str = "",
        headers: dict[str, str] | None = None,
    ) -> Request:
        request_headers = dict(headers or {})
        if key is not None:
            request_headers["Idempotency-Key"] = key
        return Request(
            method=method,
            path=path,
            query_string=query_string,
            headers=request_headers,
            body=sample_request_body if body is None else body,
        )

    return _make
