"""Response interception for admitted operations.

Downstream processing writes its response through a ``ResponseSink``. For an
admitted operation the engine hands downstream a ``ResponseInterceptor``
instead of the caller's sink: every write goes to the caller's sink first,
unchanged, and an immutable copy is recorded on the side. When the final
body chunk has been delivered the recorded response is published, exactly
once, to whoever awaits ``outcome()``.

The interceptor never delays delivery. Capture is observed by a separate
task, so the caller gets its response while the engine persists it.

Examples:
    Wrapping a sink::

        interceptor = ResponseInterceptor(sink)

        await interceptor.start(201, [("content-type", "application/json")])
        await interceptor.write(b'{"id": 1}')

        observed = await interceptor.outcome()
        observed.status  # 201
        observed.body    # b'{"id": 1}'
"""

import asyncio
from typing import Protocol, runtime_checkable

from idempotency_engine.exceptions import ResponseCaptureError


@runtime_checkable
class ResponseSink(Protocol):
    """Destination of a response produced by downstream processing.

    A response is one ``start`` followed by one or more ``write`` calls,
    the last of which has ``more_body=False``.
    """

    async def start(self, status: int, headers: list[tuple[str, str]]) -> None:
        ...

    async def write(self, body: bytes, more_body: bool = False) -> None:
        ...


class ObservedResponse:
    """Immutable copy of a response as it was delivered to the caller.

    Attributes:
        status: HTTP status code
        headers: Response headers as (name, value) pairs, in wire order
        body: Complete response body
    """

    __slots__ = ("status", "headers", "body")

    def __init__(self, status: int, headers: tuple[tuple[str, str], ...], body: bytes) -> None:
        self.status = status
        self.headers = headers
        self.body = body

    def __repr__(self) -> str:
        return f"ObservedResponse(status={self.status}, body_size={len(self.body)})"


class NullSink:
    """Sink that discards everything written to it.

    Handed to downstream processing when it runs after a replay, so that a
    handler ignoring the hit flag cannot write a second response.
    """

    async def start(self, status: int, headers: list[tuple[str, str]]) -> None:
        return None

    async def write(self, body: bytes, more_body: bool = False) -> None:
        return None


class ResponseInterceptor:
    """Sink decorator that delivers a response and records a copy of it.

    Must be created inside a running event loop.

    Attributes:
        sink: The caller's sink every write is forwarded to
    """

    def __init__(self, sink: ResponseSink) -> None:
        self.sink = sink
        self._status: int | None = None
        self._headers: tuple[tuple[str, str], ...] = ()
        self._chunks: list[bytes] = []
        self._outcome: asyncio.Future[ObservedResponse] = (
            asyncio.get_running_loop().create_future()
        )

    @property
    def done(self) -> bool:
        """True once the outcome is settled, either observed or aborted."""
        return self._outcome.done()

    async def start(self, status: int, headers: list[tuple[str, str]]) -> None:
        try:
            await self.sink.start(status, headers)
        except Exception as e:
            self.abort("response start could not be delivered", e)
            raise
        if self._status is not None:
            self.abort("response started twice")
            return
        self._status = status
        self._headers = tuple((str(name), str(value)) for name, value in headers)

    async def write(self, body: bytes, more_body: bool = False) -> None:
        try:
            await self.sink.write(body, more_body)
        except Exception as e:
            self.abort("response body could not be delivered", e)
            raise
        if self.done:
            return
        if self._status is None:
            self.abort("response body written before response start")
            return
        self._chunks.append(bytes(body))
        if not more_body:
            self._outcome.set_result(
                ObservedResponse(
                    status=self._status,
                    headers=self._headers,
                    body=b"".join(self._chunks),
                )
            )

    def abort(self, reason: str, cause: BaseException | None = None) -> None:
        """Give up on observing the response.

        Has no effect once the outcome is settled.

        Args:
            reason: Why the response cannot be observed
            cause: The exception that interrupted delivery, if any
        """
        if self.done:
            return
        error = ResponseCaptureError(f"Response capture aborted: {reason}")
        error.__cause__ = cause
        self._outcome.set_exception(error)

    async def outcome(self) -> ObservedResponse:
        """Wait for the response to be fully delivered.

        Raises:
            ResponseCaptureError: If the capture was aborted.
        """
        return await self._outcome
