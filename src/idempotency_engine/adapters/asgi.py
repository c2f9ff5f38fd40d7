"""ASGI middleware adapter for FastAPI and Starlette applications.

This module wraps the transport-neutral engine as Starlette middleware.

The middleware:
1. Converts the Starlette request to the internal Request format
2. Runs it through the engine, with the rest of the application as
   downstream processing writing into a buffered response sink
3. Converts the buffered response, or an engine rejection, back to a
   Starlette Response: 409 Conflict, 417 Expectation Failed (key reused for
   another request), 400 Bad Request (malformed key), 503 Service
   Unavailable (store failure)

The hit flag and the key are stored on ``request.state``; endpoints read
them through ``is_replay()`` and ``idempotency_key()``.

Examples:
    FastAPI integration::

        from fastapi import FastAPI, Request
        from idempotency_engine.adapters.asgi import IdempotencyASGIMiddleware, is_replay
        from idempotency_engine.core.engine import IdempotencyEngine

        app = FastAPI()
        engine = IdempotencyEngine()
        app.add_middleware(IdempotencyASGIMiddleware, engine=engine)

        @app.post("/api/payments")
        async def create_payment(request: Request):
            if is_replay(request):
                # The stored response was already sent
                return None
            return {"status": "success"}

    Reporting a failure from an endpoint::

        @app.post("/api/transfers")
        async def create_transfer(request: Request):
            try:
                return await transfer_funds()
            except TransferRejected:
                key = idempotency_key(request)
                if key is not None:
                    await engine.report_error(key)
                raise
"""

from collections.abc import Awaitable, Callable
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request as StarletteRequest
from starlette.responses import PlainTextResponse, Response

from idempotency_engine.config import IdempotencyConfig
from idempotency_engine.core.engine import IdempotencyEngine
from idempotency_engine.core.interceptor import ResponseSink
from idempotency_engine.exceptions import (
    ConflictError,
    IdempotencyError,
    InvalidIntentError,
    InvalidKeyError,
    StorageError,
)
from idempotency_engine.request import Request


def is_replay(request: StarletteRequest) -> bool:
    """Whether the stored response was replayed for this request."""
    return bool(getattr(request.state, "idempotency_hit", False))


def idempotency_key(request: StarletteRequest) -> str | None:
    """The idempotency key of this request, if it carried one."""
    return getattr(request.state, "idempotency_key", None)


class BufferedResponseSink:
    """ResponseSink that collects a response for the middleware to return.

    Attributes:
        status: Status code, None until the response starts
        headers: Response headers as (name, value) pairs
        chunks: Body chunks in write order
    """

    def __init__(self) -> None:
        self.status: int | None = None
        self.headers: list[tuple[str, str]] = []
        self.chunks: list[bytes] = []

    async def start(self, status: int, headers: list[tuple[str, str]]) -> None:
        self.status = status
        self.headers = list(headers)

    async def write(self, body: bytes, more_body: bool = False) -> None:
        self.chunks.append(bytes(body))

    @property
    def body(self) -> bytes:
        return b"".join(self.chunks)


class IdempotencyASGIMiddleware(BaseHTTPMiddleware):
    """ASGI middleware for idempotency handling.

    Attributes:
        engine: The coordination engine
    """

    def __init__(
        self,
        app: Any,
        engine: IdempotencyEngine | None = None,
        config: IdempotencyConfig | None = None,
    ) -> None:
        """Initialize the ASGI middleware.

        Args:
            app: The ASGI application
            engine: Engine to use. Pass the same instance to any code that
                needs to report errors for a key.
            config: Configuration for a default engine, ignored when an
                engine is given
        """
        super().__init__(app)
        self.engine = engine if engine is not None else IdempotencyEngine(config=config)

    async def dispatch(
        self,
        request: StarletteRequest,
        call_next: Callable[[StarletteRequest], Awaitable[Response]],
    ) -> Response:
        """Process a request with idempotency handling.

        Args:
            request: The Starlette request object
            call_next: Function to call the next middleware/handler

        Returns:
            The application's response, a replayed response, or an error
            response for a rejected request
        """
        internal_request = await self._convert_request(request)

        try:
            key = self.engine.extract_key(internal_request)
        except InvalidKeyError as e:
            return self._error_response(400, e, None)

        request.state.idempotency_key = key
        request.state.idempotency_hit = False
        sink = BufferedResponseSink()

        async def handler(req: Request, response_sink: ResponseSink) -> None:
            request.state.idempotency_hit = self.engine.is_hit(req)
            response = await call_next(request)

            headers = [
                (name.decode("latin-1"), value.decode("latin-1"))
                for name, value in response.raw_headers
            ]
            await response_sink.start(response.status_code, headers)
            async for chunk in response.body_iterator:
                if isinstance(chunk, str):
                    chunk = chunk.encode(response.charset)
                await response_sink.write(bytes(chunk), more_body=True)
            await response_sink.write(b"", more_body=False)

        try:
            await self.engine.admit(internal_request, sink, handler)
        except ConflictError as e:
            return self._error_response(409, e, key)
        except InvalidIntentError as e:
            return self._error_response(417, e, key)
        except InvalidKeyError as e:
            return self._error_response(400, e, key)
        except StorageError as e:
            return self._error_response(503, e, key)

        return self._convert_response(sink, key)

    async def _convert_request(self, request: StarletteRequest) -> Request:
        """Convert a Starlette request to the internal Request format.

        Repeated headers are joined with commas.
        """
        body = await request.body()

        headers: dict[str, str] = {}
        for name, value in request.headers.items():
            headers[name] = f"{headers[name]},{value}" if name in headers else value

        return Request(
            method=request.method,
            path=request.url.path,
            query_string=request.url.query or "",
            headers=headers,
            body=body,
        )

    def _convert_response(self, sink: BufferedResponseSink, key: str | None) -> Response:
        """Build the Starlette Response from what the engine wrote to the sink."""
        if sink.status is None:
            raise RuntimeError("Downstream application produced no response")

        response = Response(content=sink.body, status_code=sink.status)
        # Content-Length was computed for the body above
        response.raw_headers.extend(
            (name.lower().encode("latin-1"), value.encode("latin-1"))
            for name, value in sink.headers
            if name.lower() != "content-length"
        )
        self._echo_key(response, key)
        return response

    def _error_response(self, status_code: int, error: IdempotencyError, key: str | None) -> Response:
        response = PlainTextResponse(error.message, status_code=status_code)
        self._echo_key(response, key)
        return response

    def _echo_key(self, response: Response, key: str | None) -> None:
        if key is not None and self.engine.config.echo_key_header:
            response.headers[self.engine.config.key_header] = key
