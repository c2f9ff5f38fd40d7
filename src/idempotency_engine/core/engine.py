"""Coordination engine for idempotent request processing.

The engine is the only component that mutates idempotency resources. For
every inbound request it:

1. Extracts the idempotency key (no key: the request bypasses everything)
2. Looks up the resource for the key
3. Decides, per the state machine, to admit, replay, or reject
4. For an admitted request, creates a Pending resource, hands downstream a
   response interceptor, and captures the outcome in a detached task that
   either completes the resource or deletes it

The engine is constructed once and passed to whatever needs it; there is
no shared global instance.

Examples:
    Using the engine directly::

        from idempotency_engine.core.engine import IdempotencyEngine
        from idempotency_engine.request import Request

        engine = IdempotencyEngine()

        async def downstream(request, sink):
            if engine.is_hit(request):
                return
            await sink.start(201, [("content-type", "application/json")])
            await sink.write(b'{"id": 1}')

        request = Request(
            "POST",
            "/api/orders",
            headers={"idempotency-key": "abc"},
            body=b'{"sku": "A-1"}',
        )
        await engine.admit(request, sink, downstream)
"""

import asyncio
import uuid
from collections.abc import Awaitable, Callable, Coroutine
from typing import Any

from idempotency_engine.config import IdempotencyConfig
from idempotency_engine.core.interceptor import NullSink, ResponseInterceptor, ResponseSink
from idempotency_engine.core.replay import build_response_snapshot, replay_response
from idempotency_engine.core.state_machine import decide
from idempotency_engine.exceptions import (
    ConflictError,
    DuplicateKeyError,
    InvalidIntentError,
    InvalidKeyError,
    ResourceNotFoundError,
    StorageError,
)
from idempotency_engine.intent import DefaultIntentComparator, IntentComparator
from idempotency_engine.models import IdempotencyResource, RequestSnapshot, ResourceState
from idempotency_engine.observability.logging import get_logger
from idempotency_engine.observability.metrics import (
    decrement_pending,
    increment_pending,
    record_admission,
    record_error_report,
    record_outcome,
)
from idempotency_engine.persistence import PersistencePolicy, SuccessfulResponsePolicy
from idempotency_engine.request import HeaderKeyExtractor, KeyExtractor, Request
from idempotency_engine.storage.base import ResourceStore
from idempotency_engine.storage.memory import MemoryResourceStore

logger = get_logger(__name__)

Downstream = Callable[[Request, ResponseSink], Awaitable[None]]


class IdempotencyEngine:
    """Coordinates idempotency resources around downstream processing.

    Attributes:
        config: Configuration object
        store: Resource store holding one resource per key
        persistence_policy: Decides whether a captured response is kept
        intent_comparator: Decides whether a request matches a resource
        key_extractor: Reads the idempotency key from a request
    """

    def __init__(
        self,
        store: ResourceStore | None = None,
        config: IdempotencyConfig | None = None,
        persistence_policy: PersistencePolicy | None = None,
        intent_comparator: IntentComparator | None = None,
        key_extractor: KeyExtractor | None = None,
    ) -> None:
        self.config = config if config is not None else IdempotencyConfig()
        self.store = store if store is not None else MemoryResourceStore()
        self.persistence_policy = (
            persistence_policy if persistence_policy is not None else SuccessfulResponsePolicy()
        )
        self.intent_comparator = (
            intent_comparator if intent_comparator is not None else DefaultIntentComparator()
        )
        self.key_extractor = (
            key_extractor
            if key_extractor is not None
            else HeaderKeyExtractor(self.config.key_header)
        )
        self._capture_tasks: set[asyncio.Task[None]] = set()

    @property
    def pending_captures(self) -> int:
        """Number of capture tasks that have not finished yet."""
        return len(self._capture_tasks)

    def extract_key(self, request: Request) -> str | None:
        """Extract the idempotency key from a request.

        A blank key counts as no key, whichever extractor produced it.

        Returns:
            The key, or None when the request carries no key

        Raises:
            InvalidKeyError: If the key exceeds the configured maximum length
        """
        key = self.key_extractor(request)
        if key is None or not key.strip():
            return None
        if len(key) > self.config.max_key_length:
            raise InvalidKeyError(
                f"Idempotency key exceeds maximum length of "
                f"{self.config.max_key_length} characters"
            )
        return key

    def is_hit(self, request: Request) -> bool:
        """Whether the request was answered from a completed resource.

        Downstream processing invoked after a replay uses this to skip
        real work.
        """
        return request.hit

    async def admit(
        self,
        request: Request,
        sink: ResponseSink,
        downstream: Downstream,
    ) -> None:
        """Run a request through idempotency handling.

        Returns once downstream processing has been invoked and returned.
        Persisting the outcome of an admitted request happens afterwards in
        a detached task that this call does not wait for.

        Args:
            request: The inbound request
            sink: Where the response to the caller is written
            downstream: Processing to run, writing its response to the sink
                it is given

        Raises:
            ConflictError: An identical request is in flight for the key
            InvalidIntentError: The key belongs to a different request
            InvalidKeyError: The key is malformed
            StorageError: The resource store failed
        """
        key = self.extract_key(request)
        if key is None:
            record_admission("bypass")
            logger.debug("admission.bypassed", method=request.method, path=request.path)
            await downstream(request, sink)
            return

        log = logger.bind(key=key)
        resource = await self._find(key, log)

        try:
            state = decide(key, resource, request, self.intent_comparator)
        except InvalidIntentError:
            record_admission("invalid_intent")
            log.warning("admission.invalid_intent", method=request.method, path=request.path)
            raise
        except ConflictError:
            record_admission("conflict")
            log.info("admission.conflict", reason="in_flight")
            raise

        if state == ResourceState.ABSENT or resource is None:
            await self._admit_new(key, request, sink, downstream, log)
        else:
            await self._replay(resource, request, sink, downstream, log)

    async def report_error(self, key: str) -> None:
        """Report that downstream processing failed for a key.

        Deletes the resource outright, whatever its capture is doing, so the
        key can be used again.

        Raises:
            StorageError: If the store fails to delete the resource
        """
        record_error_report()
        logger.info("resource.error_reported", key=key)
        try:
            await self.store.delete(key)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete resource for key {key}: {e}", cause=e) from e

    async def wait_until_idle(self) -> None:
        """Wait for every pending capture task to finish.

        Intended for graceful shutdown; admission never calls it.
        """
        while self._capture_tasks:
            await asyncio.gather(*self._capture_tasks, return_exceptions=True)

    async def _find(self, key: str, log: Any) -> IdempotencyResource | None:
        try:
            return await self.store.find_by_key(key)
        except Exception as e:
            record_admission("storage_error")
            log.error("admission.storage_failed", operation="find", error=str(e))
            if isinstance(e, StorageError):
                raise
            raise StorageError(f"Failed to look up key {key}: {e}", cause=e) from e

    async def _replay(
        self,
        resource: IdempotencyResource,
        request: Request,
        sink: ResponseSink,
        downstream: Downstream,
        log: Any,
    ) -> None:
        request.hit = True
        record_admission("replay")
        log.info("admission.replayed", method=request.method, path=request.path)
        await replay_response(resource, sink)

        if not self.config.invoke_downstream_on_hit:
            return
        try:
            await downstream(request, NullSink())
        except Exception as e:
            # The caller already has the replayed response
            log.error("admission.hit_downstream_failed", error=str(e), error_type=type(e).__name__)

    async def _admit_new(
        self,
        key: str,
        request: Request,
        sink: ResponseSink,
        downstream: Downstream,
        log: Any,
    ) -> None:
        resource = IdempotencyResource(
            key=key,
            request=RequestSnapshot.from_request(request),
            lease_token=str(uuid.uuid4()),
        )

        try:
            await self.store.create(resource)
        except DuplicateKeyError as e:
            # Another request created the key between our lookup and create
            record_admission("conflict")
            log.info("admission.conflict", reason="create_race")
            raise ConflictError(
                message=f"A concurrent request created key {key} first",
                key=key,
            ) from e
        except Exception as e:
            record_admission("storage_error")
            log.error("admission.storage_failed", operation="create", error=str(e))
            await self._discard_quietly(resource, log)
            if isinstance(e, StorageError):
                raise
            raise StorageError(f"Failed to create resource for key {key}: {e}", cause=e) from e

        record_admission("admitted")
        increment_pending()
        log.info("admission.admitted", method=request.method, path=request.path)

        interceptor = ResponseInterceptor(sink)
        self._spawn(self._capture_outcome(resource, interceptor))

        try:
            await downstream(request, interceptor)
        except BaseException as e:
            interceptor.abort("downstream processing raised", e)
            raise

        if not interceptor.done:
            interceptor.abort("downstream processing returned without completing the response")

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.create_task(coro)
        self._capture_tasks.add(task)
        task.add_done_callback(self._capture_tasks.discard)

    async def _capture_outcome(
        self,
        resource: IdempotencyResource,
        interceptor: ResponseInterceptor,
    ) -> None:
        """Complete or delete a Pending resource once its response is observed.

        Runs detached from the admission call. Failures are logged and
        counted, never raised, and release the key.
        """
        log = logger.bind(key=resource.key)
        try:
            observed = await interceptor.outcome()
            snapshot = build_response_snapshot(observed, self.config.response_header_whitelist)

            if self.persistence_policy.should_persist(snapshot):
                await self.store.update(resource.with_response(snapshot))
                record_outcome("persisted")
                log.info("resource.completed", status=snapshot.status)
            else:
                await self._discard(resource)
                record_outcome("discarded")
                log.info("resource.discarded", status=snapshot.status)

        except ResourceNotFoundError:
            # Deleted by an error report, possibly re-created since
            record_outcome("superseded")
            log.info("resource.superseded")

        except Exception as e:
            record_outcome("capture_failed")
            log.error("capture.failed", error=str(e), error_type=type(e).__name__)
            await self._discard_quietly(resource, log)

        finally:
            decrement_pending()

    async def _discard(self, resource: IdempotencyResource) -> None:
        """Delete a resource unless its key now belongs to a newer incarnation."""
        await self.store.delete(resource.key, lease_token=resource.lease_token)

    async def _discard_quietly(self, resource: IdempotencyResource, log: Any) -> None:
        try:
            await self._discard(resource)
        except Exception as e:
            log.error("resource.cleanup_failed", error=str(e), error_type=type(e).__name__)
