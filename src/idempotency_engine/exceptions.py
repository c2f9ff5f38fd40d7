"""Custom exceptions for the idempotency engine.

This module defines the exception hierarchy used to signal admission
rejections (conflict, invalid intent, malformed key), resource store
failures, and failures while capturing a downstream response.

Examples:
    Translating admission rejections::

        from idempotency_engine.exceptions import ConflictError, InvalidIntentError

        try:
            await engine.admit(request, sink, downstream)
        except ConflictError:
            # Same key, same request, still in flight
            return Response(status_code=409)
        except InvalidIntentError:
            # Same key reused for a different request
            return Response(status_code=417)

    Handling a storage error::

        from idempotency_engine.exceptions import StorageError

        try:
            await engine.admit(request, sink, downstream)
        except StorageError as e:
            logger.error("Resource store failure", error=str(e))
            return Response(status_code=503)
"""


class IdempotencyError(Exception):
    """Base exception for all idempotency-related errors.

    Attributes:
        message: Human-readable error description.
    """

    def __init__(self, message: str) -> None:
        """Initialize the exception with a message.

        Args:
            message: Human-readable error description.
        """
        self.message = message
        super().__init__(message)


class ConflictError(IdempotencyError):
    """An identical request is already in flight for this key.

    Raised when a resource exists in the Pending state and the incoming
    request matches its intent, or when the store's atomic create lost a
    race against a concurrent request. The caller should retry later.

    Attributes:
        message: Human-readable error description.
        key: The idempotency key in conflict.
    """

    def __init__(self, message: str, key: str) -> None:
        super().__init__(message)
        self.key = key


class InvalidIntentError(IdempotencyError):
    """The key is being reused for a semantically different request.

    Raised whenever a resource exists (Pending or Completed) and the intent
    comparator rejects the incoming request. Not retryable as-is: the
    client must fix its request or use a fresh key.

    Attributes:
        message: Human-readable error description.
        key: The misused idempotency key.
    """

    def __init__(self, message: str, key: str) -> None:
        super().__init__(message)
        self.key = key


class InvalidKeyError(IdempotencyError):
    """The idempotency key supplied by the caller is malformed."""


class ResponseCaptureError(IdempotencyError):
    """The downstream response could not be observed to completion."""


class StorageError(IdempotencyError):
    """Resource store operation failed.

    Attributes:
        message: Human-readable error description.
        cause: The underlying exception that caused the storage error.

    Examples:
        Wrapping a backend failure::

            try:
                await redis.get(key)
            except RedisError as e:
                raise StorageError(
                    message=f"Failed to retrieve key from Redis: {e}",
                    cause=e,
                ) from e
    """

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        """Initialize the storage error with details.

        Args:
            message: Human-readable error description.
            cause: The underlying exception that caused the storage error.
        """
        super().__init__(message)
        self.cause = cause


class DuplicateKeyError(StorageError):
    """The store already holds a resource for this key.

    Raised by ``ResourceStore.create`` when the atomic insert loses a race.

    Attributes:
        key: The idempotency key that already exists.
    """

    def __init__(self, key: str) -> None:
        super().__init__(f"Resource already exists for key {key}")
        self.key = key


class ResourceNotFoundError(StorageError):
    """The resource to update no longer exists in the store.

    Also raised when the stored resource belongs to a different incarnation
    of the key (its lease token differs).

    Attributes:
        key: The idempotency key that was not found.
    """

    def __init__(self, key: str) -> None:
        super().__init__(f"No resource found for key {key}")
        self.key = key
