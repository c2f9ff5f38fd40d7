"""Resource store protocol for the idempotency engine.

This module defines the interface every storage backend must implement to
hold idempotency resources. The engine relies on exactly four operations:
lookup, atomic create, update, and idempotent delete.

Examples:
    Implementing a custom store::

        from idempotency_engine.exceptions import DuplicateKeyError, ResourceNotFoundError
        from idempotency_engine.models import IdempotencyResource

        class RedisResourceStore:
            async def find_by_key(self, key: str) -> IdempotencyResource | None:
                data = await self.redis.get(key)
                if data is None:
                    return None
                return IdempotencyResource.model_validate_json(data)

            async def create(self, resource: IdempotencyResource) -> None:
                # SET NX is the atomic create-if-absent primitive
                created = await self.redis.set(
                    resource.key, resource.model_dump_json(), nx=True
                )
                if not created:
                    raise DuplicateKeyError(resource.key)

            ...

Consistency Requirements:
    All ResourceStore implementations MUST guarantee:

    1. **Atomic create**: create() must atomically check for an existing
       resource and insert the new one. When several callers race on the
       same key exactly one succeeds; the others get DuplicateKeyError.
       This is the only serialization point of the engine.

    2. **Incarnation-safe update**: update() must fail with
       ResourceNotFoundError when the key is absent or holds a resource with
       a different lease token, so a late write never lands on a newer
       resource for the same key.

    3. **Idempotent, lease-guarded delete**: deleting an absent key is not
       an error. A delete carrying a lease token removes the resource only
       if it still holds that token, checked atomically with the removal.

    4. **Per-key consistency**: operations on one key are sequentially
       consistent; operations on different keys need not be ordered and
       must not contend.
"""

from typing import Protocol, runtime_checkable

from idempotency_engine.models import IdempotencyResource


@runtime_checkable
class ResourceStore(Protocol):
    """Protocol defining the interface for idempotency resource storage.

    All methods are async and must be safe to call concurrently from
    multiple asyncio tasks.

    Error Handling:
        create() raises DuplicateKeyError and update() raises
        ResourceNotFoundError as described above. Backend failures should be
        raised as StorageError rather than backend-specific exceptions.
    """

    async def find_by_key(self, key: str) -> IdempotencyResource | None:
        """Retrieve a resource by key.

        Args:
            key: The idempotency key to look up.

        Returns:
            The resource if found, None otherwise.
        """
        ...

    async def create(self, resource: IdempotencyResource) -> None:
        """Atomically insert a resource if its key is absent.

        Args:
            resource: The new resource.

        Raises:
            DuplicateKeyError: A resource already exists for the key.
        """
        ...

    async def update(self, resource: IdempotencyResource) -> None:
        """Replace the stored resource for the same key and lease token.

        Args:
            resource: The updated resource.

        Raises:
            ResourceNotFoundError: The key is absent or holds another incarnation.
        """
        ...

    async def delete(self, key: str, lease_token: str | None = None) -> None:
        """Delete the resource for a key. Absent keys are ignored.

        The lease check and the removal must happen as one atomic step, so
        a late cleanup can never remove a newer incarnation of the key.

        Args:
            key: The idempotency key to delete.
            lease_token: When given, delete only if the stored resource
                carries this lease token.
        """
        ...
