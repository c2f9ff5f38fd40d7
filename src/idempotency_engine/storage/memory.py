"""In-memory resource store with asyncio concurrency control.

This module provides a volatile implementation of the ResourceStore
interface, used by default when no store is configured.

The MemoryResourceStore is suitable for:
    - Single-process applications
    - Development and testing

Resources are lost on restart and are never expired; retention is left to
whoever deletes them.

Concurrency:
    - Each idempotency key has its own asyncio.Lock
    - A global lock protects the _locks dictionary only
    - Operations on different keys never wait on each other
    - A key's lock is dropped once its resource is deleted

Examples:
    Basic usage::

        from idempotency_engine.storage.memory import MemoryResourceStore

        store = MemoryResourceStore()
        await store.create(resource)

        try:
            await store.create(resource)
        except DuplicateKeyError:
            # Only one create per key can succeed
            ...
"""

import asyncio

from idempotency_engine.exceptions import DuplicateKeyError, ResourceNotFoundError
from idempotency_engine.models import IdempotencyResource
from idempotency_engine.storage.base import ResourceStore


class MemoryResourceStore(ResourceStore):
    """In-memory resource store with per-key asyncio locks.

    Attributes:
        _store: Dictionary mapping keys to IdempotencyResource objects.
        _locks: Dictionary mapping keys to asyncio.Lock objects.
        _global_lock: Lock protecting the _locks dictionary.
    """

    def __init__(self) -> None:
        self._store: dict[str, IdempotencyResource] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._global_lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._store)

    async def _lock_for(self, key: str) -> asyncio.Lock:
        async with self._global_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = asyncio.Lock()
                self._locks[key] = lock
            return lock

    async def find_by_key(self, key: str) -> IdempotencyResource | None:
        """Retrieve a resource by key.

        Resources are immutable, so the stored object is returned as is.
        """
        return self._store.get(key)

    async def create(self, resource: IdempotencyResource) -> None:
        """Insert a resource unless its key already exists.

        Raises:
            DuplicateKeyError: A resource already exists for the key.
        """
        lock = await self._lock_for(resource.key)
        async with lock:
            if resource.key in self._store:
                raise DuplicateKeyError(resource.key)
            self._store[resource.key] = resource

    async def update(self, resource: IdempotencyResource) -> None:
        """Replace the stored resource if it is the same incarnation.

        Raises:
            ResourceNotFoundError: The key is absent or its lease token differs.
        """
        lock = await self._lock_for(resource.key)
        async with lock:
            existing = self._store.get(resource.key)
            if existing is None or not existing.same_incarnation(resource):
                raise ResourceNotFoundError(resource.key)
            self._store[resource.key] = resource

    async def delete(self, key: str, lease_token: str | None = None) -> None:
        """Delete the resource for a key, ignoring absent keys.

        With a lease token, a resource holding a different token is kept.
        """
        lock = await self._lock_for(key)
        async with lock:
            existing = self._store.get(key)
            if existing is not None and (lease_token is None or existing.lease_token == lease_token):
                del self._store[key]

        # Drop the lock unless another operation is waiting on it
        async with self._global_lock:
            if key not in self._store and not lock.locked():
                self._locks.pop(key, None)
