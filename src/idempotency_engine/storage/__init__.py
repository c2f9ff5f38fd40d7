"""Resource stores for the idempotency engine.

All stores implement the ResourceStore protocol defined in base.py.

Available Stores:
    - MemoryResourceStore: Volatile in-memory storage with asyncio locks
"""

from idempotency_engine.storage.base import ResourceStore
from idempotency_engine.storage.memory import MemoryResourceStore

__all__ = [
    "ResourceStore",
    "MemoryResourceStore",
]
