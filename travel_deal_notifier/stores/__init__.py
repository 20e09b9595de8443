"""
Persistence layer for the travel deal notifier.

A key-value store with TTLs holds preferences, delivery history, digest
queues and daily counters. Redis backs production deployments; the
in-memory store serves tests and single-process runs.
"""

from ..interfaces import IKeyValueStore
from ..models.config import StoreConfig
from .memory_store import MemoryStore
from .notification_store import NotificationStore
from .preference_store import PreferenceStore
from .redis_store import RedisStore


def create_store(config: StoreConfig) -> IKeyValueStore:
    """Build the key-value store selected by configuration."""
    config.validate()
    if config.backend == "redis":
        return RedisStore(url=config.redis_url)
    return MemoryStore()


__all__ = [
    "MemoryStore",
    "RedisStore",
    "PreferenceStore",
    "NotificationStore",
    "create_store",
]
