"""Cache: in-process TTL cache and cache key utilities.

Used by datasources to serve repeated reads without a backend round-trip.
Key format is in keys.py (DRY).
"""

from datalayer.infrastructure.cache.cache_protocol import CacheProtocol
from datalayer.infrastructure.cache.keys import build_key, entity_key, query_key
from datalayer.infrastructure.cache.memory_cache import (
    DEFAULT_TTL,
    CacheEntry,
    CacheStats,
    MemoryCache,
    read_through,
)
from datalayer.infrastructure.cache.user_cache import UserCache

__all__ = [
    "CacheEntry",
    "CacheProtocol",
    "CacheStats",
    "DEFAULT_TTL",
    "MemoryCache",
    "build_key",
    "entity_key",
    "query_key",
    "UserCache",
    "read_through",
]
