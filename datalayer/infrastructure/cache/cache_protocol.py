"""Structural interface of an in-process cache.

read_through is typed against this protocol rather than MemoryCache, so any
object with the same surface (e.g. a test double) can back it.
"""

from datetime import timedelta
from re import Pattern
from typing import Protocol, TypeVar

V = TypeVar("V")


class CacheProtocol(Protocol[V]):
    """Protocol for synchronous in-process caches used by datasources."""

    def get(self, key: str) -> V | None:
        """Return cached value, or None if missing or expired."""
        ...

    def put(self, key: str, value: V, ttl: float | timedelta | None = ...) -> None:
        """Store value; ttl in seconds or timedelta, None for no expiry."""
        ...

    def remove(self, key: str) -> None:
        """Remove key from cache (no error if absent)."""
        ...

    def contains(self, key: str) -> bool:
        """Return True if key is present and not expired."""
        ...

    def invalidate_by_pattern(self, pattern: str | Pattern[str]) -> int:
        """Remove every key matching the regex pattern; return count removed."""
        ...

    def invalidate_for_entity(self, entity_id: str) -> int:
        """Remove every key whose last segment equals entity_id."""
        ...

    def clear(self) -> None:
        """Remove all entries and stop background work."""
        ...
