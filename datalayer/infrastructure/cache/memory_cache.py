"""In-process cache with TTL expiry, size-bounded eviction and pattern invalidation.

Each datasource owns one MemoryCache. Reads expire entries lazily; a
background sweep (an asyncio task armed on the first write inside a running
event loop) removes expired entries periodically. The entry map and the
sweep handle are guarded by a re-entrant lock so the cache is also safe to
use from worker threads.

Pattern invalidation takes a regular expression; callers should keep to
literal segments plus '.*' and avoid patterns prone to catastrophic
backtracking.
"""

from __future__ import annotations

import asyncio
import heapq
import logging
import math
import re
import threading
import time
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta
from re import Pattern
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from datalayer.core.constants import (
    CACHE_KEY_SEP,
    DEFAULT_CACHE_CLEANUP_INTERVAL_SECONDS,
    DEFAULT_CACHE_EVICTION_FRACTION,
    DEFAULT_CACHE_MAX_SIZE,
    DEFAULT_CACHE_TTL_SECONDS,
)
from datalayer.shared.utils.datetime import utc_now

if TYPE_CHECKING:
    from datalayer.core.config import Settings
    from datalayer.infrastructure.cache.cache_protocol import CacheProtocol

logger = logging.getLogger(__name__)

V = TypeVar("V")

# Sentinel: "use the cache's default TTL". None means "never expires".
DEFAULT_TTL: Any = object()


def _to_seconds(ttl: float | timedelta | None) -> float | None:
    if ttl is None:
        return None
    if isinstance(ttl, timedelta):
        return ttl.total_seconds()
    return float(ttl)


@dataclass(frozen=True)
class CacheEntry(Generic[V]):
    """A cached value with its creation time and optional TTL (seconds)."""

    value: V
    stored_at: float
    ttl: float | None = None

    def is_expired(self, now: float) -> bool:
        """Expired iff a TTL is set and now >= stored_at + ttl."""
        return self.ttl is not None and now >= self.stored_at + self.ttl


@dataclass(frozen=True)
class CacheStats:
    """Point-in-time snapshot of cache occupancy (diagnostics only)."""

    total_entries: int
    expired_entries: int
    valid_entries: int
    max_size: int
    last_cleanup: datetime | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_entries": self.total_entries,
            "expired_entries": self.expired_entries,
            "valid_entries": self.valid_entries,
            "max_size": self.max_size,
            "last_cleanup": self.last_cleanup.isoformat() if self.last_cleanup else None,
        }


class MemoryCache(Generic[V]):
    """Bounded, expiring key/value cache for a single datasource instance.

    When a put would exceed max_size, the eviction_batch_size oldest entries
    (by storage time, ties broken by insertion order) are removed in one
    pass. The default batch is 10% of capacity, at least one entry.

    Call dispose() (or await aclose()) before discarding the owner so the
    background sweep is not left running.
    """

    def __init__(
        self,
        *,
        max_size: int = DEFAULT_CACHE_MAX_SIZE,
        default_ttl: float | timedelta | None = DEFAULT_CACHE_TTL_SECONDS,
        cleanup_interval: float | timedelta = DEFAULT_CACHE_CLEANUP_INTERVAL_SECONDS,
        eviction_batch_size: int | None = None,
        clock: Callable[[], float] = time.monotonic,
        name: str = "cache",
    ) -> None:
        """Initialize an empty cache.

        Args:
            max_size: Hard cap on entry count (>= 1).
            default_ttl: TTL applied when put() is called without one;
                None means entries never expire by default.
            cleanup_interval: Cadence of the background sweep (> 0).
            eviction_batch_size: Entries removed per eviction pass; defaults
                to ceil(max_size * 0.1).
            clock: Monotonic time source in seconds (injectable for tests).
            name: Label used in logs and the sweep task name.

        Raises:
            ValueError: If max_size, cleanup_interval or eviction_batch_size
                is out of range.
        """
        if max_size < 1:
            raise ValueError(f"max_size must be >= 1, got {max_size}")
        interval = _to_seconds(cleanup_interval)
        if interval is None or interval <= 0:
            raise ValueError(f"cleanup_interval must be positive, got {cleanup_interval!r}")
        if eviction_batch_size is None:
            eviction_batch_size = max(
                1, math.ceil(max_size * DEFAULT_CACHE_EVICTION_FRACTION)
            )
        elif eviction_batch_size < 1:
            raise ValueError(
                f"eviction_batch_size must be >= 1, got {eviction_batch_size}"
            )

        self.name = name
        self._max_size = max_size
        self._default_ttl = _to_seconds(default_ttl)
        self._cleanup_interval = interval
        self._eviction_batch_size = eviction_batch_size
        self._clock = clock
        self._entries: dict[str, CacheEntry[V]] = {}
        self._lock = threading.RLock()
        self._cleanup_task: asyncio.Task[None] | None = None
        self._last_cleanup: datetime | None = None

    @classmethod
    def from_settings(
        cls, settings: Settings | None = None, **overrides: Any
    ) -> MemoryCache[Any]:
        """Build a cache from Settings (cache_* fields); keyword overrides win."""
        from datalayer.core.config import get_settings

        settings = settings or get_settings()
        kwargs: dict[str, Any] = {
            "max_size": settings.cache_max_size,
            "default_ttl": settings.cache_default_ttl_seconds,
            "cleanup_interval": settings.cache_cleanup_interval_seconds,
            "eviction_batch_size": max(
                1, math.ceil(settings.cache_max_size * settings.cache_eviction_fraction)
            ),
        }
        kwargs.update(overrides)
        return cls(**kwargs)

    @property
    def max_size(self) -> int:
        return self._max_size

    @property
    def default_ttl(self) -> float | None:
        return self._default_ttl

    @property
    def eviction_batch_size(self) -> int:
        return self._eviction_batch_size

    @property
    def size(self) -> int:
        """Number of stored entries, expired ones included until swept."""
        return len(self._entries)

    def __len__(self) -> int:
        return self.size

    @property
    def is_cleanup_running(self) -> bool:
        task = self._cleanup_task
        return task is not None and not task.done()

    def _live_entry(self, key: str) -> CacheEntry[V] | None:
        """Return the entry for key, dropping it if expired. Caller holds the lock."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired(self._clock()):
            del self._entries[key]
            logger.debug("Cache EXPIRED: %s", key)
            return None
        return entry

    def get(self, key: str) -> V | None:
        """Return the cached value, or None if absent or expired.

        An expired entry is removed as a side effect.
        """
        with self._lock:
            entry = self._live_entry(key)
        if entry is None:
            logger.debug("Cache MISS: %s", key)
            return None
        logger.debug("Cache HIT: %s", key)
        return entry.value

    def contains(self, key: str) -> bool:
        """Return True if key is present and not expired."""
        with self._lock:
            return self._live_entry(key) is not None

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.contains(key)

    def put(
        self,
        key: str,
        value: V,
        ttl: float | timedelta | None = DEFAULT_TTL,
    ) -> None:
        """Insert or replace the entry for key, stamped with the current time.

        Args:
            key: Cache key (any string, including '').
            value: Value to cache.
            ttl: Seconds or timedelta; None for no expiry; omitted for the
                cache default. Zero or negative makes the entry expire on
                the next read.
        """
        ttl_seconds = self._default_ttl if ttl is DEFAULT_TTL else _to_seconds(ttl)
        with self._lock:
            if key in self._entries:
                # Re-insert so insertion order tracks the latest write.
                del self._entries[key]
            elif len(self._entries) >= self._max_size:
                self._evict_oldest()
            self._entries[key] = CacheEntry(value, self._clock(), ttl_seconds)
            self._ensure_cleanup_task()
        logger.debug("Cache SET: %s (TTL: %ss)", key, ttl_seconds)

    def pre_warm(
        self,
        data: Mapping[str, V],
        ttl: float | timedelta | None = DEFAULT_TTL,
    ) -> None:
        """Store every key/value in data with the same TTL."""
        for key, value in data.items():
            self.put(key, value, ttl)

    def remove(self, key: str) -> None:
        """Delete key; no error if absent."""
        with self._lock:
            removed = self._entries.pop(key, None)
        if removed is not None:
            logger.debug("Cache DELETE: %s", key)

    def clear(self) -> None:
        """Remove all entries and stop the background sweep."""
        with self._lock:
            self._entries.clear()
            self._stop_cleanup_task()
        logger.debug("Cache CLEARED: %s", self.name)

    def dispose(self) -> None:
        """Release the cache (clear + stop sweep). Safe to call repeatedly."""
        self.clear()

    async def aclose(self) -> None:
        """Dispose and wait for the sweep task to finish cancelling.

        Call this from the loop that armed the sweep; dispose() from any other
        context only requests the cancellation.
        """
        with self._lock:
            task = self._cleanup_task
        self.dispose()
        if task is None or task.get_loop() is not asyncio.get_running_loop():
            return
        try:
            await task
        except asyncio.CancelledError:
            pass

    def invalidate_by_pattern(self, pattern: str | Pattern[str]) -> int:
        """Remove every key matched (re.search) by pattern.

        Args:
            pattern: Regex string or compiled pattern.

        Returns:
            Number of entries removed (0 is not an error).

        Raises:
            re.error: If pattern is not a valid regular expression.
        """
        regex = re.compile(pattern) if isinstance(pattern, str) else pattern
        with self._lock:
            matched = [key for key in self._entries if regex.search(key)]
            for key in matched:
                del self._entries[key]
        if matched:
            logger.debug("Cache INVALIDATE: %s (%s keys)", regex.pattern, len(matched))
        return len(matched)

    def invalidate_for_entity(self, entity_id: str) -> int:
        """Remove every key whose last colon-delimited segment is entity_id.

        Covers the 'operation:id' key shape. entity_id is matched literally.
        """
        sep = re.escape(CACHE_KEY_SEP)
        return self.invalidate_by_pattern(f".*{sep}{re.escape(entity_id)}$")

    def sweep_expired(self) -> int:
        """Remove every currently expired entry; return how many were removed."""
        with self._lock:
            now = self._clock()
            expired = [k for k, e in self._entries.items() if e.is_expired(now)]
            for key in expired:
                del self._entries[key]
            self._last_cleanup = utc_now()
        if expired:
            logger.debug("Cache SWEEP: %s removed %s expired entries", self.name, len(expired))
        return len(expired)

    def stats(self) -> CacheStats:
        """Scan all entries and classify each as expired or valid right now."""
        with self._lock:
            now = self._clock()
            total = len(self._entries)
            expired = sum(1 for e in self._entries.values() if e.is_expired(now))
            last_cleanup = self._last_cleanup
        return CacheStats(
            total_entries=total,
            expired_entries=expired,
            valid_entries=total - expired,
            max_size=self._max_size,
            last_cleanup=last_cleanup,
        )

    def _evict_oldest(self) -> None:
        """Remove the eviction_batch_size oldest entries. Caller holds the lock."""
        oldest = heapq.nsmallest(
            self._eviction_batch_size,
            self._entries.items(),
            key=lambda item: item[1].stored_at,
        )
        for key, _ in oldest:
            del self._entries[key]
        logger.info(
            "Cache EVICT: %s removed %s oldest entries (max_size=%s)",
            self.name,
            len(oldest),
            self._max_size,
        )

    def _ensure_cleanup_task(self) -> None:
        """Arm the periodic sweep if not running. Caller holds the lock.

        Without a running event loop in this thread nothing is scheduled;
        expired entries are then only dropped lazily on read.
        """
        if self.is_cleanup_running:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._cleanup_task = loop.create_task(
            self._cleanup_loop(), name=f"{self.name}-cleanup"
        )

    def _stop_cleanup_task(self) -> None:
        """Drop and cancel the sweep task. Caller holds the lock.

        The reference is always dropped, so is_cleanup_running is False on
        return. The task itself only finishes once its loop runs again;
        await aclose() on the owning loop to wait for it. A closed loop has
        nothing left to cancel.
        """
        task, self._cleanup_task = self._cleanup_task, None
        if task is None or task.done():
            return
        loop = task.get_loop()
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if loop.is_closed():
            return
        if running is loop or not loop.is_running():
            # Nothing else is driving this loop, so cancel in place; the
            # CancelledError is delivered the next time the loop runs.
            task.cancel()
        else:
            loop.call_soon_threadsafe(task.cancel)

    async def _cleanup_loop(self) -> None:
        while True:
            await asyncio.sleep(self._cleanup_interval)
            self.sweep_expired()
            with self._lock:
                if not self._entries:
                    # Re-armed by the next put().
                    self._cleanup_task = None
                    return


async def read_through(
    cache: CacheProtocol[V],
    key: str,
    load: Callable[[], Awaitable[V | None]],
    ttl: float | timedelta | None = DEFAULT_TTL,
) -> V | None:
    """Return the cached value for key, or load and cache it on a miss.

    None results are not cached. Concurrent misses for the same key each
    call load() (no request coalescing).
    """
    cached_value = cache.get(key)
    if cached_value is not None:
        return cached_value
    value = await load()
    if value is not None:
        if ttl is DEFAULT_TTL:
            cache.put(key, value)
        else:
            cache.put(key, value, ttl)
    return value
