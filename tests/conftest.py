"""Pytest configuration and shared fixtures for datalayer.

Time is simulated: caches take a FakeClock and error handlers a RecordingSleep,
so no test waits on wall-clock time.
"""

from datetime import datetime, timezone

import pytest

from datalayer.core.config import get_settings
from datalayer.domain.entities.user import UserEntity
from datalayer.infrastructure.cache.memory_cache import MemoryCache
from datalayer.infrastructure.resilience.retry import RetryPolicy

CREATED_AT = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Monotonic clock advanced manually."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Async sleep replacement that records requested delays and returns at once."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def make_user(user_id: str = "u1", email: str | None = None, **overrides) -> UserEntity:
    """Build a valid UserEntity with sensible defaults."""
    fields = {
        "id": user_id,
        "email": email or f"{user_id or 'new'}@example.com",
        "created_at": CREATED_AT,
        "updated_at": CREATED_AT,
        "display_name": f"User {user_id}",
    }
    fields.update(overrides)
    return UserEntity(**fields)


@pytest.fixture(autouse=True)
def _clear_settings_cache():
    """Isolate tests from each other's environment overrides."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(name="make_user")
def make_user_fixture():
    """Factory fixture: make_user(user_id, email=None, **overrides) -> UserEntity."""
    return make_user


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def fast_policy() -> RetryPolicy:
    """Three attempts, 0.5s doubling (no real waiting with RecordingSleep)."""
    return RetryPolicy(max_attempts=3, initial_delay=0.5, max_delay=30.0, backoff_multiplier=2.0)


@pytest.fixture
async def cache(clock: FakeClock):
    """MemoryCache(max_size=10, default_ttl=300s) on the fake clock; closed after the test."""
    c: MemoryCache = MemoryCache(
        max_size=10, default_ttl=300.0, cleanup_interval=60.0, clock=clock, name="test"
    )
    yield c
    await c.aclose()
