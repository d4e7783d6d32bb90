"""Retry policy and retryability table.

Delays follow min(initial_delay * backoff_multiplier ** (attempt - 1), max_delay)
for the wait after failed attempt number `attempt` (1-based).
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from typing import TYPE_CHECKING

from datalayer.core.constants import (
    DEFAULT_RETRY_BACKOFF_MULTIPLIER,
    DEFAULT_RETRY_INITIAL_DELAY_SECONDS,
    DEFAULT_RETRY_MAX_ATTEMPTS,
    DEFAULT_RETRY_MAX_DELAY_SECONDS,
)
from datalayer.domain.enums import RETRYABLE_KINDS, ErrorKind

if TYPE_CHECKING:
    from datalayer.core.config import Settings


def is_retryable(kind: ErrorKind) -> bool:
    """Return True if errors of this kind may succeed when retried."""
    return kind in RETRYABLE_KINDS


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded exponential backoff (durations in seconds)."""

    max_attempts: int = DEFAULT_RETRY_MAX_ATTEMPTS
    initial_delay: float = DEFAULT_RETRY_INITIAL_DELAY_SECONDS
    max_delay: float = DEFAULT_RETRY_MAX_DELAY_SECONDS
    backoff_multiplier: float = DEFAULT_RETRY_BACKOFF_MULTIPLIER

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.initial_delay < 0 or self.max_delay < 0:
            raise ValueError("Retry delays must not be negative")
        if self.backoff_multiplier < 1:
            raise ValueError(
                f"backoff_multiplier must be >= 1, got {self.backoff_multiplier}"
            )

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> RetryPolicy:
        """Build a policy from Settings (retry_* fields)."""
        from datalayer.core.config import get_settings

        settings = settings or get_settings()
        return cls(
            max_attempts=settings.retry_max_attempts,
            initial_delay=settings.retry_initial_delay_seconds,
            max_delay=settings.retry_max_delay_seconds,
            backoff_multiplier=settings.retry_backoff_multiplier,
        )

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after failed attempt `attempt` (1-based)."""
        if attempt < 1:
            raise ValueError(f"attempt must be >= 1, got {attempt}")
        return min(
            self.initial_delay * self.backoff_multiplier ** (attempt - 1),
            self.max_delay,
        )

    def delays(self) -> Iterator[float]:
        """Yield every wait this policy can produce (max_attempts - 1 values)."""
        for attempt in range(1, self.max_attempts):
            yield self.delay_for(attempt)
