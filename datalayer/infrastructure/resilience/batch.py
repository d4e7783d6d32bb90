"""Result types for error-isolating wrappers (single operation and batch)."""

from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from datalayer.domain.exceptions import DataSourceException

T = TypeVar("T")


@dataclass(frozen=True)
class OperationResult(Generic[T]):
    """Outcome of one operation: data on success, error on failure."""

    data: T | None = None
    error: DataSourceException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class BatchFailure:
    """A failed batch item; index is its position in the input sequence."""

    index: int
    error: DataSourceException
    item: Any = None

    def __str__(self) -> str:
        return f"BatchFailure(index={self.index}, error={self.error.error_code}: {self.error.message})"


@dataclass
class BatchOutcome(Generic[T]):
    """Per-item results of a batch, both lists in input order.

    Every input item lands in exactly one of succeeded or failed.
    """

    succeeded: list[T] = field(default_factory=list)
    failed: list[BatchFailure] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.succeeded) + len(self.failed)

    @property
    def has_failures(self) -> bool:
        return bool(self.failed)

    @property
    def failed_indices(self) -> list[int]:
        return [failure.index for failure in self.failed]
