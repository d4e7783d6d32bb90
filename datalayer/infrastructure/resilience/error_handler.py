"""Resilience wrappers: retry with backoff, result capture, batch isolation.

A datasource holds one ErrorHandler (configured with its backend's
classifier tables) and routes every backend call through it, so callers
above the datasource only ever see DataSourceException.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, TypeVar

from datalayer.domain.exceptions import DataSourceException
from datalayer.infrastructure.resilience.batch import (
    BatchFailure,
    BatchOutcome,
    OperationResult,
)
from datalayer.infrastructure.resilience.retry import RetryPolicy, is_retryable
from datalayer.infrastructure.resilience.translator import ErrorTranslator
from datalayer.shared.telemetry.tracing import (
    add_span_attributes,
    add_span_event,
    start_span,
    traced,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

Operation = Callable[[], Awaitable[T]]
RetryPredicate = Callable[[DataSourceException], bool]
ErrorCallback = Callable[[str, str, dict[str, Any]], None]


def _operation_name(operation: Callable[..., Any], operation_name: str | None) -> str:
    """Name recorded on errors: the explicit one, else the callable's __name__."""
    return operation_name or getattr(operation, "__name__", "operation")


class ErrorHandler:
    """Translates backend errors and wraps async operations with retry policy.

    Retry state per call: Attempting(n) -> Success, or Failed when n reaches
    max_attempts or the error is not retryable, otherwise Waiting ->
    Attempting(n + 1). Waiting is the only suspension point; it is an
    asyncio sleep and suspends only the calling task.
    """

    def __init__(
        self,
        translator: ErrorTranslator | None = None,
        default_policy: RetryPolicy | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        """Initialize the handler.

        Args:
            translator: Translator with backend classifier tables; defaults
                to fallback-only classification.
            default_policy: Policy used when with_retry gets none.
            sleep: Awaitable delay function (injectable for tests).
        """
        self.translator = translator or ErrorTranslator()
        self.default_policy = default_policy or RetryPolicy()
        self._sleep = sleep

    def translate(
        self, error: BaseException, operation: str | None = None
    ) -> DataSourceException:
        """Convert a raw error into DataSourceException (see ErrorTranslator)."""
        return self.translator.translate(error, operation)

    @staticmethod
    def is_retryable(error: DataSourceException) -> bool:
        return is_retryable(error.kind)

    async def with_retry(
        self,
        operation: Operation[T],
        policy: RetryPolicy | None = None,
        *,
        should_retry: RetryPredicate | None = None,
        operation_name: str | None = None,
    ) -> T:
        """Run operation, retrying transient failures with exponential backoff.

        Args:
            operation: Zero-argument coroutine function to call per attempt.
            policy: Retry policy; defaults to the handler's default_policy.
            should_retry: Optional override of the retryability decision.
            operation_name: Logical operation name recorded on errors and spans.

        Returns:
            The operation's result.

        Raises:
            DataSourceException: On a non-retryable failure (immediately) or
                when max_attempts is exhausted.
        """
        policy = policy or self.default_policy
        name = _operation_name(operation, operation_name)
        attempt = 1
        with start_span(
            f"datasource.{name}", {"retry.max_attempts": policy.max_attempts}
        ):
            while True:
                try:
                    result = await operation()
                except Exception as exc:
                    error = self.translate(exc, name)
                    wants_retry = (
                        should_retry(error) if should_retry else is_retryable(error.kind)
                    )
                    if not wants_retry or attempt >= policy.max_attempts:
                        add_span_attributes(**{"retry.attempts": attempt})
                        if wants_retry:
                            logger.error(
                                "%s failed after %s attempts: %s",
                                name,
                                attempt,
                                error.error_code,
                            )
                        else:
                            logger.info(
                                "%s failed with non-retryable %s", name, error.error_code
                            )
                        if error is exc:
                            raise
                        raise error from exc
                    delay = policy.delay_for(attempt)
                    logger.warning(
                        "%s attempt %s/%s failed (%s); retrying in %.2fs",
                        name,
                        attempt,
                        policy.max_attempts,
                        error.error_code,
                        delay,
                    )
                    add_span_event(
                        "retry",
                        {"attempt": attempt, "kind": error.error_code, "delay": delay},
                    )
                    await self._sleep(delay)
                    attempt += 1
                else:
                    add_span_attributes(**{"retry.attempts": attempt})
                    return result

    async def with_error_handling(
        self,
        operation: Operation[T],
        operation_name: str | None = None,
    ) -> OperationResult[T]:
        """Run operation once; return its data or the translated error."""
        try:
            return OperationResult(data=await operation())
        except Exception as exc:
            return OperationResult(
                error=self.translate(exc, _operation_name(operation, operation_name))
            )

    @traced("datasource.batch")
    async def with_batch_error_handling(
        self,
        operations: Sequence[Operation[T]],
        operation_name: str | None = None,
        items: Sequence[Any] | None = None,
    ) -> BatchOutcome[T]:
        """Run each operation independently, in order, never aborting the batch.

        Args:
            operations: Zero-argument coroutine functions.
            operation_name: Logical operation name recorded on errors.
            items: Optional input items aligned with operations; the failing
                item is attached to its BatchFailure.

        Returns:
            BatchOutcome with successes and (index, error) failures.
        """
        name = operation_name or "batch"
        outcome: BatchOutcome[T] = BatchOutcome()
        for index, operation in enumerate(operations):
            try:
                outcome.succeeded.append(await operation())
            except Exception as exc:
                error = self.translate(exc, name)
                item = items[index] if items is not None else None
                outcome.failed.append(BatchFailure(index=index, error=error, item=item))
        if outcome.failed:
            logger.warning(
                "%s: %s of %s batch items failed (indices %s)",
                name,
                len(outcome.failed),
                outcome.total,
                outcome.failed_indices,
            )
        return outcome

    async def safe_execute(
        self,
        operation: Operation[T],
        operation_name: str | None = None,
        on_error: ErrorCallback | None = None,
    ) -> T | None:
        """Run operation; on failure log it, notify on_error, and return None."""
        try:
            return await operation()
        except Exception as exc:
            name = _operation_name(operation, operation_name)
            error = self.translate(exc, name)
            logger.warning("Operation failed: %s (%s)", name, error.error_code)
            if on_error is not None:
                on_error(
                    "error",
                    f"Operation failed: {name}",
                    {"error": error.message, "code": error.error_code},
                )
            return None
