"""Resilience: error translation, retry/backoff, and batch error isolation."""

from datalayer.infrastructure.resilience.batch import (
    BatchFailure,
    BatchOutcome,
    OperationResult,
)
from datalayer.infrastructure.resilience.error_handler import ErrorHandler
from datalayer.infrastructure.resilience.retry import (
    RETRYABLE_KINDS,
    RetryPolicy,
    is_retryable,
)
from datalayer.infrastructure.resilience.translator import (
    FALLBACK_CLASSIFIERS,
    ErrorClassifier,
    ErrorTranslator,
)

__all__ = [
    "BatchFailure",
    "BatchOutcome",
    "ErrorClassifier",
    "ErrorHandler",
    "ErrorTranslator",
    "FALLBACK_CLASSIFIERS",
    "OperationResult",
    "RETRYABLE_KINDS",
    "RetryPolicy",
    "is_retryable",
]
