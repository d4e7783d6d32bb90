"""Translate raw backend errors into DataSourceException.

Classification is data-driven: an ordered tuple of classifier functions,
each returning an ErrorKind or None, is tried until one matches. Backend
integrations supply their own classifiers (status-code and error-code
tables); the language-level fallback table below always runs last and
anything still unmatched becomes ErrorKind.GENERIC.
"""

from __future__ import annotations

import json
import logging
import socket
from collections.abc import Callable, Sequence
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from datalayer.domain.enums import ErrorKind
from datalayer.domain.exceptions import DataSourceException

logger = logging.getLogger(__name__)

ErrorClassifier = Callable[[BaseException], ErrorKind | None]
ErrorDescriber = Callable[[BaseException], str | None]

KIND_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.NETWORK: "Network connection failed",
    ErrorKind.TIMEOUT: "Operation timed out",
    ErrorKind.RATE_LIMITED: "Rate limit exceeded",
    ErrorKind.AUTHENTICATION: "Authentication failed",
    ErrorKind.AUTHORIZATION: "Access forbidden",
    ErrorKind.NOT_FOUND: "Resource not found",
    ErrorKind.CONFLICT: "Resource conflict",
    ErrorKind.VALIDATION: "Invalid arguments",
    ErrorKind.SERIALIZATION: "Data serialization failed",
    ErrorKind.GENERIC: "An unexpected error occurred",
}


def classify_timeout(error: BaseException) -> ErrorKind | None:
    """TimeoutError (asyncio.TimeoutError is an alias) -> TIMEOUT."""
    return ErrorKind.TIMEOUT if isinstance(error, TimeoutError) else None


def classify_connection(error: BaseException) -> ErrorKind | None:
    """ConnectionError and DNS lookup failures -> NETWORK.

    Other OSErrors (missing files, permissions) are local and fall through.
    """
    if isinstance(error, (ConnectionError, socket.gaierror, socket.herror)):
        return ErrorKind.NETWORK
    return None


def classify_serialization(error: BaseException) -> ErrorKind | None:
    """Malformed JSON or text encoding -> SERIALIZATION."""
    if isinstance(error, (json.JSONDecodeError, UnicodeError)):
        return ErrorKind.SERIALIZATION
    return None


def classify_invalid_argument(error: BaseException) -> ErrorKind | None:
    """pydantic ValidationError, ValueError, TypeError -> VALIDATION."""
    if isinstance(error, (PydanticValidationError, ValueError, TypeError)):
        return ErrorKind.VALIDATION
    return None


# Order matters: JSONDecodeError is a ValueError.
FALLBACK_CLASSIFIERS: tuple[ErrorClassifier, ...] = (
    classify_timeout,
    classify_connection,
    classify_serialization,
    classify_invalid_argument,
)


def _field_errors(error: PydanticValidationError) -> dict[str, list[str]]:
    """Group pydantic error messages by dotted field location."""
    grouped: dict[str, list[str]] = {}
    for item in error.errors():
        loc = ".".join(str(part) for part in item.get("loc", ())) or "__root__"
        grouped.setdefault(loc, []).append(item.get("msg", "invalid"))
    return grouped


class ErrorTranslator:
    """Maps raw errors to DataSourceException using ordered classifier tables."""

    def __init__(
        self,
        classifiers: Sequence[ErrorClassifier] = (),
        describers: Sequence[ErrorDescriber] = (),
    ) -> None:
        """Initialize with backend-specific tables.

        Args:
            classifiers: Backend classifiers tried before the fallback table.
            describers: Functions extracting a human-readable detail from a
                raw error (e.g. an HTTP body message); first non-empty wins.
        """
        self._classifiers = (*classifiers, *FALLBACK_CLASSIFIERS)
        self._describers = tuple(describers)

    def classify(self, error: BaseException) -> ErrorKind:
        """Return the first kind any classifier assigns, else GENERIC."""
        for classifier in self._classifiers:
            kind = classifier(error)
            if kind is not None:
                return kind
        return ErrorKind.GENERIC

    def describe(self, error: BaseException) -> str:
        for describer in self._describers:
            detail = describer(error)
            if detail:
                return detail
        return str(error) or type(error).__name__

    def translate(
        self, error: BaseException, operation: str | None = None
    ) -> DataSourceException:
        """Convert error into exactly one DataSourceException.

        Already-normalized errors pass through (gaining the operation name
        if they lack one). The raw error is kept as cause.

        Args:
            error: Raw error raised by a backend operation.
            operation: Logical operation name for diagnostics.

        Returns:
            Normalized exception (not raised).
        """
        if isinstance(error, DataSourceException):
            if operation and error.operation is None:
                return error.with_context(operation=operation)
            return error

        kind = self.classify(error)
        context: dict[str, Any] = {}
        if operation:
            context["operation"] = operation
        if isinstance(error, PydanticValidationError):
            context["validation_errors"] = _field_errors(error)
        message = f"{KIND_MESSAGES[kind]}: {self.describe(error)}"
        if kind is ErrorKind.GENERIC:
            logger.debug("Unclassified %s translated to GENERIC", type(error).__name__)
        normalized = DataSourceException(message, kind, cause=error, context=context)
        normalized.__cause__ = error
        normalized.__traceback__ = error.__traceback__
        return normalized
