"""Domain exceptions for the datalayer.

DataSourceException is the one normalized error type callers observe. The
resilience layer translates every raw backend error into it; datasources
raise the specialised subclasses directly for business-rule failures.
"""

from collections.abc import Mapping
from types import MappingProxyType
from typing import Any

from datalayer.domain.enums import RETRYABLE_KINDS, ErrorKind


class DataSourceException(Exception):
    """Base exception for all datasource errors (normalized error).

    Presentation or calling code maps these using kind, message and context.
    Instances are not mutated after construction; with_context() returns a
    new instance.

    Attributes:
        message: Human-readable error description.
        kind: ErrorKind classification.
        error_code: Machine-readable code; defaults to kind.value.
        cause: Original raw error, if this was translated from one.
        context: Read-only mapping of extra context (e.g. operation, field errors).
        retryable: True for transient kinds (see RETRYABLE_KINDS).
    """

    def __init__(
        self,
        message: str,
        kind: ErrorKind = ErrorKind.GENERIC,
        *,
        cause: BaseException | None = None,
        context: Mapping[str, Any] | None = None,
        error_code: str | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error description.
            kind: Normalized error kind (default GENERIC).
            cause: Optional raw error that was translated.
            context: Optional extra context; copied on construction.
            error_code: Optional machine-readable code; defaults to kind.value.
        """
        self.message = message
        self.kind = kind
        self.error_code = error_code or kind.value
        self.cause = cause
        self._context = dict(context or {})
        super().__init__(self.message)

    @property
    def context(self) -> Mapping[str, Any]:
        return MappingProxyType(self._context)

    @property
    def operation(self) -> str | None:
        """Logical operation being attempted when the error occurred."""
        return self._context.get("operation")

    @property
    def retryable(self) -> bool:
        return self.kind in RETRYABLE_KINDS

    def with_context(self, **extra: Any) -> "DataSourceException":
        """Return a copy of this exception with extra context merged in.

        The copy keeps the concrete class and every attribute of the
        original (including subclass fields such as validation_errors).
        """
        clone = type(self).__new__(type(self))
        clone.__dict__.update(self.__dict__)
        clone.args = self.args
        clone._context = {**self._context, **extra}
        clone.__cause__ = self.__cause__
        clone.__traceback__ = self.__traceback__
        return clone

    def to_dict(self) -> dict[str, Any]:
        """Serialize for logs or API responses."""
        return {
            "error": self.error_code,
            "message": self.message,
            "details": dict(self._context),
        }

    def __str__(self) -> str:
        parts = [f"{self.message} (Code: {self.error_code})"]
        if self.cause is not None:
            parts.append(f"Original error: {self.cause!r}")
        if self._context:
            parts.append(f"Context: {self._context}")
        return "\n".join(parts)


class EntityNotFoundException(DataSourceException):
    """Raised when a required entity does not exist in the backend."""

    def __init__(
        self,
        entity_type: str,
        identifier: str,
        cause: BaseException | None = None,
    ) -> None:
        """Initialize with entity type and the identifier that was searched for.

        Args:
            entity_type: Type of entity (e.g. 'User').
            identifier: The ID (or other key) that was not found.
            cause: Optional raw error.
        """
        self.entity_type = entity_type
        self.identifier = identifier
        super().__init__(
            f'{entity_type} with identifier "{identifier}" was not found',
            ErrorKind.NOT_FOUND,
            cause=cause,
            context={"entity_type": entity_type, "identifier": identifier},
            error_code="ENTITY_NOT_FOUND",
        )


class EntityAlreadyExistsException(DataSourceException):
    """Raised when creating an entity whose identifier is already taken."""

    def __init__(
        self,
        entity_type: str,
        identifier: str,
        cause: BaseException | None = None,
    ) -> None:
        self.entity_type = entity_type
        self.identifier = identifier
        super().__init__(
            f'{entity_type} with identifier "{identifier}" already exists',
            ErrorKind.CONFLICT,
            cause=cause,
            context={"entity_type": entity_type, "identifier": identifier},
            error_code="ENTITY_ALREADY_EXISTS",
        )


class ValidationException(DataSourceException):
    """Raised when input fails validation; carries field-level errors."""

    def __init__(
        self,
        validation_errors: Mapping[str, list[str]],
        message: str = "Validation failed",
        cause: BaseException | None = None,
    ) -> None:
        """Initialize with a mapping of field name to error messages.

        Args:
            validation_errors: Field name -> list of error messages.
            message: Human-readable summary.
            cause: Optional raw error.
        """
        self.validation_errors = {k: list(v) for k, v in validation_errors.items()}
        super().__init__(
            message,
            ErrorKind.VALIDATION,
            cause=cause,
            context={"validation_errors": self.validation_errors},
        )

    @classmethod
    def single_field(
        cls, field: str, error: str, cause: BaseException | None = None
    ) -> "ValidationException":
        """Build a ValidationException for one failing field."""
        return cls({field: [error]}, message=f"Invalid {field}: {error}", cause=cause)


class SerializationException(DataSourceException):
    """Raised when a payload cannot be decoded into (or encoded from) an entity."""

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message, ErrorKind.SERIALIZATION, cause=cause)
