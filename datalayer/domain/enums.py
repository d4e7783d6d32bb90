"""Domain enumerations for the datalayer.

Enums represent fixed sets of domain values (error taxonomy, backend type).
"""

from enum import Enum


class _ValuesMixin:
    """Mixin that adds a values() classmethod to str Enums."""

    @classmethod
    def values(cls) -> list[str]:
        """Return all valid values as strings."""
        return [member.value for member in cls]


class ErrorKind(_ValuesMixin, str, Enum):
    """Normalized error taxonomy shared by every backend.

    Values double as the machine-readable error_code of DataSourceException.
    """

    NETWORK = "NETWORK_ERROR"
    TIMEOUT = "TIMEOUT"
    RATE_LIMITED = "RATE_LIMIT"
    AUTHENTICATION = "AUTH_ERROR"
    AUTHORIZATION = "AUTHORIZATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    VALIDATION = "VALIDATION_ERROR"
    SERIALIZATION = "SERIALIZATION_ERROR"
    GENERIC = "GENERIC_ERROR"


class DataSourceType(_ValuesMixin, str, Enum):
    """Backend a datasource talks to."""

    FIRESTORE = "firestore"
    REST = "rest"


# Transient failures; everything else (including GENERIC) is not retried.
RETRYABLE_KINDS: frozenset[ErrorKind] = frozenset(
    {ErrorKind.NETWORK, ErrorKind.TIMEOUT, ErrorKind.RATE_LIMITED}
)
