"""Error classification table for Firestore (google.rpc status codes)."""

from datalayer.domain.enums import ErrorKind
from datalayer.infrastructure.firebase._rest_client import FirestoreError
from datalayer.infrastructure.rest.errors import classify_transport

FIRESTORE_STATUS_KINDS: dict[str, ErrorKind] = {
    "PERMISSION_DENIED": ErrorKind.AUTHORIZATION,
    "UNAUTHENTICATED": ErrorKind.AUTHENTICATION,
    "NOT_FOUND": ErrorKind.NOT_FOUND,
    "ALREADY_EXISTS": ErrorKind.CONFLICT,
    "ABORTED": ErrorKind.CONFLICT,
    "INVALID_ARGUMENT": ErrorKind.VALIDATION,
    "FAILED_PRECONDITION": ErrorKind.VALIDATION,
    "OUT_OF_RANGE": ErrorKind.VALIDATION,
    "UNAVAILABLE": ErrorKind.NETWORK,
    "DEADLINE_EXCEEDED": ErrorKind.TIMEOUT,
    "CANCELLED": ErrorKind.TIMEOUT,
    "RESOURCE_EXHAUSTED": ErrorKind.RATE_LIMITED,
    "INTERNAL": ErrorKind.GENERIC,
    "UNKNOWN": ErrorKind.GENERIC,
}


def classify_firestore_status(error: BaseException) -> ErrorKind | None:
    """FirestoreError -> kind from FIRESTORE_STATUS_KINDS (GENERIC if unmapped)."""
    if not isinstance(error, FirestoreError):
        return None
    return FIRESTORE_STATUS_KINDS.get(error.status, ErrorKind.GENERIC)


def describe_firestore_error(error: BaseException) -> str | None:
    if not isinstance(error, FirestoreError):
        return None
    return f"Firestore {error.status}: {error.message}"


FIRESTORE_CLASSIFIERS = (classify_firestore_status, classify_transport)
FIRESTORE_DESCRIBERS = (describe_firestore_error,)
