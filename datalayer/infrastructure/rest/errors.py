"""Error classification tables for HTTP backends (httpx).

HTTP_STATUS_KINDS maps response status codes to ErrorKind; transport-level
httpx errors (timeouts, connection failures) are classified separately so
any httpx-based backend (REST API, Firestore REST) can reuse them.
"""

from typing import Any

import httpx

from datalayer.domain.enums import ErrorKind

HTTP_STATUS_KINDS: dict[int, ErrorKind] = {
    400: ErrorKind.VALIDATION,
    401: ErrorKind.AUTHENTICATION,
    403: ErrorKind.AUTHORIZATION,
    404: ErrorKind.NOT_FOUND,
    408: ErrorKind.TIMEOUT,
    409: ErrorKind.CONFLICT,
    422: ErrorKind.VALIDATION,
    429: ErrorKind.RATE_LIMITED,
    502: ErrorKind.NETWORK,
    503: ErrorKind.NETWORK,
    504: ErrorKind.TIMEOUT,
}

# Body fields commonly carrying an error message, in lookup order.
_MESSAGE_FIELDS = ("message", "error", "detail", "description")


def classify_http_status(error: BaseException) -> ErrorKind | None:
    """httpx.HTTPStatusError -> kind from HTTP_STATUS_KINDS (GENERIC if unmapped)."""
    if not isinstance(error, httpx.HTTPStatusError):
        return None
    return HTTP_STATUS_KINDS.get(error.response.status_code, ErrorKind.GENERIC)


def classify_transport(error: BaseException) -> ErrorKind | None:
    """httpx timeouts -> TIMEOUT; other transport failures -> NETWORK."""
    if isinstance(error, httpx.TimeoutException):
        return ErrorKind.TIMEOUT
    if isinstance(error, httpx.TransportError):
        return ErrorKind.NETWORK
    return None


def _message_from_body(body: Any) -> str | None:
    if isinstance(body, dict):
        for field in _MESSAGE_FIELDS:
            if field in body:
                value = body[field]
                if isinstance(value, dict):
                    return _message_from_body(value) or str(value)
                return str(value)
    if body in (None, ""):
        return None
    return str(body)


def describe_http_error(error: BaseException) -> str | None:
    """Return 'HTTP <status>: <body message>' for HTTPStatusError, else None."""
    if not isinstance(error, httpx.HTTPStatusError):
        return None
    response = error.response
    try:
        body: Any = response.json()
    except ValueError:
        body = response.text
    detail = _message_from_body(body) or "No additional information"
    return f"HTTP {response.status_code}: {detail}"


HTTP_CLASSIFIERS = (classify_http_status, classify_transport)
HTTP_DESCRIBERS = (describe_http_error,)
