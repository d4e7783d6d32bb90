"""Minimal async Firestore REST v1 client (no firebase-admin).

Covers what the user datasource needs: single-document get/set/create/delete,
single-filter structured queries and COUNT aggregation. Access tokens come
from a google-auth service account; HTTP goes through httpx.AsyncClient.
Non-2xx responses raise FirestoreError with the google.rpc status name
(e.g. 'PERMISSION_DENIED') so the Firestore classifier table can map it.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any

import httpx

from datalayer.infrastructure.firebase._rest_encoding import (
    decode_document,
    decode_value,
    encode_document,
    encode_value,
)

FIRESTORE_API = "https://firestore.googleapis.com/v1"
DATASTORE_SCOPE = "https://www.googleapis.com/auth/datastore"

# Status assumed when an error response carries no google.rpc body.
_STATUS_BY_HTTP: dict[int, str] = {
    400: "INVALID_ARGUMENT",
    401: "UNAUTHENTICATED",
    403: "PERMISSION_DENIED",
    404: "NOT_FOUND",
    409: "ALREADY_EXISTS",
    429: "RESOURCE_EXHAUSTED",
    499: "CANCELLED",
    500: "INTERNAL",
    503: "UNAVAILABLE",
    504: "DEADLINE_EXCEEDED",
}

_FILTER_OPS: dict[str, str] = {
    "==": "EQUAL",
    "!=": "NOT_EQUAL",
    "<": "LESS_THAN",
    "<=": "LESS_THAN_OR_EQUAL",
    ">": "GREATER_THAN",
    ">=": "GREATER_THAN_OR_EQUAL",
    "in": "IN",
    "not-in": "NOT_IN",
    "array-contains": "ARRAY_CONTAINS",
    "array-contains-any": "ARRAY_CONTAINS_ANY",
}


def _get_credentials(key_dict: dict):
    """Service account credentials scoped for Firestore."""
    from google.oauth2 import service_account

    return service_account.Credentials.from_service_account_info(
        key_dict, scopes=[DATASTORE_SCOPE]
    )


def _refresh_token(credentials) -> str:
    """Blocking: refresh the credentials when needed and return the token."""
    from google.auth.transport.requests import Request

    if not credentials.valid:
        credentials.refresh(Request())
    return credentials.token


class FirestoreError(Exception):
    """A Firestore REST call failed; status is the google.rpc status name."""

    def __init__(self, status: str, message: str, http_status: int) -> None:
        self.status = status
        self.message = message
        self.http_status = http_status
        super().__init__(f"{status}: {message}")

    @classmethod
    def from_response(cls, response: httpx.Response) -> FirestoreError:
        """Read {'error': {'status', 'message'}} (or a one-item list of it)."""
        status = _STATUS_BY_HTTP.get(response.status_code, "UNKNOWN")
        message = response.reason_phrase or f"HTTP {response.status_code}"
        try:
            payload = response.json()
        except ValueError:
            payload = None
        if isinstance(payload, list) and payload:
            payload = payload[0]
        error = payload.get("error") if isinstance(payload, dict) else None
        if isinstance(error, dict):
            status = error.get("status") or status
            message = error.get("message") or message
        return cls(status, message, response.status_code)


@dataclass(frozen=True)
class DocumentSnapshot:
    id: str
    data: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return self.data

    @classmethod
    def from_document(cls, document: dict) -> DocumentSnapshot:
        """Build from a REST Document; the ID is the last segment of its name."""
        return cls(document.get("name", "").rsplit("/", 1)[-1], decode_document(document))


class DocumentReference:
    def __init__(self, client: FirestoreRESTClient, path: str) -> None:
        self._client = client
        self._path = path

    @property
    def id(self) -> str:
        return self._path.rsplit("/", 1)[-1]

    async def get(self) -> DocumentSnapshot | None:
        """Fetch the document, or None when it does not exist."""
        try:
            document = await self._client.request("GET", self._path)
        except FirestoreError as e:
            if e.status == "NOT_FOUND":
                return None
            raise
        return DocumentSnapshot(self.id, decode_document(document))

    async def set(self, data: dict[str, Any]) -> None:
        """Write the full document, creating it if missing."""
        await self._client.request("PATCH", self._path, body=encode_document(data))

    async def delete(self) -> None:
        await self._client.request("DELETE", self._path)


class Query:
    """Structured query over one collection with at most one field filter."""

    def __init__(self, client: FirestoreRESTClient, collection_id: str) -> None:
        self._client = client
        self._collection_id = collection_id
        self._filter: dict[str, Any] | None = None
        self._order: list[dict[str, Any]] = []
        self._offset = 0
        self._limit: int | None = None

    def where(self, field: str, op: str, value: Any) -> Query:
        """Filter on field; op is one of '==', '<', 'array-contains', ...

        Raises:
            ValueError: If op is not a supported operator.
        """
        operator = _FILTER_OPS.get(op)
        if operator is None:
            raise ValueError(f"Unsupported filter operator: {op!r}")
        self._filter = {
            "fieldFilter": {
                "field": {"fieldPath": field},
                "op": operator,
                "value": encode_value(value),
            }
        }
        return self

    def order_by(self, field: str, direction: str = "ASCENDING") -> Query:
        self._order.append({"field": {"fieldPath": field}, "direction": direction})
        return self

    def offset(self, n: int) -> Query:
        self._offset = n
        return self

    def limit(self, n: int | None) -> Query:
        """Cap the result size; None means unbounded."""
        self._limit = n
        return self

    def structured_query(self) -> dict[str, Any]:
        query: dict[str, Any] = {"from": [{"collectionId": self._collection_id}]}
        if self._filter is not None:
            query["where"] = self._filter
        if self._order:
            query["orderBy"] = list(self._order)
        if self._offset:
            query["offset"] = self._offset
        if self._limit is not None:
            query["limit"] = self._limit
        return query

    async def stream(self) -> AsyncIterator[DocumentSnapshot]:
        """Run the query (runQuery) and yield matching documents in order."""
        rows = await self._client.request(
            "POST",
            f"{self._client.root}:runQuery",
            body={"structuredQuery": self.structured_query()},
        )
        for row in rows if isinstance(rows, list) else [rows]:
            document = row.get("document")
            if document:
                yield DocumentSnapshot.from_document(document)

    async def count(self) -> int:
        """Count matches server-side (runAggregationQuery, COUNT aggregation)."""
        query = self.structured_query()
        query.pop("orderBy", None)
        rows = await self._client.request(
            "POST",
            f"{self._client.root}:runAggregationQuery",
            body={
                "structuredAggregationQuery": {
                    "structuredQuery": query,
                    "aggregations": [{"alias": "total", "count": {}}],
                }
            },
        )
        for row in rows if isinstance(rows, list) else [rows]:
            total = row.get("result", {}).get("aggregateFields", {}).get("total")
            if total is not None:
                return int(decode_value(total))
        return 0


class CollectionReference:
    def __init__(self, client: FirestoreRESTClient, collection_id: str) -> None:
        self._client = client
        self._id = collection_id
        self._path = f"{client.root}/{collection_id}"

    @property
    def id(self) -> str:
        return self._id

    def document(self, document_id: str) -> DocumentReference:
        return DocumentReference(self._client, f"{self._path}/{document_id}")

    async def create(self, document_id: str, data: dict[str, Any]) -> None:
        """Create a document under a chosen ID.

        Raises:
            FirestoreError: ALREADY_EXISTS if the ID is taken.
        """
        await self._client.request(
            "POST", self._path, params={"documentId": document_id}, body=encode_document(data)
        )

    def query(self) -> Query:
        return Query(self._client, self._id)

    def where(self, field: str, op: str, value: Any) -> Query:
        return self.query().where(field, op, value)

    async def count(self) -> int:
        return await self.query().count()


class FirestoreRESTClient:
    """Firestore client for one project's default database."""

    def __init__(
        self,
        project_id: str,
        credentials,
        *,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ) -> None:
        """Initialize the client.

        Args:
            project_id: Google Cloud project ID.
            credentials: google-auth credentials (see _get_credentials).
            http_client: Optional shared client; not closed by aclose().
            timeout: Request timeout in seconds for an owned client.
        """
        self._project_id = project_id
        self._credentials = credentials
        self._root = f"projects/{project_id}/databases/(default)/documents"
        self._http = http_client if http_client is not None else httpx.AsyncClient(timeout=timeout)
        self._owns_http = http_client is None

    @property
    def project_id(self) -> str:
        return self._project_id

    @property
    def root(self) -> str:
        """Resource name of the database's document root."""
        return self._root

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def get_token(self) -> str:
        """Return a valid access token; a refresh runs in a worker thread."""
        return await asyncio.to_thread(_refresh_token, self._credentials)

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, str] | None = None,
        body: dict[str, Any] | None = None,
    ) -> Any:
        """Call FIRESTORE_API/<path> and return the decoded JSON ({} if empty).

        Raises:
            FirestoreError: On any non-2xx response.
        """
        token = await self.get_token()
        response = await self._http.request(
            method,
            f"{FIRESTORE_API}/{path}",
            params=params,
            json=body,
            headers={"Authorization": f"Bearer {token}"},
        )
        if not response.is_success:
            raise FirestoreError.from_response(response)
        return response.json() if response.content else {}

    def collection(self, collection_id: str) -> CollectionReference:
        return CollectionReference(self, collection_id)
