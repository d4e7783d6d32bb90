"""REST API user datasource (implements IUserDatasource).

Talks JSON over an httpx.AsyncClient to '<base_url>/<users_endpoint>'.
Every call runs through the ErrorHandler (HTTP classifier tables, retry
with backoff) and reads are served from the in-process cache when fresh.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime
from functools import partial
from typing import Any
from urllib.parse import quote

import httpx

from datalayer.core.constants import DEFAULT_HTTP_TIMEOUT_SECONDS, DEFAULT_USERS_ENDPOINT
from datalayer.domain.entities.user import UserEntity
from datalayer.domain.exceptions import EntityNotFoundException, SerializationException
from datalayer.infrastructure.cache.memory_cache import MemoryCache
from datalayer.infrastructure.cache.user_cache import (
    KEY_COUNT,
    OP_GET_ALL,
    OP_SEARCH_USERS,
    UserCache,
    email_key,
    list_key,
    role_key,
    user_key,
)
from datalayer.infrastructure.resilience.batch import BatchOutcome
from datalayer.infrastructure.resilience.error_handler import ErrorHandler
from datalayer.infrastructure.resilience.translator import ErrorTranslator
from datalayer.infrastructure.rest.errors import HTTP_CLASSIFIERS, HTTP_DESCRIBERS

logger = logging.getLogger(__name__)

_ENTITY_TYPE = "User"


def _is_status(error: httpx.HTTPStatusError, status_code: int) -> bool:
    return error.response.status_code == status_code


def _users_from_body(body: Any) -> list[UserEntity]:
    """Accept either a bare JSON array or {'users': [...]}."""
    items = body.get("users") if isinstance(body, dict) else body
    if not isinstance(items, list):
        raise SerializationException(
            f"Expected a list of users, got {type(items).__name__}"
        )
    return [UserEntity.from_dict(item) for item in items]


def _json_value(value: Any) -> Any:
    return value.isoformat() if isinstance(value, datetime) else value


class RestUserDatasource:
    """User datasource backed by a REST API."""

    def __init__(
        self,
        base_url: str,
        *,
        users_endpoint: str = DEFAULT_USERS_ENDPOINT,
        http_client: httpx.AsyncClient | None = None,
        api_key: str | None = None,
        timeout: float = DEFAULT_HTTP_TIMEOUT_SECONDS,
        cache: MemoryCache[Any] | None = None,
        error_handler: ErrorHandler | None = None,
    ) -> None:
        """Initialize the datasource.

        Args:
            base_url: API root, e.g. 'https://api.example.com/v1' (trailing
                slash ignored).
            users_endpoint: Path of the users collection under base_url.
            http_client: Optional shared client; not closed by close().
            api_key: Optional bearer token sent on every request.
            timeout: Request timeout in seconds for an owned client.
            cache: Cache to use; a default MemoryCache if omitted.
            error_handler: Handler to use; HTTP classifier tables if omitted.
        """
        self._users_url = f"{base_url.rstrip('/')}/{users_endpoint.strip('/')}"
        self._headers = {"Accept": "application/json"}
        if api_key:
            self._headers["Authorization"] = f"Bearer {api_key}"
        self._http = http_client if http_client is not None else httpx.AsyncClient(timeout=timeout)
        self._owns_http = http_client is None
        self._cache = UserCache(cache if cache is not None else MemoryCache(name="users.rest"))
        self._errors = error_handler or ErrorHandler(
            ErrorTranslator(HTTP_CLASSIFIERS, HTTP_DESCRIBERS)
        )

    @property
    def users_url(self) -> str:
        return self._users_url

    @property
    def cache(self) -> MemoryCache[Any]:
        return self._cache.cache

    async def _request(
        self,
        method: str,
        *segments: str,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> httpx.Response:
        """Send a request to users_url/<segments...>; raise on non-2xx status."""
        url = "/".join([self._users_url, *(quote(s, safe="") for s in segments)])
        if params is not None:
            params = {k: v for k, v in params.items() if v is not None}
        response = await self._http.request(
            method, url, params=params, json=json, headers=self._headers
        )
        response.raise_for_status()
        return response

    async def _send_user(
        self, method: str, user_id: str, *segments: str, json: Any = None
    ) -> UserEntity:
        """Mutating call that returns the user; 404 -> EntityNotFoundException."""
        try:
            response = await self._request(method, user_id, *segments, json=json)
        except httpx.HTTPStatusError as e:
            if _is_status(e, 404):
                raise EntityNotFoundException(_ENTITY_TYPE, user_id, cause=e) from e
            raise
        return UserEntity.from_dict(response.json())

    async def _mutate(
        self,
        operation_name: str,
        method: str,
        user_id: str,
        *segments: str,
        json: Any = None,
    ) -> UserEntity:
        user_key(user_id)
        user = await self._errors.with_retry(
            partial(self._send_user, method, user_id, *segments, json=json),
            operation_name=operation_name,
        )
        self._cache.on_written(user)
        return user

    # CRUD

    async def create(self, entity: UserEntity) -> UserEntity:
        """POST the user; the API assigns the ID when entity.id is empty."""
        payload = entity.to_json()
        if not entity.id:
            payload.pop("id")

        async def _create() -> UserEntity:
            response = await self._request("POST", json=payload)
            return UserEntity.from_dict(response.json())

        created = await self._errors.with_retry(_create, operation_name="create")
        self._cache.on_written(created)
        logger.info("Created user %s", created.id)
        return created

    async def get_by_id(self, user_id: str) -> UserEntity | None:
        cached = self._cache.get_user(user_id)
        if cached is not None:
            return cached

        async def _get() -> UserEntity | None:
            try:
                response = await self._request("GET", user_id)
            except httpx.HTTPStatusError as e:
                if _is_status(e, 404):
                    return None
                raise
            return UserEntity.from_dict(response.json())

        user = await self._errors.with_retry(_get, operation_name="get_by_id")
        if user is not None:
            self._cache.put_user(user)
        return user

    async def get_all(
        self, limit: int | None = None, offset: int | None = None
    ) -> list[UserEntity]:
        key = list_key(OP_GET_ALL, limit=limit, offset=offset)
        cached = self._cache.get(key)
        if cached is not None:
            return list(cached)

        async def _list() -> list[UserEntity]:
            response = await self._request(
                "GET", params={"limit": limit, "offset": offset}
            )
            return _users_from_body(response.json())

        users = await self._errors.with_retry(_list, operation_name="get_all")
        self._cache.put(key, users)
        self._cache.put_users(users)
        return list(users)

    async def update(self, entity: UserEntity) -> UserEntity:
        """PUT the full user; EntityNotFoundException if the API returns 404."""
        return await self._mutate("update", "PUT", entity.id, json=entity.to_json())

    async def delete(self, user_id: str) -> None:
        user_key(user_id)

        async def _delete() -> None:
            try:
                await self._request("DELETE", user_id)
            except httpx.HTTPStatusError as e:
                if _is_status(e, 404):
                    raise EntityNotFoundException(_ENTITY_TYPE, user_id, cause=e) from e
                raise

        await self._errors.with_retry(_delete, operation_name="delete")
        self._cache.on_deleted(user_id)
        logger.info("Deleted user %s", user_id)

    async def exists(self, user_id: str) -> bool:
        if self._cache.get_user(user_id) is not None:
            return True

        async def _head() -> bool:
            try:
                await self._request("HEAD", user_id)
            except httpx.HTTPStatusError as e:
                if _is_status(e, 404):
                    return False
                raise
            return True

        return await self._errors.with_retry(_head, operation_name="exists")

    async def count(self) -> int:
        cached = self._cache.get(KEY_COUNT)
        if cached is not None:
            return cached

        async def _count() -> int:
            response = await self._request("GET", "count")
            body = response.json()
            return int(body.get("count", 0) if isinstance(body, dict) else body)

        total = await self._errors.with_retry(_count, operation_name="count")
        self._cache.put(KEY_COUNT, total)
        return total

    # Batch

    async def create_batch(
        self, entities: Sequence[UserEntity]
    ) -> BatchOutcome[UserEntity]:
        return await self._errors.with_batch_error_handling(
            [partial(self.create, e) for e in entities], "create_batch", items=entities
        )

    async def update_batch(
        self, entities: Sequence[UserEntity]
    ) -> BatchOutcome[UserEntity]:
        return await self._errors.with_batch_error_handling(
            [partial(self.update, e) for e in entities], "update_batch", items=entities
        )

    async def delete_batch(self, user_ids: Sequence[str]) -> BatchOutcome[str]:
        async def _delete_one(user_id: str) -> str:
            await self.delete(user_id)
            return user_id

        return await self._errors.with_batch_error_handling(
            [partial(_delete_one, i) for i in user_ids], "delete_batch", items=user_ids
        )

    # Queries

    async def get_by_email(self, email: str) -> UserEntity | None:
        key = email_key(email)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        async def _get() -> UserEntity | None:
            try:
                response = await self._request("GET", "by-email", email)
            except httpx.HTTPStatusError as e:
                if _is_status(e, 404):
                    return None
                raise
            return UserEntity.from_dict(response.json())

        user = await self._errors.with_retry(_get, operation_name="get_by_email")
        if user is not None:
            self._cache.put(key, user)
            self._cache.put_user(user)
        return user

    async def is_email_available(self, email: str) -> bool:
        async def _check() -> bool:
            response = await self._request(
                "GET", "email-available", params={"email": email}
            )
            body = response.json()
            if not isinstance(body, dict):
                raise SerializationException(
                    f"Unexpected email availability body: {type(body).__name__}"
                )
            return bool(body.get("available", False))

        return await self._errors.with_retry(_check, operation_name="is_email_available")

    async def search_users(
        self, query: str, limit: int | None = None, only_active: bool = True
    ) -> list[UserEntity]:
        key = list_key(OP_SEARCH_USERS, q=query, limit=limit, only_active=only_active)
        cached = self._cache.get(key)
        if cached is not None:
            return list(cached)

        async def _search() -> list[UserEntity]:
            response = await self._request(
                "GET",
                "search",
                params={
                    "q": query,
                    "only_active": str(only_active).lower(),
                    "limit": limit,
                },
            )
            return _users_from_body(response.json())

        users = await self._errors.with_retry(_search, operation_name="search_users")
        self._cache.put(key, users)
        return list(users)

    async def get_users_by_role(self, role: str) -> list[UserEntity]:
        key = role_key(role)
        cached = self._cache.get(key)
        if cached is not None:
            return list(cached)

        async def _by_role() -> list[UserEntity]:
            response = await self._request("GET", "by-role", role)
            return _users_from_body(response.json())

        users = await self._errors.with_retry(_by_role, operation_name="get_users_by_role")
        self._cache.put(key, users)
        return list(users)

    # Profile and status

    async def update_profile(
        self,
        user_id: str,
        *,
        display_name: str | None = None,
        photo_url: str | None = None,
        metadata: dict[str, Any] | None = None,
        phone_number: str | None = None,
        date_of_birth: datetime | None = None,
        locale: str | None = None,
        timezone: str | None = None,
    ) -> UserEntity:
        fields = {
            "display_name": display_name,
            "photo_url": photo_url,
            "metadata": metadata,
            "phone_number": phone_number,
            "date_of_birth": date_of_birth,
            "locale": locale,
            "timezone": timezone,
        }
        payload = {k: _json_value(v) for k, v in fields.items() if v is not None}
        return await self._mutate(
            "update_profile", "PATCH", user_id, "profile", json=payload
        )

    async def update_roles(self, user_id: str, roles: Sequence[str]) -> UserEntity:
        return await self._mutate(
            "update_roles", "PATCH", user_id, "roles", json={"roles": list(roles)}
        )

    async def add_role(self, user_id: str, role: str) -> UserEntity:
        return await self._mutate("add_role", "POST", user_id, "roles", json={"role": role})

    async def remove_role(self, user_id: str, role: str) -> UserEntity:
        return await self._mutate("remove_role", "DELETE", user_id, "roles", role)

    async def deactivate_user(self, user_id: str) -> UserEntity:
        return await self._mutate("deactivate_user", "PATCH", user_id, "deactivate")

    async def reactivate_user(self, user_id: str) -> UserEntity:
        return await self._mutate("reactivate_user", "PATCH", user_id, "reactivate")

    async def verify_email(self, user_id: str) -> UserEntity:
        return await self._mutate("verify_email", "PATCH", user_id, "verify-email")

    async def unverify_email(self, user_id: str) -> UserEntity:
        return await self._mutate("unverify_email", "PATCH", user_id, "unverify-email")

    async def close(self) -> None:
        """Stop the cache sweep and close the HTTP client if owned."""
        await self._cache.cache.aclose()
        if self._owns_http:
            await self._http.aclose()
