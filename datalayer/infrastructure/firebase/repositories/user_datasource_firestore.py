"""Firestore-backed user datasource (implements IUserDatasource).

Users are stored one document per user in the users collection; the
document ID is the user ID and is not repeated in the fields. Calls go
through the ErrorHandler with the Firestore status table, and reads are
served from the in-process cache when fresh.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from datetime import datetime
from functools import partial
from typing import Any

from datalayer.domain.entities.user import UserEntity
from datalayer.domain.exceptions import (
    EntityAlreadyExistsException,
    EntityNotFoundException,
)
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
from datalayer.infrastructure.firebase._rest_client import (
    DocumentSnapshot,
    FirestoreError,
    FirestoreRESTClient,
)
from datalayer.infrastructure.firebase.collections import COLLECTION_USERS
from datalayer.infrastructure.firebase.errors import (
    FIRESTORE_CLASSIFIERS,
    FIRESTORE_DESCRIBERS,
)
from datalayer.infrastructure.resilience.batch import BatchOutcome
from datalayer.infrastructure.resilience.error_handler import ErrorHandler
from datalayer.infrastructure.resilience.translator import ErrorTranslator
from datalayer.shared.utils.datetime import utc_now
from datalayer.shared.utils.generators import generate_cuid

logger = logging.getLogger(__name__)

_ENTITY_TYPE = "User"


def _to_fields(user: UserEntity) -> dict[str, Any]:
    data = user.to_dict()
    data.pop("id")
    return data


def _from_snapshot(doc: DocumentSnapshot) -> UserEntity:
    return UserEntity.from_dict(doc.to_dict(), id_=doc.id)


def _touch(user: UserEntity) -> UserEntity:
    """Stamp updated_at with now (never earlier than created_at)."""
    return user.copy_with(updated_at=max(utc_now(), user.created_at))


class FirestoreUserDatasource:
    """User datasource using Firestore (REST API)."""

    def __init__(
        self,
        client: FirestoreRESTClient,
        *,
        collection: str = COLLECTION_USERS,
        cache: MemoryCache[Any] | None = None,
        error_handler: ErrorHandler | None = None,
        owns_client: bool = False,
    ) -> None:
        """Initialize the datasource.

        Args:
            client: Firestore REST client.
            collection: Users collection name.
            cache: Cache to use; a default MemoryCache if omitted.
            error_handler: Handler to use; Firestore classifier tables if omitted.
            owns_client: If True, close() also closes client.
        """
        self._client = client
        self._coll = client.collection(collection)
        self._owns_client = owns_client
        self._cache = UserCache(cache if cache is not None else MemoryCache(name="users.firestore"))
        self._errors = error_handler or ErrorHandler(
            ErrorTranslator(FIRESTORE_CLASSIFIERS, FIRESTORE_DESCRIBERS)
        )

    @property
    def cache(self) -> MemoryCache[Any]:
        return self._cache.cache

    async def _fetch(self, user_id: str) -> UserEntity | None:
        doc = await self._coll.document(user_id).get()
        return _from_snapshot(doc) if doc else None

    async def _fetch_existing(self, user_id: str) -> UserEntity:
        user = await self._fetch(user_id)
        if user is None:
            raise EntityNotFoundException(_ENTITY_TYPE, user_id)
        return user

    async def _collect(self, query) -> list[UserEntity]:
        return [_from_snapshot(doc) async for doc in query.stream()]

    async def _modify(
        self,
        operation_name: str,
        user_id: str,
        change: Callable[[UserEntity], UserEntity],
    ) -> UserEntity:
        """Read-modify-write one user; EntityNotFoundException if missing."""
        user_key(user_id)

        async def _apply() -> UserEntity:
            current = await self._fetch_existing(user_id)
            updated = _touch(change(current))
            await self._coll.document(user_id).set(_to_fields(updated))
            return updated

        user = await self._errors.with_retry(_apply, operation_name=operation_name)
        self._cache.on_written(user)
        return user

    # CRUD

    async def create(self, entity: UserEntity) -> UserEntity:
        """Create the document; a CUID is assigned when entity.id is empty.

        Raises:
            EntityAlreadyExistsException: If a user with this ID exists.
        """
        user = entity if entity.id else entity.copy_with(id=generate_cuid())
        user_key(user.id)

        async def _create() -> UserEntity:
            try:
                await self._coll.create(user.id, _to_fields(user))
            except FirestoreError as e:
                if e.status == "ALREADY_EXISTS":
                    raise EntityAlreadyExistsException(_ENTITY_TYPE, user.id, cause=e) from e
                raise
            return user

        created = await self._errors.with_retry(_create, operation_name="create")
        self._cache.on_written(created)
        logger.info("Created user %s", created.id)
        return created

    async def get_by_id(self, user_id: str) -> UserEntity | None:
        cached = self._cache.get_user(user_id)
        if cached is not None:
            return cached
        user = await self._errors.with_retry(
            partial(self._fetch, user_id), operation_name="get_by_id"
        )
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
        query = self._coll.query().order_by("created_at").offset(offset or 0).limit(limit)
        users = await self._errors.with_retry(
            partial(self._collect, query), operation_name="get_all"
        )
        self._cache.put(key, users)
        self._cache.put_users(users)
        return list(users)

    async def update(self, entity: UserEntity) -> UserEntity:
        """Replace the stored user; EntityNotFoundException if it does not exist."""
        return await self._modify("update", entity.id, lambda _current: entity)

    async def delete(self, user_id: str) -> None:
        user_key(user_id)

        async def _delete() -> None:
            await self._fetch_existing(user_id)
            await self._coll.document(user_id).delete()

        await self._errors.with_retry(_delete, operation_name="delete")
        self._cache.on_deleted(user_id)
        logger.info("Deleted user %s", user_id)

    async def exists(self, user_id: str) -> bool:
        if self._cache.get_user(user_id) is not None:
            return True
        user = await self._errors.with_retry(
            partial(self._fetch, user_id), operation_name="exists"
        )
        return user is not None

    async def count(self) -> int:
        cached = self._cache.get(KEY_COUNT)
        if cached is not None:
            return cached
        total = await self._errors.with_retry(self._coll.count, operation_name="count")
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

    async def _first_by_email(self, email: str) -> UserEntity | None:
        users = await self._collect(self._coll.where("email", "==", email).limit(1))
        return users[0] if users else None

    async def get_by_email(self, email: str) -> UserEntity | None:
        key = email_key(email)
        cached = self._cache.get(key)
        if cached is not None:
            return cached
        user = await self._errors.with_retry(
            partial(self._first_by_email, email), operation_name="get_by_email"
        )
        if user is not None:
            self._cache.put(key, user)
            self._cache.put_user(user)
        return user

    async def is_email_available(self, email: str) -> bool:
        user = await self._errors.with_retry(
            partial(self._first_by_email, email), operation_name="is_email_available"
        )
        return user is None

    async def search_users(
        self, query: str, limit: int | None = None, only_active: bool = True
    ) -> list[UserEntity]:
        """Prefix search on email (query contains '@') or display name.

        Firestore REST allows one field filter per query here, so the
        is_active filter runs server-side and the prefix match client-side.
        """
        key = list_key(OP_SEARCH_USERS, q=query, limit=limit, only_active=only_active)
        cached = self._cache.get(key)
        if cached is not None:
            return list(cached)
        base = self._coll.where("is_active", "==", True) if only_active else self._coll.query()
        by_email = "@" in query

        async def _search() -> list[UserEntity]:
            matches = []
            for user in await self._collect(base):
                value = user.email if by_email else (user.display_name or "")
                if value.startswith(query):
                    matches.append(user)
            return matches[:limit] if limit is not None else matches

        users = await self._errors.with_retry(_search, operation_name="search_users")
        self._cache.put(key, users)
        return list(users)

    async def get_users_by_role(self, role: str) -> list[UserEntity]:
        key = role_key(role)
        cached = self._cache.get(key)
        if cached is not None:
            return list(cached)
        users = await self._errors.with_retry(
            partial(self._collect, self._coll.where("roles", "array-contains", role)),
            operation_name="get_users_by_role",
        )
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
        changes = {k: v for k, v in fields.items() if v is not None}
        return await self._modify(
            "update_profile", user_id, lambda u: u.copy_with(**changes)
        )

    async def update_roles(self, user_id: str, roles: Sequence[str]) -> UserEntity:
        return await self._modify(
            "update_roles", user_id, lambda u: u.copy_with(roles=tuple(roles))
        )

    async def add_role(self, user_id: str, role: str) -> UserEntity:
        def _add(user: UserEntity) -> UserEntity:
            if user.has_role(role):
                return user
            return user.copy_with(roles=(*user.roles, role))

        return await self._modify("add_role", user_id, _add)

    async def remove_role(self, user_id: str, role: str) -> UserEntity:
        return await self._modify(
            "remove_role",
            user_id,
            lambda u: u.copy_with(roles=tuple(r for r in u.roles if r != role)),
        )

    async def deactivate_user(self, user_id: str) -> UserEntity:
        return await self._modify(
            "deactivate_user", user_id, lambda u: u.copy_with(is_active=False)
        )

    async def reactivate_user(self, user_id: str) -> UserEntity:
        return await self._modify(
            "reactivate_user", user_id, lambda u: u.copy_with(is_active=True)
        )

    async def verify_email(self, user_id: str) -> UserEntity:
        return await self._modify(
            "verify_email", user_id, lambda u: u.copy_with(is_email_verified=True)
        )

    async def unverify_email(self, user_id: str) -> UserEntity:
        return await self._modify(
            "unverify_email", user_id, lambda u: u.copy_with(is_email_verified=False)
        )

    async def close(self) -> None:
        """Stop the cache sweep and close the client if owned."""
        await self._cache.cache.aclose()
        if self._owns_client:
            await self._client.aclose()
