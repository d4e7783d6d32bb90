"""Cache discipline shared by the user datasources.

Single users are cached under 'get_by_id:<id>' and 'get_by_email:<email>';
list and count reads under their query keys. A write refreshes the user's
own entry and drops every key derived from the user set, so no read can
observe a list that predates the write.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from datalayer.domain.exceptions import ValidationException
from datalayer.infrastructure.cache.keys import entity_key, query_key

if TYPE_CHECKING:
    from datalayer.domain.entities.user import UserEntity
    from datalayer.infrastructure.cache.memory_cache import MemoryCache

logger = logging.getLogger(__name__)

OP_GET_BY_ID = "get_by_id"
OP_GET_BY_EMAIL = "get_by_email"
OP_GET_ALL = "get_all"
OP_SEARCH_USERS = "search_users"
OP_GET_USERS_BY_ROLE = "get_users_by_role"
KEY_COUNT = "count"

# Keys derived from the whole user set; dropped on every write.
DERIVED_KEY_PATTERNS = (
    rf"^{OP_GET_ALL}:.*",
    rf"^{OP_SEARCH_USERS}:.*",
    rf"^{OP_GET_USERS_BY_ROLE}:.*",
    rf"^{OP_GET_BY_EMAIL}:.*",
    rf"^{KEY_COUNT}$",
)


def user_key(user_id: str) -> str:
    """'get_by_id:<id>'; ValidationException if the ID cannot form a key."""
    return _checked_key(OP_GET_BY_ID, user_id, "id")


def email_key(email: str) -> str:
    return _checked_key(OP_GET_BY_EMAIL, email, "email")


def role_key(role: str) -> str:
    return _checked_key(OP_GET_USERS_BY_ROLE, role, "role")


def list_key(operation: str, **params: Any) -> str:
    return query_key(operation, params)


def _checked_key(operation: str, value: str, field: str) -> str:
    if not value:
        raise ValidationException.single_field(field, f"{field} is required")
    try:
        return entity_key(operation, value)
    except ValueError as e:
        raise ValidationException.single_field(field, str(e), cause=e) from e


class UserCache:
    """Applies the user key layout and write invalidation to a MemoryCache."""

    def __init__(self, cache: MemoryCache[Any]) -> None:
        self.cache = cache

    def get(self, key: str) -> Any:
        return self.cache.get(key)

    def put(self, key: str, value: Any) -> None:
        self.cache.put(key, value)

    def get_user(self, user_id: str) -> UserEntity | None:
        return self.cache.get(user_key(user_id))

    def put_user(self, user: UserEntity) -> None:
        """Cache user under its ID; IDs that cannot form a key are not cached.

        The user came back from the backend, so the read it belongs to has
        already succeeded and must not fail on caching.
        """
        try:
            key = user_key(user.id)
        except ValidationException:
            logger.warning("Not caching user with unkeyable id %r", user.id)
            return
        self.cache.put(key, user)

    def put_users(self, users: list[UserEntity]) -> None:
        for user in users:
            self.put_user(user)

    def drop_derived(self) -> None:
        for pattern in DERIVED_KEY_PATTERNS:
            self.cache.invalidate_by_pattern(pattern)

    def on_written(self, user: UserEntity) -> None:
        """After create/update: drop stale keys, then cache the fresh user."""
        self.cache.invalidate_for_entity(user.id)
        self.drop_derived()
        self.put_user(user)

    def on_deleted(self, user_id: str) -> None:
        self.cache.invalidate_for_entity(user_id)
        self.drop_derived()
