"""Datasource interfaces (ports) for the application layer.

Protocols define contracts that backend implementations must fulfill (DIP).
Every method raises only DataSourceException (or a subclass) on failure.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from datalayer.domain.entities.user import UserEntity
    from datalayer.infrastructure.resilience.batch import BatchOutcome


class IUserDatasource(Protocol):
    """Protocol for user datasources (Firestore, REST)."""

    # CRUD
    async def create(self, entity: UserEntity) -> UserEntity:
        """Persist a new user; returns it with the backend-assigned ID."""

    async def get_by_id(self, user_id: str) -> UserEntity | None:
        """Return user by ID, or None if it does not exist."""

    async def get_all(
        self, limit: int | None = None, offset: int | None = None
    ) -> list[UserEntity]:
        """Return users ordered by creation, optionally paginated."""

    async def update(self, entity: UserEntity) -> UserEntity:
        """Replace an existing user. EntityNotFoundException if missing."""

    async def delete(self, user_id: str) -> None:
        """Delete user by ID."""

    async def exists(self, user_id: str) -> bool:
        """Return True if a user with this ID exists."""

    async def count(self) -> int:
        """Return the total number of users."""

    # Batch (per-item isolation; never aborts on a single failure)
    async def create_batch(
        self, entities: Sequence[UserEntity]
    ) -> BatchOutcome[UserEntity]:
        """Create each user independently."""

    async def update_batch(
        self, entities: Sequence[UserEntity]
    ) -> BatchOutcome[UserEntity]:
        """Update each user independently."""

    async def delete_batch(self, user_ids: Sequence[str]) -> BatchOutcome[str]:
        """Delete each user independently; succeeded holds the deleted IDs."""

    # Queries
    async def get_by_email(self, email: str) -> UserEntity | None:
        """Return user by email, or None."""

    async def is_email_available(self, email: str) -> bool:
        """Return True if no user has this email."""

    async def search_users(
        self, query: str, limit: int | None = None, only_active: bool = True
    ) -> list[UserEntity]:
        """Prefix search by email (query contains '@') or display name."""

    async def get_users_by_role(self, role: str) -> list[UserEntity]:
        """Return users holding role."""

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
        """Update only the given profile fields; None leaves a field unchanged."""

    async def update_roles(self, user_id: str, roles: Sequence[str]) -> UserEntity:
        """Replace the user's roles."""

    async def add_role(self, user_id: str, role: str) -> UserEntity:
        """Add role to user (no-op if already held)."""

    async def remove_role(self, user_id: str, role: str) -> UserEntity:
        """Remove role from user (no-op if not held)."""

    async def deactivate_user(self, user_id: str) -> UserEntity:
        """Mark user inactive."""

    async def reactivate_user(self, user_id: str) -> UserEntity:
        """Mark user active."""

    async def verify_email(self, user_id: str) -> UserEntity:
        """Mark user's email verified."""

    async def unverify_email(self, user_id: str) -> UserEntity:
        """Mark user's email unverified."""

    async def close(self) -> None:
        """Release cache timers and owned HTTP connections."""
