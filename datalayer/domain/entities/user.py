"""User domain entity.

Represents a user account independent of the backend that stores it.
Backends convert to and from plain dicts with to_dict/from_dict.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any

from datalayer.domain.exceptions import SerializationException, ValidationException
from datalayer.shared.utils.datetime import parse_datetime

_DATETIME_FIELDS = ("created_at", "updated_at", "date_of_birth")


@dataclass(frozen=True)
class UserEntity:
    """Domain entity for a user account.

    id may be empty for a user that has not been persisted yet (backends
    assign it on create). Validation runs on construction.
    """

    id: str
    email: str
    created_at: datetime
    updated_at: datetime
    display_name: str | None = None
    photo_url: str | None = None
    is_email_verified: bool = False
    metadata: dict[str, Any] | None = None
    roles: tuple[str, ...] = field(default_factory=tuple)
    is_active: bool = True
    phone_number: str | None = None
    date_of_birth: datetime | None = None
    locale: str | None = None
    timezone: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.roles, tuple):
            object.__setattr__(self, "roles", tuple(self.roles))
        self.validate()

    def validate(self) -> None:
        """Validate user business rules. Raises ValidationException if invalid."""
        if not self.email or not self.email.strip():
            raise ValidationException.single_field("email", "Email is required")
        if "@" not in self.email:
            raise ValidationException.single_field("email", "Email address is malformed")
        if self.updated_at < self.created_at:
            raise ValidationException.single_field(
                "updated_at", "updated_at must not be earlier than created_at"
            )

    def has_role(self, role: str) -> bool:
        return role in self.roles

    def copy_with(self, **changes: Any) -> "UserEntity":
        """Return a copy with the given fields replaced (validated again)."""
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        """Return a plain dict with native values (datetimes kept as datetime)."""
        return {
            "id": self.id,
            "email": self.email,
            "display_name": self.display_name,
            "photo_url": self.photo_url,
            "is_email_verified": self.is_email_verified,
            "metadata": self.metadata,
            "roles": list(self.roles),
            "is_active": self.is_active,
            "phone_number": self.phone_number,
            "date_of_birth": self.date_of_birth,
            "locale": self.locale,
            "timezone": self.timezone,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    def to_json(self) -> dict[str, Any]:
        """Return a JSON-serializable dict (datetimes as ISO 8601 strings)."""
        data = self.to_dict()
        for name in _DATETIME_FIELDS:
            if data[name] is not None:
                data[name] = data[name].isoformat()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any], id_: str | None = None) -> "UserEntity":
        """Build a UserEntity from a backend payload.

        Args:
            data: Dict from a backend (Firestore fields or REST JSON body).
            id_: Optional document ID overriding data['id'] (Firestore keeps
                the ID in the document name, not in the fields).

        Raises:
            SerializationException: If required keys are missing or values
                have the wrong type/format.
            ValidationException: If the decoded values violate business rules.
        """
        try:
            return cls(
                id=id_ if id_ is not None else str(data["id"]),
                email=data["email"],
                display_name=data.get("display_name"),
                photo_url=data.get("photo_url"),
                is_email_verified=bool(data.get("is_email_verified", False)),
                metadata=data.get("metadata"),
                roles=tuple(data.get("roles") or ()),
                is_active=bool(data.get("is_active", True)),
                phone_number=data.get("phone_number"),
                date_of_birth=parse_datetime(data.get("date_of_birth")),
                locale=data.get("locale"),
                timezone=data.get("timezone"),
                created_at=parse_datetime(data["created_at"]),
                updated_at=parse_datetime(data["updated_at"]),
            )
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise SerializationException(f"Malformed user payload: {e!r}", cause=e) from e

    def __repr__(self) -> str:
        return (
            f"UserEntity(id={self.id!r}, email={self.email!r}, "
            f"display_name={self.display_name!r}, is_active={self.is_active}, "
            f"roles={list(self.roles)})"
        )
