"""Tests for UserEntity validation and (de)serialization."""

from datetime import datetime, timedelta, timezone

import pytest

from datalayer.domain.entities.user import UserEntity
from datalayer.domain.exceptions import SerializationException, ValidationException

NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)


def test_valid_user(make_user) -> None:
    user = make_user("u1", roles=["admin"])
    assert user.roles == ("admin",)
    assert user.has_role("admin")
    assert not user.has_role("viewer")
    assert user.is_active


@pytest.mark.parametrize("email", ["", "   ", "no-at-sign"])
def test_invalid_email_rejected(email) -> None:
    with pytest.raises(ValidationException) as exc_info:
        UserEntity(id="1", email=email, created_at=NOW, updated_at=NOW)
    assert "email" in exc_info.value.validation_errors


def test_updated_before_created_rejected() -> None:
    with pytest.raises(ValidationException):
        UserEntity(id="1", email="a@b.c", created_at=NOW, updated_at=NOW - timedelta(seconds=1))


def test_copy_with_revalidates(make_user) -> None:
    user = make_user("u1")
    assert user.copy_with(display_name="New").display_name == "New"
    with pytest.raises(ValidationException):
        user.copy_with(email="broken")


def test_to_json_from_dict(make_user) -> None:
    user = make_user("u1", roles=("a", "b"), date_of_birth=NOW, metadata={"k": 1})
    data = user.to_json()
    assert data["created_at"] == "2024-01-01T12:00:00+00:00"
    assert data["roles"] == ["a", "b"]
    assert UserEntity.from_dict(data) == user


def test_from_dict_accepts_z_suffix_and_id_override() -> None:
    user = UserEntity.from_dict(
        {
            "email": "a@b.c",
            "created_at": "2024-01-01T00:00:00Z",
            "updated_at": "2024-01-02T00:00:00Z",
        },
        id_="doc-1",
    )
    assert user.id == "doc-1"
    assert user.created_at == NOW
    assert user.roles == ()


@pytest.mark.parametrize(
    "data",
    [
        {"id": "1", "created_at": "2024-01-01T00:00:00Z", "updated_at": "2024-01-01T00:00:00Z"},
        {"id": "1", "email": "a@b.c", "created_at": "not a date", "updated_at": "2024-01-01T00:00:00Z"},
        {"id": "1", "email": "a@b.c", "created_at": 5, "updated_at": "2024-01-01T00:00:00Z"},
    ],
)
def test_from_dict_malformed_payload(data) -> None:
    with pytest.raises(SerializationException):
        UserEntity.from_dict(data)
