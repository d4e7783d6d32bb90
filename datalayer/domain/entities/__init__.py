"""Domain entities."""

from datalayer.domain.entities.user import UserEntity

__all__ = ["UserEntity"]
