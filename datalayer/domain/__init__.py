"""Domain layer: entities, enums, and exceptions.

No dependencies on infrastructure. Used by application and infrastructure
layers.
"""

from datalayer.domain.entities import UserEntity
from datalayer.domain.enums import DataSourceType, ErrorKind
from datalayer.domain.exceptions import (
    DataSourceException,
    EntityAlreadyExistsException,
    EntityNotFoundException,
    SerializationException,
    ValidationException,
)

__all__ = [
    # Entities
    "UserEntity",
    # Enums
    "DataSourceType",
    "ErrorKind",
    # Exceptions
    "DataSourceException",
    "EntityAlreadyExistsException",
    "EntityNotFoundException",
    "SerializationException",
    "ValidationException",
]
