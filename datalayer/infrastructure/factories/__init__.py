"""Datasource factories."""

from datalayer.infrastructure.factories.user_datasource_factory import (
    UserDatasourceFactory,
)

__all__ = ["UserDatasourceFactory"]
