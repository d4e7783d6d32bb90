"""REST API backend (httpx)."""

from datalayer.infrastructure.rest.errors import (
    HTTP_CLASSIFIERS,
    HTTP_DESCRIBERS,
    HTTP_STATUS_KINDS,
)
from datalayer.infrastructure.rest.user_datasource_rest import RestUserDatasource

__all__ = [
    "HTTP_CLASSIFIERS",
    "HTTP_DESCRIBERS",
    "HTTP_STATUS_KINDS",
    "RestUserDatasource",
]
