"""Factory for user datasources.

Builds a FirestoreUserDatasource or RestUserDatasource with its cache and
retry policy taken from Settings, so callers depend only on IUserDatasource.
"""

from __future__ import annotations

import logging

import httpx

from datalayer.application.interfaces.datasources import IUserDatasource
from datalayer.core.config import Settings, get_settings
from datalayer.domain.enums import DataSourceType
from datalayer.infrastructure.cache.memory_cache import MemoryCache
from datalayer.infrastructure.firebase._rest_client import FirestoreRESTClient
from datalayer.infrastructure.firebase.client import create_firestore_client
from datalayer.infrastructure.firebase.errors import (
    FIRESTORE_CLASSIFIERS,
    FIRESTORE_DESCRIBERS,
)
from datalayer.infrastructure.firebase.repositories.user_datasource_firestore import (
    FirestoreUserDatasource,
)
from datalayer.infrastructure.resilience.error_handler import ErrorHandler
from datalayer.infrastructure.resilience.retry import RetryPolicy
from datalayer.infrastructure.resilience.translator import ErrorTranslator
from datalayer.infrastructure.rest.errors import HTTP_CLASSIFIERS, HTTP_DESCRIBERS
from datalayer.infrastructure.rest.user_datasource_rest import RestUserDatasource

logger = logging.getLogger(__name__)


class UserDatasourceFactory:
    """Creates IUserDatasource implementations by backend type."""

    @staticmethod
    def create(
        datasource_type: DataSourceType | str,
        settings: Settings | None = None,
        **options,
    ) -> IUserDatasource:
        """Create a datasource for datasource_type.

        Args:
            datasource_type: DataSourceType or its value ('firestore', 'rest').
            settings: Settings for cache/retry and backend defaults.
            **options: Passed to create_firestore or create_rest.

        Raises:
            ValueError: If the type is unknown or required config is missing.
        """
        kind = DataSourceType(datasource_type)
        if kind is DataSourceType.FIRESTORE:
            return UserDatasourceFactory.create_firestore(settings=settings, **options)
        return UserDatasourceFactory.create_rest(settings=settings, **options)

    @staticmethod
    def create_firestore(
        client: FirestoreRESTClient | None = None,
        *,
        collection: str | None = None,
        settings: Settings | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> FirestoreUserDatasource:
        """Create a Firestore datasource.

        Without a client, one is built from the service account settings and
        closed by the datasource's close().
        """
        settings = settings or get_settings()
        owns_client = client is None
        if client is None:
            client = create_firestore_client(settings, http_client=http_client)
        logger.info("Creating Firestore user datasource")
        return FirestoreUserDatasource(
            client,
            collection=collection or settings.firestore_users_collection,
            cache=MemoryCache.from_settings(settings, name="users.firestore"),
            error_handler=ErrorHandler(
                ErrorTranslator(FIRESTORE_CLASSIFIERS, FIRESTORE_DESCRIBERS),
                RetryPolicy.from_settings(settings),
            ),
            owns_client=owns_client,
        )

    @staticmethod
    def create_rest(
        base_url: str | None = None,
        *,
        users_endpoint: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        settings: Settings | None = None,
    ) -> RestUserDatasource:
        """Create a REST datasource; base_url falls back to REST_API_BASE_URL.

        Raises:
            ValueError: If no base URL is given or configured.
        """
        settings = settings or get_settings()
        base_url = base_url or settings.rest_api_base_url
        if not base_url:
            raise ValueError("base_url is required for REST datasource")
        if api_key is None and settings.rest_api_key is not None:
            api_key = settings.rest_api_key.get_secret_value()
        logger.info("Creating REST user datasource for %s", base_url)
        return RestUserDatasource(
            base_url,
            users_endpoint=users_endpoint or settings.rest_users_endpoint,
            http_client=http_client,
            api_key=api_key,
            timeout=timeout if timeout is not None else settings.rest_api_timeout_seconds,
            cache=MemoryCache.from_settings(settings, name="users.rest"),
            error_handler=ErrorHandler(
                ErrorTranslator(HTTP_CLASSIFIERS, HTTP_DESCRIBERS),
                RetryPolicy.from_settings(settings),
            ),
        )

    @staticmethod
    def create_from_settings(settings: Settings | None = None) -> IUserDatasource:
        """Create the datasource selected by DATASOURCE_TYPE.

        Raises:
            ValueError: If DATASOURCE_TYPE is not set.
        """
        settings = settings or get_settings()
        if settings.datasource_type is None:
            raise ValueError("DATASOURCE_TYPE must be set to 'firestore' or 'rest'")
        return UserDatasourceFactory.create(settings.datasource_type, settings)
