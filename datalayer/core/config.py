"""Datalayer configuration (settings and environment).

Single source of truth for all configuration. Uses pydantic-settings
with .env support. Backend-specific settings (Firestore credentials, REST
base URL) are validated at load time when a datasource_type is selected.
"""

from functools import lru_cache

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from datalayer.core.constants import (
    DATASOURCE_TYPE_FIRESTORE,
    DATASOURCE_TYPE_REST,
    DEFAULT_CACHE_CLEANUP_INTERVAL_SECONDS,
    DEFAULT_CACHE_EVICTION_FRACTION,
    DEFAULT_CACHE_MAX_SIZE,
    DEFAULT_CACHE_TTL_SECONDS,
    DEFAULT_HTTP_TIMEOUT_SECONDS,
    DEFAULT_RETRY_BACKOFF_MULTIPLIER,
    DEFAULT_RETRY_INITIAL_DELAY_SECONDS,
    DEFAULT_RETRY_MAX_ATTEMPTS,
    DEFAULT_RETRY_MAX_DELAY_SECONDS,
    DEFAULT_USERS_COLLECTION,
    DEFAULT_USERS_ENDPOINT,
)


class Settings(BaseSettings):
    """Datalayer settings loaded from environment and .env.

    All settings have defaults. validate_backend_and_limits rejects
    inconsistent combinations (e.g. datasource_type 'rest' without a
    base URL, or a retry policy with zero attempts).
    """

    # App
    app_name: str = "datalayer"
    app_version: str = "1.0.0"
    debug: bool = False

    # In-process cache
    cache_max_size: int = DEFAULT_CACHE_MAX_SIZE
    cache_default_ttl_seconds: float = DEFAULT_CACHE_TTL_SECONDS
    cache_cleanup_interval_seconds: float = DEFAULT_CACHE_CLEANUP_INTERVAL_SECONDS
    cache_eviction_fraction: float = DEFAULT_CACHE_EVICTION_FRACTION

    # Retry / backoff
    retry_max_attempts: int = DEFAULT_RETRY_MAX_ATTEMPTS
    retry_initial_delay_seconds: float = DEFAULT_RETRY_INITIAL_DELAY_SECONDS
    retry_max_delay_seconds: float = DEFAULT_RETRY_MAX_DELAY_SECONDS
    retry_backoff_multiplier: float = DEFAULT_RETRY_BACKOFF_MULTIPLIER

    # Backend selection: "firestore", "rest" or unset (caller wires datasources)
    datasource_type: str | None = None

    # Firebase / Firestore: use key (env) or path (file).
    firebase_service_account_key: SecretStr | None = None
    firebase_service_account_path: str | None = None  # Path to JSON file
    firestore_users_collection: str = DEFAULT_USERS_COLLECTION

    # REST API
    rest_api_base_url: str | None = None
    rest_api_key: SecretStr | None = None
    rest_users_endpoint: str = DEFAULT_USERS_ENDPOINT
    rest_api_timeout_seconds: float = DEFAULT_HTTP_TIMEOUT_SECONDS

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    @model_validator(mode="after")
    def validate_backend_and_limits(self) -> "Settings":
        """Validate backend configuration and cache/retry limits.

        - REST: REST_API_BASE_URL required.
        - Firestore: FIREBASE_SERVICE_ACCOUNT_KEY or FIREBASE_SERVICE_ACCOUNT_PATH required.
        """
        if self.datasource_type == DATASOURCE_TYPE_REST:
            if not self.rest_api_base_url:
                raise ValueError(
                    "REST_API_BASE_URL is required when datasource_type is 'rest'. "
                    "Set in environment or .env file."
                )
        elif self.datasource_type == DATASOURCE_TYPE_FIRESTORE:
            has_key = (
                self.firebase_service_account_key
                and self.firebase_service_account_key.get_secret_value()
            )
            if not has_key and not self.firebase_service_account_path:
                raise ValueError(
                    "When datasource_type is 'firestore', set FIREBASE_SERVICE_ACCOUNT_KEY (full JSON string) "
                    "or FIREBASE_SERVICE_ACCOUNT_PATH (path to JSON file)."
                )
        elif self.datasource_type is not None:
            raise ValueError(
                f"datasource_type must be 'firestore' or 'rest', got: {self.datasource_type!r}"
            )
        if self.cache_max_size < 1:
            raise ValueError(f"cache_max_size must be >= 1, got {self.cache_max_size}")
        if self.cache_cleanup_interval_seconds <= 0:
            raise ValueError("cache_cleanup_interval_seconds must be positive")
        if not 0 < self.cache_eviction_fraction <= 1:
            raise ValueError("cache_eviction_fraction must be in (0, 1]")
        if self.retry_max_attempts < 1:
            raise ValueError(
                f"retry_max_attempts must be >= 1, got {self.retry_max_attempts}"
            )
        return self


@lru_cache
def get_settings() -> Settings:
    """Return cached settings (single instance per process).

    Validation runs on first call, not at import time. In tests, call
    get_settings.cache_clear() before overriding env vars so the next
    get_settings() uses the new values.

    Returns:
        Loaded and validated Settings instance.
    """
    return Settings()
