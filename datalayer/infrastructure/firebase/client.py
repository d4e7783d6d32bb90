"""Firestore client construction from settings (REST-based, no firebase-admin).

Credentials come from either FIREBASE_SERVICE_ACCOUNT_KEY (JSON string) or
FIREBASE_SERVICE_ACCOUNT_PATH (file path).
"""

import json
import logging
from pathlib import Path

import httpx

from datalayer.core.config import Settings, get_settings
from datalayer.infrastructure.firebase._rest_client import (
    FirestoreRESTClient,
    _get_credentials,
)

logger = logging.getLogger(__name__)


def load_service_account(settings: Settings | None = None) -> dict | None:
    """Return the service account dict from env key or file path, or None if unset.

    Raises:
        ValueError: If the key is not valid JSON or the path does not exist.
    """
    settings = settings or get_settings()
    key = settings.firebase_service_account_key
    key_json = key.get_secret_value() if key else None
    if key_json:
        try:
            return json.loads(key_json)
        except json.JSONDecodeError as e:
            raise ValueError("FIREBASE_SERVICE_ACCOUNT_KEY is not valid JSON") from e
    path = settings.firebase_service_account_path
    if path:
        resolved = Path(path).expanduser().resolve()
        if not resolved.is_file():
            raise ValueError(
                f"FIREBASE_SERVICE_ACCOUNT_PATH set but file not found: {path} (resolved: {resolved})"
            )
        with open(resolved, encoding="utf-8") as f:
            return json.load(f)
    return None


def create_firestore_client(
    settings: Settings | None = None,
    *,
    http_client: httpx.AsyncClient | None = None,
) -> FirestoreRESTClient:
    """Build a FirestoreRESTClient from service account settings.

    Raises:
        ValueError: If no credentials are configured or project_id is missing.
    """
    key_dict = load_service_account(settings)
    if not key_dict:
        raise ValueError(
            "Firestore requires FIREBASE_SERVICE_ACCOUNT_KEY or FIREBASE_SERVICE_ACCOUNT_PATH"
        )
    project_id = key_dict.get("project_id")
    if not project_id:
        raise ValueError("Firebase service account JSON missing 'project_id'")
    client = FirestoreRESTClient(
        project_id, _get_credentials(key_dict), http_client=http_client
    )
    logger.info("Firestore REST client created for project %s", project_id)
    return client
