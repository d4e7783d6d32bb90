"""Firestore integration (REST API + google-auth, no firebase-admin)."""

from datalayer.infrastructure.firebase._rest_client import (
    FirestoreError,
    FirestoreRESTClient,
)
from datalayer.infrastructure.firebase.client import (
    create_firestore_client,
    load_service_account,
)

__all__ = [
    "FirestoreError",
    "FirestoreRESTClient",
    "create_firestore_client",
    "load_service_account",
]
