"""Firestore-backed datasource implementations (swappable with REST)."""

from datalayer.infrastructure.firebase.repositories.user_datasource_firestore import (
    FirestoreUserDatasource,
)

__all__ = [
    "FirestoreUserDatasource",
]
