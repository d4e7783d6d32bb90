"""Firestore collection names (schema-in-code).

Firestore has no DDL or migrations; collections appear on first write.
The users collection name can be overridden with FIRESTORE_USERS_COLLECTION.
"""

COLLECTION_USERS = "users"
