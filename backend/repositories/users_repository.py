"""Repository adapters for user profile documents (`users` collection)."""

from __future__ import annotations

from typing import Any, Protocol

from backend.db.firestore_client import FirestoreClient
from shared.models import TransactionUser


USERS_COLLECTION = "users"


class UsersRepository(Protocol):
    def get_user_profile(self, user_id: str) -> dict[str, Any] | None:
        """Return the stored profile for a user id, or None when missing."""


def is_admin_profile(profile: dict[str, Any] | None) -> bool:
    """Return whether a profile carries the boolean `isAdmin: true` flag.

    The string `"true"` does not count.
    """

    return isinstance(profile, dict) and profile.get("isAdmin") is True


def transaction_user_from_profile(profile: dict[str, Any] | None) -> TransactionUser | None:
    """Project a stored profile onto the owner block shown with transaction details."""

    if not profile:
        return None
    name = profile.get("profileName") or profile.get("name")
    email = profile.get("profileEmail") or profile.get("email")
    plan = profile.get("plan") or "free"
    return TransactionUser(
        name=str(name) if name else None,
        email=str(email) if email else None,
        plan=str(plan),
    )


class InMemoryUsersRepository:
    """In-memory fallback keyed by user id."""

    def __init__(self, profiles: dict[str, dict[str, Any]] | None = None) -> None:
        self._profiles = {user_id: dict(profile) for user_id, profile in (profiles or {}).items()}

    def get_user_profile(self, user_id: str) -> dict[str, Any] | None:
        profile = self._profiles.get(user_id)
        return {**profile, "id": user_id} if profile is not None else None


class FirestoreUsersRepository:
    """Firestore repository reading `users/{user_id}` documents."""

    def __init__(self, client: FirestoreClient) -> None:
        self._client = client

    def get_user_profile(self, user_id: str) -> dict[str, Any] | None:
        if not user_id:
            return None
        return self._client.get_document(collection=USERS_COLLECTION, document_id=user_id)
