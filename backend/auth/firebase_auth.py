"""Firebase ID token validation and the per-request session built from it."""

from __future__ import annotations

from dataclasses import dataclass

from firebase_admin import auth as firebase_auth
from firebase_admin.exceptions import FirebaseError

from backend.db.firestore_client import FirestoreSettings, get_firebase_app
from backend.errors import UnauthorizedError
from backend.repositories.users_repository import UsersRepository, is_admin_profile
from shared import config


@dataclass(frozen=True, slots=True)
class RequestSession:
    """Identity of the caller for one request, passed explicitly to handlers."""

    user_id: str
    email: str | None = None
    is_admin: bool = False


def get_user_from_bearer_token(token: str) -> dict[str, object]:
    """Return the decoded Firebase ID token claims for a bearer token."""

    project_id = config.firebase_project_id()
    if not project_id:
        raise UnauthorizedError("Firebase auth is not configured")

    app = get_firebase_app(
        FirestoreSettings(project_id=project_id, credentials_path=config.firebase_credentials_path())
    )
    try:
        claims = firebase_auth.verify_id_token(token, app=app)
    except (ValueError, FirebaseError) as exc:
        raise UnauthorizedError("Unauthorized") from exc

    user_id = claims.get("uid")
    if not isinstance(user_id, str) or not user_id:
        raise UnauthorizedError("Unauthorized")
    return claims


def build_request_session(claims: dict[str, object], users_repository: UsersRepository) -> RequestSession:
    """Build the request session, reading the admin flag from the user's profile."""

    user_id = claims.get("uid")
    if not isinstance(user_id, str) or not user_id:
        raise UnauthorizedError("Unauthorized")
    email = claims.get("email")
    profile = users_repository.get_user_profile(user_id)
    return RequestSession(
        user_id=user_id,
        email=email if isinstance(email, str) else None,
        is_admin=is_admin_profile(profile),
    )
