"""Print how to grant admin access and report a user's current admin flag.

Admin rights are only ever granted by editing the user's document in the
Firestore console. This command reads; it never writes `isAdmin`.

Usage:
    python -m backend.admin_status
    python -m backend.admin_status --user-id <uid>
"""

from __future__ import annotations

import argparse
import logging
import sys

from backend.db.firestore_client import FirestoreClient, FirestoreSettings
from backend.errors import FetchError
from backend.repositories.users_repository import FirestoreUsersRepository, UsersRepository, is_admin_profile
from shared import config


logger = logging.getLogger(__name__)


ADMIN_SETUP_INSTRUCTIONS = """\
ADMIN SETUP INSTRUCTIONS

To grant admin access to a user, set isAdmin: true in their user document.

1. Open the Firebase Console > Firestore Database
2. Navigate to the 'users' collection
3. Find the user document (search by email or user ID)
4. Add field: isAdmin (boolean) = true
5. Save the document and refresh the application

To find a user ID, run:
    python -m backend.admin_status --user-id <uid>

SECURITY NOTE:
- Only set isAdmin: true through direct database access
- The application cannot grant admin access (prevents privilege escalation)
- Keep track of who has admin access
- Use boolean true, not the string "true"
"""


def describe_admin_status(users_repository: UsersRepository, user_id: str) -> str:
    """Return a one-line report of a user's admin flag."""

    profile = users_repository.get_user_profile(user_id)
    if profile is None:
        return f"User profile not found: {user_id}"

    email = profile.get("profileEmail") or profile.get("email") or "unknown email"
    status = "ADMIN" if is_admin_profile(profile) else "Regular User"
    return f"User {user_id} ({email}): {status}"


def build_users_repository() -> UsersRepository | None:
    """Return the Firestore users repository, or None when Firestore is not configured."""

    project_id = config.firebase_project_id()
    if not project_id:
        return None
    client = FirestoreClient.from_settings(
        FirestoreSettings(project_id=project_id, credentials_path=config.firebase_credentials_path())
    )
    return FirestoreUsersRepository(client)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Show admin setup instructions and admin status.")
    parser.add_argument("--user-id", help="Report the admin flag stored for this user id.")
    args = parser.parse_args(argv)

    print(ADMIN_SETUP_INSTRUCTIONS)
    if not args.user_id:
        return 0

    users_repository = build_users_repository()
    if users_repository is None:
        logger.error("admin_status_firestore_not_configured user_id=%s", args.user_id)
        print("Error checking admin status: FIREBASE_PROJECT_ID is not configured", file=sys.stderr)
        return 1
    try:
        print(describe_admin_status(users_repository, args.user_id))
    except FetchError as exc:
        logger.error("admin_status_lookup_failed user_id=%s error=%s", args.user_id, exc.message)
        print(f"Error checking admin status: {exc.message}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    sys.exit(main())
