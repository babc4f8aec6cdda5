"""Minimal Firestore client used by backend repositories only."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import firebase_admin
from firebase_admin import credentials, firestore
from google.api_core.exceptions import GoogleAPIError
from google.cloud.firestore_v1.base_query import FieldFilter

from backend.errors import FetchError


logger = logging.getLogger(__name__)


@dataclass(slots=True)
class FirestoreSettings:
    project_id: str | None = None
    credentials_path: str | None = None


def get_firebase_app(settings: FirestoreSettings) -> firebase_admin.App:
    """Return the default Firebase app, initializing it once per process."""

    try:
        return firebase_admin.get_app()
    except ValueError:
        pass

    if settings.credentials_path:
        credential = credentials.Certificate(settings.credentials_path)
    else:
        credential = credentials.ApplicationDefault()
    options = {"projectId": settings.project_id} if settings.project_id else None
    logger.info("firebase_app_initialized project_id=%s", settings.project_id)
    return firebase_admin.initialize_app(credential, options)


def is_valid_document_id(document_id: str | None) -> bool:
    """Return whether `document_id` can name a single document.

    Firestore ids may not contain `/`, be `.` or `..`, or match `__.*__`.
    """

    if not document_id or "/" in document_id or document_id in {".", ".."}:
        return False
    return not (document_id.startswith("__") and document_id.endswith("__"))


def _snapshot_to_row(snapshot: Any) -> dict[str, Any]:
    return {**(snapshot.to_dict() or {}), "id": snapshot.id}


class FirestoreClient:
    """Thin read wrapper over a `google.cloud.firestore.Client`."""

    def __init__(self, db: Any) -> None:
        self._db = db

    @classmethod
    def from_settings(cls, settings: FirestoreSettings) -> "FirestoreClient":
        return cls(firestore.client(get_firebase_app(settings)))

    def get_document(self, *, collection: str, document_id: str) -> dict[str, Any] | None:
        """Return one document as a row with its `id`, or None when missing."""

        if not is_valid_document_id(document_id):
            return None
        try:
            snapshot = self._db.collection(collection).document(document_id).get()
        except GoogleAPIError as exc:
            raise FetchError(f"Firestore read failed for {collection}/{document_id}: {exc}") from exc
        if not snapshot.exists:
            return None
        return _snapshot_to_row(snapshot)

    def list_documents(
        self,
        *,
        collection: str,
        order_by: str,
        limit: int,
        descending: bool = True,
        start_after_id: str | None = None,
    ) -> list[dict[str, Any]]:
        """Return an ordered window of documents, resuming after `start_after_id`.

        An unknown `start_after_id`, or one that is not a valid document id,
        yields no rows rather than restarting from the top.
        """

        direction = firestore.Query.DESCENDING if descending else firestore.Query.ASCENDING
        try:
            collection_ref = self._db.collection(collection)
            query = collection_ref.order_by(order_by, direction=direction)
            if start_after_id is not None:
                if not is_valid_document_id(start_after_id):
                    return []
                cursor_snapshot = collection_ref.document(start_after_id).get()
                if not cursor_snapshot.exists:
                    return []
                query = query.start_after(cursor_snapshot)
            return [_snapshot_to_row(snapshot) for snapshot in query.limit(limit).stream()]
        except GoogleAPIError as exc:
            raise FetchError(f"Firestore query failed for {collection}: {exc}") from exc

    def find_documents(self, *, collection: str, field: str, value: Any) -> list[dict[str, Any]]:
        """Return every document whose `field` equals `value`, unordered."""

        try:
            query = self._db.collection(collection).where(filter=FieldFilter(field, "==", value))
            return [_snapshot_to_row(snapshot) for snapshot in query.stream()]
        except GoogleAPIError as exc:
            raise FetchError(f"Firestore query failed for {collection}.{field}: {exc}") from exc
