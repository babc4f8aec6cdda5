"""Transactions repository adapters.

Transactions are purchase records written by the payment completion path
into the `transactions` collection. Every operation here is read-only.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Protocol

from pydantic import ValidationError as PydanticValidationError

from backend.db.firestore_client import FirestoreClient
from backend.errors import FetchError, NotFoundError
from backend.repositories.users_repository import UsersRepository, transaction_user_from_profile
from shared.models import (
    PAGE_SIZE,
    Transaction,
    TransactionDetails,
    TransactionPage,
    build_transaction,
)


logger = logging.getLogger(__name__)

TRANSACTIONS_COLLECTION = "transactions"
_ORDER_FIELD = "timestamp"
# Keys that duplicate top-level fields and never belong to a metadata variant.
_ROUTING_METADATA_KEYS = frozenset({"paymentType", "payment_type", "userId", "user_id", "type"})


class TransactionsRepository(Protocol):
    def list_all_transactions(self, cursor: str | None = None) -> TransactionPage:
        """Return one page of all transactions, newest first, resuming after `cursor`."""

    def search_transactions(self, term: str) -> list[Transaction]:
        """Return transactions whose id or user id equals `term`, newest first."""

    def get_transaction_details(self, transaction_id: str) -> TransactionDetails:
        """Return one transaction joined with its owner profile."""

    def get_transactions(self, user_id: str) -> list[Transaction]:
        """Return one user's transactions, newest first."""


def _parse_timestamp(raw: Any) -> Any:
    if isinstance(raw, (int, float)):
        return datetime.fromtimestamp(raw, tz=timezone.utc)
    if isinstance(raw, dict) and "seconds" in raw:
        return datetime.fromtimestamp(raw["seconds"], tz=timezone.utc)
    if isinstance(raw, str):
        raw = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    if isinstance(raw, datetime) and raw.tzinfo is None:
        return raw.replace(tzinfo=timezone.utc)
    return raw


def parse_transaction_row(row: dict[str, Any]) -> Transaction:
    """Validate a stored transaction document into its tagged variant.

    Raises pydantic's `ValidationError` when the document does not match
    the variant selected by its `type`.
    """

    metadata = {
        key: value
        for key, value in dict(row.get("metadata") or {}).items()
        if key not in _ROUTING_METADATA_KEYS and value is not None
    }
    transaction_type = row.get("type")
    if transaction_type == "plan_purchase" and "plan" not in metadata and row.get("plan"):
        metadata["plan"] = row["plan"]
    if transaction_type == "override_purchase" and "quantity" not in metadata and row.get("quantity"):
        metadata["quantity"] = row["quantity"]

    raw_amount = row.get("amount")
    return build_transaction(
        {
            "id": str(row.get("id")),
            "user_id": row.get("user_id") or row.get("userId"),
            "type": transaction_type,
            "amount": Decimal(str(raw_amount)) if raw_amount is not None else None,
            "status": row.get("status") or "pending",
            "timestamp": _parse_timestamp(row.get(_ORDER_FIELD)),
            "metadata": metadata,
        }
    )


def _parse_rows(rows: Iterable[dict[str, Any]]) -> list[Transaction]:
    transactions: list[Transaction] = []
    for row in rows:
        try:
            transactions.append(parse_transaction_row(row))
        except (PydanticValidationError, InvalidOperation, ValueError, TypeError):
            logger.warning("transaction_document_invalid id=%s", row.get("id"), exc_info=True)
    return transactions


def _newest_first(transactions: Iterable[Transaction]) -> list[Transaction]:
    return sorted(transactions, key=lambda item: (item.timestamp, item.id), reverse=True)


def _build_details(
    row: dict[str, Any],
    users_repository: UsersRepository,
) -> TransactionDetails:
    try:
        transaction = parse_transaction_row(row)
    except (PydanticValidationError, InvalidOperation, ValueError, TypeError) as exc:
        raise FetchError(f"Transaction {row.get('id')} is malformed") from exc

    payment_method = row.get("payment_method") or row.get("paymentMethod")
    profile = users_repository.get_user_profile(transaction.user_id)
    return TransactionDetails(
        transaction=transaction,
        transaction_id=transaction.id,
        payment_method=str(payment_method) if payment_method else None,
        user=transaction_user_from_profile(profile),
    )


class InMemoryTransactionsRepository:
    """In-memory fallback holding transaction documents as plain rows."""

    def __init__(
        self,
        rows: Iterable[dict[str, Any]] | None = None,
        *,
        users_repository: UsersRepository,
        page_size: int = PAGE_SIZE,
    ) -> None:
        self._rows = {str(row["id"]): dict(row) for row in (rows or [])}
        self._users_repository = users_repository
        self._page_size = page_size
        self._ordered = _newest_first(_parse_rows(self._rows.values()))

    def list_all_transactions(self, cursor: str | None = None) -> TransactionPage:
        start = 0
        if cursor is not None:
            positions = {transaction.id: index for index, transaction in enumerate(self._ordered)}
            if cursor not in positions:
                return TransactionPage(transactions=[], last_doc=None, has_more=False)
            start = positions[cursor] + 1

        window = self._ordered[start : start + self._page_size + 1]
        page = window[: self._page_size]
        return TransactionPage(
            transactions=page,
            last_doc=page[-1].id if page else None,
            has_more=len(window) > self._page_size,
        )

    def search_transactions(self, term: str) -> list[Transaction]:
        needle = (term or "").strip()
        if not needle:
            return []
        return [
            transaction
            for transaction in self._ordered
            if transaction.id == needle or transaction.user_id == needle
        ]

    def get_transaction_details(self, transaction_id: str) -> TransactionDetails:
        row = self._rows.get(transaction_id)
        if row is None:
            raise NotFoundError(f"Transaction {transaction_id} not found")
        return _build_details(row, self._users_repository)

    def get_transactions(self, user_id: str) -> list[Transaction]:
        return [transaction for transaction in self._ordered if transaction.user_id == user_id]


class FirestoreTransactionsRepository:
    """Firestore repository reading the `transactions` collection."""

    def __init__(
        self,
        client: FirestoreClient,
        *,
        users_repository: UsersRepository,
        page_size: int = PAGE_SIZE,
    ) -> None:
        self._client = client
        self._users_repository = users_repository
        self._page_size = page_size

    def list_all_transactions(self, cursor: str | None = None) -> TransactionPage:
        """Return the next page holding at least one valid transaction.

        A window whose documents all fail validation is skipped, so the page
        is empty only when the collection is exhausted.
        """

        while True:
            # One extra row tells whether another page exists.
            rows = self._client.list_documents(
                collection=TRANSACTIONS_COLLECTION,
                order_by=_ORDER_FIELD,
                limit=self._page_size + 1,
                start_after_id=cursor,
            )
            page_rows = rows[: self._page_size]
            transactions = _parse_rows(page_rows)
            has_more = len(rows) > self._page_size
            last_doc = str(page_rows[-1]["id"]) if page_rows else None
            if transactions or not has_more:
                return TransactionPage(transactions=transactions, last_doc=last_doc, has_more=has_more)
            logger.warning("transactions_page_all_invalid last_doc=%s", last_doc)
            cursor = last_doc

    def search_transactions(self, term: str) -> list[Transaction]:
        needle = (term or "").strip()
        if not needle:
            return []

        rows_by_id: dict[str, dict[str, Any]] = {}
        by_id = self._client.get_document(collection=TRANSACTIONS_COLLECTION, document_id=needle)
        if by_id is not None:
            rows_by_id[str(by_id["id"])] = by_id
        for row in self._client.find_documents(collection=TRANSACTIONS_COLLECTION, field="user_id", value=needle):
            rows_by_id.setdefault(str(row["id"]), row)

        logger.info("transactions_search term_length=%s matches=%s", len(needle), len(rows_by_id))
        return _newest_first(_parse_rows(rows_by_id.values()))

    def get_transaction_details(self, transaction_id: str) -> TransactionDetails:
        row = None
        if transaction_id:
            row = self._client.get_document(collection=TRANSACTIONS_COLLECTION, document_id=transaction_id)
        if row is None:
            raise NotFoundError(f"Transaction {transaction_id} not found")
        return _build_details(row, self._users_repository)

    def get_transactions(self, user_id: str) -> list[Transaction]:
        rows = self._client.find_documents(collection=TRANSACTIONS_COLLECTION, field="user_id", value=user_id)
        # Sorted here: ordering server-side would need a composite index.
        return _newest_first(_parse_rows(rows))
