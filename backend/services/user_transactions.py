"""Transaction feed for the signed-in user."""

from __future__ import annotations

import logging
import threading

from backend.errors import LimitterError
from backend.repositories.transactions_repository import TransactionsRepository
from shared.models import Transaction, TransactionType


logger = logging.getLogger(__name__)

_TYPE_LABELS = {
    TransactionType.PLAN_PURCHASE.value: "Plan Purchase",
    TransactionType.OVERRIDE_PURCHASE.value: "Override Purchase",
}


class UserTransactionList:
    """Hold one user's transactions, refetching whenever the user identity changes."""

    def __init__(self, accessor: TransactionsRepository) -> None:
        self._accessor = accessor
        self._lock = threading.Lock()
        self._generation = 0
        self._user_id: str | None = None
        self._transactions: list[Transaction] = []
        self.loading = False

    @property
    def user_id(self) -> str | None:
        return self._user_id

    @property
    def transactions(self) -> list[Transaction]:
        with self._lock:
            return list(self._transactions)

    def set_user(self, user_id: str | None) -> list[Transaction]:
        """Point the list at `user_id` and fetch when it differs from the current one.

        A missing id clears the list without fetching. A failed fetch
        leaves the list empty; there is no retry.
        """

        user_id = user_id or None
        with self._lock:
            if user_id == self._user_id:
                return list(self._transactions)
            self._user_id = user_id
            self._generation += 1
            generation = self._generation
            if user_id is None:
                self._transactions = []
                self.loading = False
                return []
            self.loading = True

        try:
            fetched = self._accessor.get_transactions(user_id)
        except LimitterError:
            logger.exception("user_transactions_fetch_failed user_id=%s", user_id)
            fetched = []

        with self._lock:
            if generation != self._generation:
                logger.info("user_transactions_stale_result_discarded user_id=%s", user_id)
                return list(self._transactions)
            self._transactions = list(fetched)
            self.loading = False
            return list(self._transactions)

    def rows(self) -> list[dict[str, str]]:
        """Return feed rows, newest first, with display formatting applied."""

        return [
            {
                "id": transaction.id,
                "label": _TYPE_LABELS.get(transaction.type, "Purchase"),
                "amount": transaction.formatted_amount,
                "date": transaction.formatted_date,
                "status": transaction.status,
            }
            for transaction in self.transactions
        ]
