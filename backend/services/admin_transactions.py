"""Admin transaction browser: paginated listing, search and a detail overlay.

The browser is a state holder driven by user actions (first load, load
more, search, open/close detail). Store calls run outside the state lock;
every fetch is stamped with a generation number and its result is dropped
when a newer fetch has started since, so the last action wins.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum

from backend.errors import LimitterError
from backend.repositories.transactions_repository import TransactionsRepository
from shared.models import Transaction, TransactionDetails, TransactionPage


logger = logging.getLogger(__name__)


class BrowserMode(str, Enum):
    LISTING = "listing"
    SEARCHING = "searching"


_STATUS_TONES = {"completed": "success", "pending": "warning", "failed": "danger"}


def status_tone(status: str | None) -> str:
    """Return the badge tone for a transaction status."""
    return _STATUS_TONES.get((status or "").lower(), "neutral")


def type_label(transaction_type: str | None) -> str:
    return (transaction_type or "").replace("_", " ").upper()


@dataclass(frozen=True, slots=True)
class BrowserState:
    """Immutable view of the browser after an action."""

    mode: BrowserMode
    transactions: tuple[Transaction, ...]
    has_more: bool
    loading: bool
    search_term: str
    detail: TransactionDetails | None

    def rows(self) -> list[dict[str, str]]:
        """Return table rows in display order."""

        return [
            {
                "id": transaction.id,
                "type": type_label(transaction.type),
                "user_id": transaction.user_id,
                "amount": transaction.formatted_amount,
                "status": transaction.status,
                "status_tone": status_tone(transaction.status),
                "date": transaction.formatted_date,
            }
            for transaction in self.transactions
        ]


class AdminTransactionBrowser:
    """Drive the admin transaction table over a transactions accessor."""

    def __init__(self, accessor: TransactionsRepository) -> None:
        self._accessor = accessor
        self._lock = threading.Lock()
        self._generation = 0
        self._detail_generation = 0
        self._mode = BrowserMode.LISTING
        self._transactions: list[Transaction] = []
        self._cursor: str | None = None
        self._has_more = True
        self._loading = False
        self._search_term = ""
        self._detail: TransactionDetails | None = None

    @property
    def state(self) -> BrowserState:
        with self._lock:
            return self._snapshot()

    def _snapshot(self) -> BrowserState:
        return BrowserState(
            mode=self._mode,
            transactions=tuple(self._transactions),
            has_more=self._has_more,
            loading=self._loading,
            search_term=self._search_term,
            detail=self._detail,
        )

    def _begin_fetch(self) -> int:
        self._generation += 1
        self._loading = True
        return self._generation

    def _finish_stale(self, generation: int, action: str) -> BrowserState | None:
        """Return the current state when `generation` was superseded, else None."""

        if generation == self._generation:
            return None
        logger.info(
            "admin_transactions_stale_result_discarded action=%s generation=%s current=%s",
            action,
            generation,
            self._generation,
        )
        return self._snapshot()

    def load_first_page(self) -> BrowserState:
        """Fetch the first page and replace whatever is displayed."""
        return self._load_page(append=False)

    def load_more(self) -> BrowserState:
        """Append the next page; ignored outside listing mode or past the end."""

        with self._lock:
            if self._mode is not BrowserMode.LISTING or not self._has_more:
                return self._snapshot()
        return self._load_page(append=True)

    def _load_page(self, *, append: bool) -> BrowserState:
        with self._lock:
            generation = self._begin_fetch()
            cursor = self._cursor if append else None

        try:
            page: TransactionPage = self._accessor.list_all_transactions(cursor)
        except LimitterError:
            logger.exception("admin_transactions_load_failed append=%s", append)
            with self._lock:
                stale = self._finish_stale(generation, "load_page")
                if stale is not None:
                    return stale
                self._loading = False
                return self._snapshot()

        with self._lock:
            stale = self._finish_stale(generation, "load_page")
            if stale is not None:
                return stale
            if append:
                self._transactions = [*self._transactions, *page.transactions]
            else:
                self._transactions = list(page.transactions)
                self._mode = BrowserMode.LISTING
                self._search_term = ""
            self._cursor = page.last_doc
            # An empty page ends pagination whatever the store claims.
            self._has_more = page.has_more and bool(page.transactions)
            self._loading = False
            return self._snapshot()

    def search(self, term: str) -> BrowserState:
        """Replace the table with search results; a blank term reloads the first page."""

        needle = (term or "").strip()
        if not needle:
            return self.load_first_page()

        with self._lock:
            generation = self._begin_fetch()

        try:
            results = self._accessor.search_transactions(needle)
        except LimitterError:
            logger.exception("admin_transactions_search_failed term_length=%s", len(needle))
            with self._lock:
                stale = self._finish_stale(generation, "search")
                if stale is not None:
                    return stale
                self._loading = False
                return self._snapshot()

        with self._lock:
            stale = self._finish_stale(generation, "search")
            if stale is not None:
                return stale
            self._mode = BrowserMode.SEARCHING
            self._search_term = needle
            self._transactions = list(results)
            self._cursor = None
            self._has_more = False
            self._loading = False
            return self._snapshot()

    def open_detail(self, transaction_id: str) -> BrowserState:
        """Overlay one transaction's full record; the table underneath is untouched."""

        with self._lock:
            self._detail_generation += 1
            generation = self._detail_generation

        try:
            details = self._accessor.get_transaction_details(transaction_id)
        except LimitterError:
            logger.exception("admin_transaction_details_failed transaction_id=%s", transaction_id)
            return self.state

        with self._lock:
            if generation == self._detail_generation:
                self._detail = details
            return self._snapshot()

    def close_detail(self) -> BrowserState:
        with self._lock:
            # Also voids any detail fetch still in flight.
            self._detail_generation += 1
            self._detail = None
            return self._snapshot()
