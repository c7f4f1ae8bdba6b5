"""
Transaction Ledger

DESIGN DECISION: The ledger is the only way in or out of the store.
Callers hand it a counterparty and, for queries, a window from the
resolver. It hands back Transaction models and Decimal sums.

GUARANTEES:
- Append is all-or-nothing and durable before it returns
- Every query reads the store; nothing is cached
- "No rows" is an empty list or zero, never an error
- Store failures surface as StorageError
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Iterable, Optional, Union

import structlog

from ledgerbot.models.transaction import Transaction, Window
from ledgerbot.services.storage import TransactionStorageInterface
from ledgerbot.validation import normalize_details, parse_amount, validate_counterparty


Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Ledger:
    """
    Append-only transaction ledger.

    Use it as a context manager so the store is always released:

        with Ledger(SqliteTransactionStorage()) as ledger:
            ledger.append("9876543210", Decimal("500"), "grocery")
    """

    def __init__(
        self,
        storage: TransactionStorageInterface,
        clock: Optional[Clock] = None,
    ):
        self._storage = storage
        self._clock = clock or utc_now
        self._is_open = False
        self._logger = structlog.get_logger(__name__)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def open(self) -> "Ledger":
        if not self._is_open:
            self._storage.open()
            self._is_open = True
        return self

    def close(self) -> None:
        if self._is_open:
            self._storage.close()
            self._is_open = False

    @property
    def is_open(self) -> bool:
        return self._is_open

    def __enter__(self) -> "Ledger":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def append(
        self,
        counterparty: str,
        amount: Union[Decimal, int, float, str],
        details: Optional[str] = None,
    ) -> Transaction:
        """
        Record a transaction and return it as stored.

        The caller validates first; the ledger checks again so nothing
        invalid can reach the store.

        Raises:
            ValidationError: Bad counterparty or non-positive amount
            StorageError: The write failed (nothing was written)
        """
        counterparty = validate_counterparty(counterparty)
        amount = parse_amount(amount)
        details = normalize_details(details)

        transaction = self._storage.insert_transaction(
            counterparty=counterparty,
            amount=amount,
            details=details,
            now=self._clock(),
        )
        self._logger.info(
            "transaction_appended",
            transaction_id=transaction.id,
            counterparty=counterparty,
            amount=str(amount),
        )
        return transaction

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def total_for(self, counterparty: str) -> Decimal:
        """Sum of every amount recorded for a counterparty (0 if none)."""
        return sum(self._storage.list_amounts(counterparty), Decimal(0))

    def last_for(self, counterparty: str) -> Optional[Transaction]:
        """Most recently recorded transaction, or None."""
        return self._storage.get_latest(counterparty)

    def query_by_window(self, counterparty: str, window: Window) -> list[Transaction]:
        """
        Transactions whose occurred_at falls inside the window.

        Day and month windows include both ends. A since-window includes
        its cutoff and has no upper bound. Most recent first.
        """
        lower, upper = window.bounds()
        transactions = self._storage.list_transactions(
            counterparty,
            occurred_from=lower,
            occurred_to=upper,
        )
        self._logger.debug(
            "window_queried",
            counterparty=counterparty,
            window_kind=window.kind,
            result_count=len(transactions),
        )
        return transactions

    @staticmethod
    def aggregate(transactions: Iterable[Transaction]) -> Decimal:
        """Sum of amounts; 0 for an empty sequence."""
        return sum((t.amount for t in transactions), Decimal(0))
