"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Keep the ledger's rules (validation, ordering) out of SQL
2. Use a throwaway file per test
3. Swap SQLite for another embedded store later

The interface is intentionally simple - we're not building a full ORM.
Just the operations an append-only ledger needs.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from ledgerbot.exceptions import LedgerBotError
from ledgerbot.models.audit import AuditEvent
from ledgerbot.models.transaction import Transaction


class TransactionStorageInterface(ABC):
    """
    Abstract interface for transaction storage.

    Any storage implementation must implement these methods.
    Implementations are append-only: there is no update or delete.
    """

    @abstractmethod
    def open(self) -> None:
        """
        Acquire the underlying store (create it if missing).

        Raises:
            ConnectionError: If the store cannot be opened
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """Release the underlying store. Safe to call twice."""
        pass

    @abstractmethod
    def insert_transaction(
        self,
        counterparty: str,
        amount: Decimal,
        details: Optional[str],
        now: datetime,
    ) -> Transaction:
        """
        Insert one row atomically and return it as stored.

        The store stamps occurred_at and recorded_at from `now`, pushing
        recorded_at forward if needed so it is strictly greater than
        every earlier row's. The row is committed before returning.

        Raises:
            StorageError: If the write fails (nothing is written)
        """
        pass

    @abstractmethod
    def list_amounts(self, counterparty: str) -> list[Decimal]:
        """
        All amounts recorded for a counterparty.

        Returns:
            Possibly empty list of amounts
        """
        pass

    @abstractmethod
    def get_latest(self, counterparty: str) -> Optional[Transaction]:
        """
        The row with the greatest recorded_at for a counterparty.

        Returns:
            The transaction if any exist, None otherwise
        """
        pass

    @abstractmethod
    def list_transactions(
        self,
        counterparty: str,
        occurred_from: Optional[datetime] = None,
        occurred_to: Optional[datetime] = None,
    ) -> list[Transaction]:
        """
        Transactions for a counterparty with occurred_at in range.

        Args:
            counterparty: Digits-only identifier
            occurred_from: Inclusive lower bound (None = unbounded)
            occurred_to: Inclusive upper bound (None = unbounded)

        Returns:
            Matching transactions, most recently recorded first
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one command).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(LedgerBotError):
    """Base exception for storage operations."""
    pass


class ConnectionError(StorageError):
    """Could not open the storage backend."""
    pass
