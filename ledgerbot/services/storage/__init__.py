"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Currently implements a single SQLite file as the backend, but designed to be
swappable.
"""

from ledgerbot.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    StorageError,
    TransactionStorageInterface,
)
from ledgerbot.services.storage.sqlite import (
    SqliteAuditStorage,
    SqliteClient,
    SqliteTransactionStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "TransactionStorageInterface",
    # Exceptions
    "ConnectionError",
    "StorageError",
    # SQLite implementation
    "SqliteAuditStorage",
    "SqliteClient",
    "SqliteTransactionStorage",
]
