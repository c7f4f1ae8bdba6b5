"""Services package."""

from ledgerbot.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    SqliteAuditStorage,
    SqliteClient,
    SqliteTransactionStorage,
    StorageError,
    TransactionStorageInterface,
)
from ledgerbot.services.transport import (
    InMemoryTransport,
    MessageTransport,
    OutboundMessage,
    TransportError,
    recipient_jid,
)

__all__ = [
    # Storage services
    "AuditStorageInterface",
    "ConnectionError",
    "SqliteAuditStorage",
    "SqliteClient",
    "SqliteTransactionStorage",
    "StorageError",
    "TransactionStorageInterface",
    # Transport services
    "InMemoryTransport",
    "MessageTransport",
    "OutboundMessage",
    "TransportError",
    "recipient_jid",
]
