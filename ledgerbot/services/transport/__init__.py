"""Messaging transport package."""

from ledgerbot.services.transport.interface import (
    MessageTransport,
    OutboundMessage,
    TransportError,
    recipient_jid,
)
from ledgerbot.services.transport.memory import InMemoryTransport

__all__ = [
    "InMemoryTransport",
    "MessageTransport",
    "OutboundMessage",
    "TransportError",
    "recipient_jid",
]
