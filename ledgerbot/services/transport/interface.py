"""
Messaging Transport Interface

The bot only needs two things from a chat network: deliver text T to
address A, and hand inbound text to the command flow. Connecting,
authenticating and reconnecting are the transport's own business.

Addresses are chat JIDs ("919876543210@s.whatsapp.net"). Counterparties
are bare digits; recipient_jid() turns one into the other.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone

from ledgerbot.config import BotSettings
from ledgerbot.exceptions import LedgerBotError


def recipient_jid(counterparty: str, settings: BotSettings) -> str:
    """Chat address for a counterparty number."""
    return f"{settings.country_code}{counterparty}@{settings.jid_domain}"


class TransportError(LedgerBotError):
    """The transport could not deliver a message."""
    pass


@dataclass(frozen=True)
class OutboundMessage:
    """A message handed to the transport."""
    recipient: str
    text: str
    sent_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class MessageTransport(ABC):
    """Abstract outbound side of a chat network."""

    @abstractmethod
    async def send_text(self, recipient: str, text: str) -> None:
        """
        Deliver `text` to `recipient`.

        Raises:
            TransportError: If the message could not be delivered
        """
        pass
