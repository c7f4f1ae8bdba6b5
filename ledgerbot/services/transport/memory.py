"""
In-memory transport.

Keeps every outbound message in a list instead of sending it. Used by
the operator console, where the "network" is the screen, and by tests.
"""

from typing import Optional

from ledgerbot.services.transport.interface import MessageTransport, OutboundMessage


class InMemoryTransport(MessageTransport):
    """Collects outbound messages in order."""

    def __init__(self):
        self._outbox: list[OutboundMessage] = []

    async def send_text(self, recipient: str, text: str) -> None:
        self._outbox.append(OutboundMessage(recipient=recipient, text=text))

    @property
    def outbox(self) -> list[OutboundMessage]:
        return list(self._outbox)

    def messages_for(self, recipient: str) -> list[str]:
        return [m.text for m in self._outbox if m.recipient == recipient]

    def last_message(self, recipient: Optional[str] = None) -> Optional[OutboundMessage]:
        for message in reversed(self._outbox):
            if recipient is None or message.recipient == recipient:
                return message
        return None

    def drain(self) -> list[OutboundMessage]:
        """Return and forget everything sent so far."""
        messages, self._outbox = self._outbox, []
        return messages
