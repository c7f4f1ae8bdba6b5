"""Transaction ledger package."""

from ledgerbot.ledger.ledger import Clock, Ledger, utc_now

__all__ = ["Clock", "Ledger", "utc_now"]
