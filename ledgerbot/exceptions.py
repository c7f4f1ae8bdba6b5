"""
Base exception for Ledgerbot.

Each layer defines its own errors next to the code that raises them
(ParseError in the resolver, ValidationError in validation,
StorageError in storage). They all share this base so the command
layer can tell "our" failures from unexpected ones.
"""


class LedgerBotError(Exception):
    """Base exception for all expected Ledgerbot failures."""
    pass
