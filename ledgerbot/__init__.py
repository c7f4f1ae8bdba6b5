"""
Ledgerbot - Source Package

A small ledger that an operator drives through chat commands:
record a money-transfer notification against a phone number,
then ask for totals, histories or bills over a date, a rolling
period or a calendar month.

DESIGN PRINCIPLES:
1. The ledger is append-only
2. Dates are resolved deterministically, never guessed
3. Fail early, fail visibly (bad tokens get a specific message)
4. Every command is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Ledgerbot Team"
