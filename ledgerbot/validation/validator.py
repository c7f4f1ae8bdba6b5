"""
Input Validation

DESIGN DECISION: Operator input is checked before anything is written
or sent. Two things are validated:

- COUNTERPARTY: digits only, at least one digit. No normalization
  (no stripping of "+91", no removal of spaces inside the number).
- AMOUNT: a finite decimal strictly greater than zero.

IMPORTANT: Validation NEVER silently fixes input. "12abc" is rejected,
not read as 12. The rejected value is reported back with the issue.
"""

import re
from decimal import Decimal, InvalidOperation
from typing import Optional, Union

from ledgerbot.exceptions import LedgerBotError
from ledgerbot.models.transaction import COUNTERPARTY_REGEX, ValidationIssue


_COUNTERPARTY = re.compile(COUNTERPARTY_REGEX)


class ValidationError(LedgerBotError):
    """Operator input failed validation; nothing was written."""

    def __init__(self, issue: ValidationIssue):
        self.issue = issue
        super().__init__(issue.message)

    @property
    def field(self) -> str:
        return self.issue.field


def validate_counterparty(value: Optional[str]) -> str:
    """Return the counterparty unchanged, or raise ValidationError."""
    if value is None or not _COUNTERPARTY.fullmatch(value):
        raise ValidationError(ValidationIssue(
            field="counterparty",
            issue_type="invalid_format",
            message="Invalid number format. Please use digits only.",
            value=value,
        ))
    return value


def parse_amount(value: Union[str, int, float, Decimal, None]) -> Decimal:
    """
    Convert operator input into a positive Decimal.

    Floats go through str() so 0.1 stays 0.1.
    """
    if isinstance(value, bool) or value is None:
        amount = None
    else:
        try:
            amount = Decimal(str(value).strip())
        except InvalidOperation:
            amount = None

    if amount is None or not amount.is_finite() or amount <= 0:
        raise ValidationError(ValidationIssue(
            field="amount",
            issue_type="invalid_value",
            message="Invalid amount. Please enter a positive number.",
            value=None if value is None else str(value),
        ))
    return amount


def normalize_details(value: Optional[str]) -> Optional[str]:
    """Empty and absent annotations are both stored as None."""
    if value is None:
        return None
    value = value.strip()
    return value or None
