"""Input validation package."""

from ledgerbot.validation.validator import (
    ValidationError,
    normalize_details,
    parse_amount,
    validate_counterparty,
)

__all__ = [
    "ValidationError",
    "normalize_details",
    "parse_amount",
    "validate_counterparty",
]
