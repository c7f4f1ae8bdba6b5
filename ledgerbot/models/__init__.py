"""
Data Models Package

This package contains all Pydantic models used in Ledgerbot.
All data flowing through the system must conform to these schemas.
"""

from ledgerbot.models.transaction import (
    COUNTERPARTY_REGEX,
    EPOCH,
    ExactDayWindow,
    MonthWindow,
    SinceWindow,
    Transaction,
    ValidationIssue,
    Window,
)
from ledgerbot.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Transaction models
    "COUNTERPARTY_REGEX",
    "EPOCH",
    "ExactDayWindow",
    "MonthWindow",
    "SinceWindow",
    "Transaction",
    "ValidationIssue",
    "Window",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
