"""
Audit Models for Ledgerbot

Every significant action in the system is logged for audit purposes.
This provides:
1. Complete traceability of every command the operator sent
2. Debugging information when things go wrong
3. Ability to reconstruct who was notified of what

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every step of command handling has its own event type.
    """
    # Inbound commands
    COMMAND_RECEIVED = "command_received"
    COMMAND_REJECTED = "command_rejected"
    UNAUTHORIZED_SENDER = "unauthorized_sender"

    # Input problems
    PARSE_FAILED = "parse_failed"
    VALIDATION_FAILED = "validation_failed"

    # Ledger
    TRANSACTION_RECORDED = "transaction_recorded"
    QUERY_EXECUTED = "query_executed"

    # Outbound messages
    NOTIFICATION_SENT = "notification_sent"
    BILL_SENT = "bill_sent"

    # System events
    STORAGE_ERROR = "storage_error"
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transaction', 'counterparty', 'command')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., everything one command caused)"
    )

    # Event details
    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )

    # Additional data (event-specific)
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_message: Optional[str] = None

    # User action tracking
    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by an operator command?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.command_received(sender, "send", correlation_id)
        event = AuditEventBuilder.transaction_recorded(txn, correlation_id)
    """

    @staticmethod
    def command_received(
        sender: str,
        command: str,
        correlation_id: UUID,
        text: Optional[str] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.COMMAND_RECEIVED,
            entity_type="command",
            entity_id=command,
            correlation_id=correlation_id,
            description=f"Command received: {command}",
            details={
                "sender": sender,
                "command": command,
                "text": text,
            },
            is_user_action=True,
        )

    @staticmethod
    def command_rejected(
        sender: str,
        command: str,
        reason: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.COMMAND_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="command",
            entity_id=command,
            correlation_id=correlation_id,
            description=f"Command rejected: {command}",
            details={
                "sender": sender,
                "reason": reason,
            },
            is_user_action=True,
        )

    @staticmethod
    def unauthorized_sender(
        sender: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.UNAUTHORIZED_SENDER,
            severity=AuditSeverity.WARNING,
            entity_type="sender",
            entity_id=sender,
            correlation_id=correlation_id,
            description="Message ignored: sender is not on the allow-list",
            details={
                "sender": sender,
            },
        )

    @staticmethod
    def parse_failed(
        token: str,
        kind: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PARSE_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="token",
            entity_id=token,
            correlation_id=correlation_id,
            description=f"Could not resolve period token ({kind})",
            details={
                "token": token,
                "kind": kind,
            },
        )

    @staticmethod
    def validation_failed(
        field: str,
        issue_type: str,
        message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="input",
            entity_id=field,
            correlation_id=correlation_id,
            description=f"Validation failed for {field}",
            details={
                "field": field,
                "issue_type": issue_type,
                "message": message,
            },
        )

    @staticmethod
    def transaction_recorded(
        transaction_id: int,
        counterparty: str,
        amount: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_RECORDED,
            entity_type="transaction",
            entity_id=str(transaction_id),
            correlation_id=correlation_id,
            description=f"Transaction recorded: {counterparty} - {amount}",
            details={
                "counterparty": counterparty,
                "amount": amount,
            },
        )

    @staticmethod
    def query_executed(
        counterparty: str,
        window_kind: str,
        result_count: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.QUERY_EXECUTED,
            entity_type="counterparty",
            entity_id=counterparty,
            correlation_id=correlation_id,
            description=f"Query executed: {window_kind} returned {result_count} results",
            details={
                "window_kind": window_kind,
                "result_count": result_count,
            },
        )

    @staticmethod
    def notification_sent(
        recipient: str,
        amount: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.NOTIFICATION_SENT,
            entity_type="recipient",
            entity_id=recipient,
            correlation_id=correlation_id,
            description=f"Payment notification sent to {recipient}",
            details={
                "amount": amount,
            },
        )

    @staticmethod
    def bill_sent(
        recipient: str,
        total: str,
        period: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BILL_SENT,
            entity_type="recipient",
            entity_id=recipient,
            correlation_id=correlation_id,
            description=f"Bill summary sent to {recipient}",
            details={
                "total": total,
                "period": period,
            },
        )

    @staticmethod
    def storage_error(
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"Storage error during {operation}",
            error_message=error_message,
            details={
                "operation": operation,
            },
            correlation_id=correlation_id,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
