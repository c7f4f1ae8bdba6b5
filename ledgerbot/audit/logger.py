"""
Audit Logger

DESIGN DECISION: Every command the bot handles is logged.
This provides:
1. Complete traceability (who asked for what, who was notified)
2. Debugging capability
3. A history the operator can look at in the console

The audit logger:
- Is async to fit the command flow
- Gracefully handles failures (doesn't break a command if logging fails)
- Supports correlation IDs to trace everything one command caused
"""

import logging
from typing import Optional
from uuid import UUID, uuid4

import structlog

from ledgerbot.models.audit import AuditEvent, AuditEventBuilder
from ledgerbot.services.storage import AuditStorageInterface


def configure_logging(level: str = "INFO") -> None:
    """Configure structlog for local JSON logging."""
    logging.basicConfig(format="%(message)s", level=getattr(logging, level.upper(), logging.INFO))
    logging.getLogger().setLevel(getattr(logging, level.upper(), logging.INFO))

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer(ensure_ascii=False)
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging()


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. The audit_log table (for persistence and operator visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("ledgerbot.audit")

    @property
    def storage(self) -> Optional[AuditStorageInterface]:
        return self._storage

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_command_received(
        self,
        sender: str,
        command: str,
        correlation_id: UUID,
        text: Optional[str] = None,
    ) -> None:
        await self.log(AuditEventBuilder.command_received(
            sender=sender,
            command=command,
            correlation_id=correlation_id,
            text=text,
        ))

    async def log_command_rejected(
        self,
        sender: str,
        command: str,
        reason: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.command_rejected(
            sender=sender,
            command=command,
            reason=reason,
            correlation_id=correlation_id,
        ))

    async def log_unauthorized_sender(
        self,
        sender: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.unauthorized_sender(
            sender=sender,
            correlation_id=correlation_id,
        ))

    async def log_parse_failed(
        self,
        token: str,
        kind: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.parse_failed(
            token=token,
            kind=kind,
            correlation_id=correlation_id,
        ))

    async def log_validation_failed(
        self,
        field: str,
        issue_type: str,
        message: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.validation_failed(
            field=field,
            issue_type=issue_type,
            message=message,
            correlation_id=correlation_id,
        ))

    async def log_transaction_recorded(
        self,
        transaction_id: int,
        counterparty: str,
        amount: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.transaction_recorded(
            transaction_id=transaction_id,
            counterparty=counterparty,
            amount=amount,
            correlation_id=correlation_id,
        ))

    async def log_query_executed(
        self,
        counterparty: str,
        window_kind: str,
        result_count: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.query_executed(
            counterparty=counterparty,
            window_kind=window_kind,
            result_count=result_count,
            correlation_id=correlation_id,
        ))

    async def log_notification_sent(
        self,
        recipient: str,
        amount: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.notification_sent(
            recipient=recipient,
            amount=amount,
            correlation_id=correlation_id,
        ))

    async def log_bill_sent(
        self,
        recipient: str,
        total: str,
        period: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.bill_sent(
            recipient=recipient,
            total=total,
            period=period,
            correlation_id=correlation_id,
        ))

    async def log_storage_error(
        self,
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.storage_error(
            operation=operation,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this when a new command arrives.
    Pass it through all subsequent operations.
    """
    return uuid4()
