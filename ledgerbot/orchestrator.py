"""
Command Orchestrator for ledgerbot

This module ties together all the components and defines the
end-to-end flow for one inbound chat message:

    sender check → parse → validate → resolve period → ledger → reply

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing is written unless counterparty and amount validate
- No total or history is answered without reading the ledger
- Every step is audited under one correlation ID

This is the "glue" that turns resolver and ledger errors into the
specific replies the operator sees.
"""

from datetime import tzinfo
from decimal import Decimal
from typing import Optional
from uuid import UUID

import structlog

from ledgerbot.audit import AuditLogger, configure_logging, create_correlation_id
from ledgerbot.commands import Command, CommandName, parse_command
from ledgerbot.commands import formatting
from ledgerbot.config import BotSettings, get_settings
from ledgerbot.exceptions import LedgerBotError
from ledgerbot.ledger import Clock, Ledger, utc_now
from ledgerbot.models.transaction import Window
from ledgerbot.resolver import ParseError, resolve
from ledgerbot.services.storage import (
    SqliteAuditStorage,
    SqliteClient,
    SqliteTransactionStorage,
    StorageError,
)
from ledgerbot.services.transport import InMemoryTransport, MessageTransport, recipient_jid
from ledgerbot.validation import ValidationError, normalize_details, parse_amount, validate_counterparty


class UsageError(LedgerBotError):
    """A command arrived without the tokens it needs."""

    def __init__(self, usage: str):
        self.usage = usage
        super().__init__(usage)


class CommandFlow:
    """
    Orchestrates one command from an allowed sender.

    Flow:
    1. Sender check → ignore anyone not on the allow-list
    2. Parse → command word and tokens
    3. Dispatch → send / details / bill / help / hint
    4. Reply → operator reply (and recipient message) via the transport

    handle() never raises for bad input; it answers with a message.
    """

    def __init__(
        self,
        ledger: Ledger,
        transport: MessageTransport,
        audit_logger: Optional[AuditLogger] = None,
        bot_settings: Optional[BotSettings] = None,
        tz: Optional[tzinfo] = None,
        clock: Optional[Clock] = None,
    ):
        settings = get_settings() if bot_settings is None or tz is None else None
        self._ledger = ledger
        self._transport = transport
        self._audit_logger = audit_logger
        self._bot = bot_settings or settings.bot
        self._tz = tz or settings.ledger.tzinfo
        self._clock = clock or utc_now
        self._logger = structlog.get_logger(__name__)

    @property
    def ledger(self) -> Ledger:
        return self._ledger

    @property
    def transport(self) -> MessageTransport:
        return self._transport

    def is_allowed(self, sender: str) -> bool:
        """An empty allow-list lets everyone through."""
        allowed = self._bot.allowed_senders_list
        return not allowed or sender in allowed

    async def handle(self, sender: str, text: str) -> Optional[str]:
        """
        Handle one inbound message.

        Returns the reply sent back to the sender, or None when the
        sender is not allowed (nothing is sent in that case).
        """
        correlation_id = create_correlation_id()

        if not self.is_allowed(sender):
            self._logger.info("sender_ignored", sender=sender)
            if self._audit_logger:
                await self._audit_logger.log_unauthorized_sender(
                    sender=sender,
                    correlation_id=correlation_id,
                )
            return None

        command = parse_command(text)
        self._logger.info("command_received", sender=sender, command=command.word)
        if self._audit_logger:
            await self._audit_logger.log_command_received(
                sender=sender,
                command=command.word[:50],
                correlation_id=correlation_id,
                text=command.raw_text,
            )

        try:
            reply = await self._dispatch(command, correlation_id)
        except UsageError as e:
            reply = e.usage
            if self._audit_logger:
                await self._audit_logger.log_command_rejected(
                    sender=sender,
                    command=command.word[:50],
                    reason="missing arguments",
                    correlation_id=correlation_id,
                )
        except ValidationError as e:
            reply = e.issue.message
            if self._audit_logger:
                await self._audit_logger.log_validation_failed(
                    field=e.issue.field,
                    issue_type=e.issue.issue_type,
                    message=e.issue.message,
                    correlation_id=correlation_id,
                )
        except ParseError as e:
            reply = str(e)
            if self._audit_logger:
                await self._audit_logger.log_parse_failed(
                    token=e.token,
                    kind=e.kind.value,
                    correlation_id=correlation_id,
                )
        except StorageError as e:
            self._logger.error("command_storage_failed", command=command.word, error=str(e))
            reply = formatting.GENERIC_ERROR
            if self._audit_logger:
                await self._audit_logger.log_storage_error(
                    operation=command.word,
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
        except Exception as e:
            self._logger.exception("command_failed", command=command.word)
            reply = formatting.GENERIC_ERROR
            if self._audit_logger:
                await self._audit_logger.log_error(
                    error_type=type(e).__name__,
                    error_message=str(e),
                    details={"command": command.raw_text},
                    correlation_id=correlation_id,
                )

        await self._transport.send_text(sender, reply)
        return reply

    async def _dispatch(self, command: Command, correlation_id: UUID) -> str:
        if command.name == CommandName.SEND:
            return await self._send(command, correlation_id)
        if command.name == CommandName.DETAILS:
            return await self._details(command, correlation_id)
        if command.name == CommandName.BILL:
            return await self._bill(command, correlation_id)
        if command.name == CommandName.HELP:
            return formatting.HELP_TEXT
        return formatting.UNKNOWN_COMMAND

    def _resolve(self, command: Command) -> Window:
        return resolve(
            command.period_token,
            command.year_token,
            now=self._clock(),
            tz=self._tz,
        )

    # -------------------------------------------------------------------------
    # send <number> <amount> [details="..."]
    # -------------------------------------------------------------------------

    async def _send(self, command: Command, correlation_id: UUID) -> str:
        if len(command.args) < 2:
            raise UsageError(formatting.SEND_USAGE)

        counterparty = validate_counterparty(command.counterparty)
        amount = parse_amount(command.amount)
        details = normalize_details(command.details)

        transaction = self._ledger.append(counterparty, amount, details)
        if self._audit_logger:
            await self._audit_logger.log_transaction_recorded(
                transaction_id=transaction.id,
                counterparty=counterparty,
                amount=str(amount),
                correlation_id=correlation_id,
            )

        symbol = self._bot.currency_symbol
        recipient = recipient_jid(counterparty, self._bot)
        await self._transport.send_text(
            recipient,
            formatting.render_notification(amount, details, self._bot.sender_display_name, symbol),
        )
        if self._audit_logger:
            await self._audit_logger.log_notification_sent(
                recipient=recipient,
                amount=str(amount),
                correlation_id=correlation_id,
            )

        return formatting.render_send_confirmation(amount, counterparty, details, symbol)

    # -------------------------------------------------------------------------
    # details <number> [period]
    # -------------------------------------------------------------------------

    async def _details(self, command: Command, correlation_id: UUID) -> str:
        if not command.args:
            raise UsageError(formatting.DETAILS_USAGE)

        counterparty = validate_counterparty(command.counterparty)
        symbol = self._bot.currency_symbol

        if command.period_token is None:
            total = self._ledger.total_for(counterparty)
            last = self._ledger.last_for(counterparty)
            await self._log_query(counterparty, "summary", 0 if last is None else 1, correlation_id)
            return formatting.render_summary(counterparty, total, last, symbol, self._tz)

        window = self._resolve(command)
        transactions = self._ledger.query_by_window(counterparty, window)
        await self._log_query(counterparty, window.kind, len(transactions), correlation_id)
        return formatting.render_history(
            counterparty,
            window,
            transactions,
            Ledger.aggregate(transactions),
            symbol,
            self._tz,
        )

    # -------------------------------------------------------------------------
    # bill <number> [period]
    # -------------------------------------------------------------------------

    async def _bill(self, command: Command, correlation_id: UUID) -> str:
        if not command.args:
            raise UsageError(formatting.BILL_USAGE)

        counterparty = validate_counterparty(command.counterparty)

        window: Optional[Window] = None
        if command.period_token is None:
            total = self._ledger.total_for(counterparty)
            await self._log_query(counterparty, "all_time", 1 if total else 0, correlation_id)
        else:
            window = self._resolve(command)
            transactions = self._ledger.query_by_window(counterparty, window)
            total = Ledger.aggregate(transactions)
            await self._log_query(counterparty, window.kind, len(transactions), correlation_id)

        if total == Decimal(0):
            return formatting.render_no_bill(counterparty)

        symbol = self._bot.currency_symbol
        period_text = formatting.bill_period_text(window)
        recipient = recipient_jid(counterparty, self._bot)
        await self._transport.send_text(
            recipient,
            formatting.render_bill(total, period_text, self._bot.sender_display_name, symbol),
        )
        if self._audit_logger:
            await self._audit_logger.log_bill_sent(
                recipient=recipient,
                total=str(total),
                period=period_text,
                correlation_id=correlation_id,
            )

        return formatting.render_bill_confirmation(total, period_text, counterparty, symbol)

    async def _log_query(
        self,
        counterparty: str,
        window_kind: str,
        result_count: int,
        correlation_id: UUID,
    ) -> None:
        if self._audit_logger:
            await self._audit_logger.log_query_executed(
                counterparty=counterparty,
                window_kind=window_kind,
                result_count=result_count,
                correlation_id=correlation_id,
            )


def create_app_components(
    persist_audit: bool = True,
    database_path: Optional[str] = None,
    transport: Optional[MessageTransport] = None,
) -> tuple[CommandFlow, Ledger, SqliteClient]:
    """
    Factory function to create all application components.

    Args:
        persist_audit: Whether audit events go to the audit_log table.
                    Set to False to only log them locally.
        database_path: Ledger file; defaults to LEDGER_DATABASE_PATH.
        transport: Outbound transport; defaults to an InMemoryTransport.

    Returns:
        (command_flow, ledger, sqlite_client) with the ledger already open.
        The caller closes the ledger when done.
    """
    settings = get_settings()
    configure_logging(settings.app.log_level)

    client = SqliteClient(database_path=database_path)
    ledger = Ledger(SqliteTransactionStorage(client)).open()

    if persist_audit:
        audit_logger = AuditLogger(SqliteAuditStorage(client))
    else:
        audit_logger = AuditLogger()  # Local-only logging

    flow = CommandFlow(
        ledger=ledger,
        transport=transport or InMemoryTransport(),
        audit_logger=audit_logger,
        bot_settings=settings.bot,
        tz=settings.ledger.tzinfo,
    )
    return flow, ledger, client
