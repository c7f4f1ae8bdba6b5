"""
End-to-end tests for the command flow.

The flow runs against a real SQLite ledger and an in-memory transport,
so every test sees exactly what the bot would have sent.
"""

import asyncio
import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from ledgerbot.audit import AuditLogger
from ledgerbot.commands import formatting
from ledgerbot.models.audit import AuditEventType
from ledgerbot.orchestrator import CommandFlow, create_app_components
from ledgerbot.services.storage import SqliteAuditStorage
from ledgerbot.services.transport import InMemoryTransport, TransportError


OPERATOR = "919999999999@s.whatsapp.net"
NUMBER = "9876543210"
RECIPIENT = "919876543210@s.whatsapp.net"


@pytest.fixture
def transport():
    return InMemoryTransport()


@pytest.fixture
def audit_storage(client):
    return SqliteAuditStorage(client)


@pytest.fixture
def flow(ledger, transport, audit_storage, bot_settings, clock):
    return CommandFlow(
        ledger=ledger,
        transport=transport,
        audit_logger=AuditLogger(audit_storage),
        bot_settings=bot_settings,
        tz=timezone.utc,
        clock=clock,
    )


def handle(flow, text, sender=OPERATOR):
    return asyncio.run(flow.handle(sender, text))


class TestSend:
    """send <number> <amount> [details="..."]"""

    def test_send_records_and_notifies(self, flow, transport, ledger):
        reply = handle(flow, f'send {NUMBER} 500 details="grocery payment"')

        assert reply == f"✅ Sent ₹500 notification to {NUMBER}\nWith details: grocery payment"
        assert transport.messages_for(RECIPIENT) == [
            "You have received ₹500 from Vipin Jangir.\nDetails: grocery payment"
        ]
        assert transport.messages_for(OPERATOR) == [reply]
        assert ledger.total_for(NUMBER) == Decimal("500")
        assert ledger.last_for(NUMBER).details == "grocery payment"

    def test_send_without_details(self, flow, transport):
        reply = handle(flow, f"send {NUMBER} 12.50")
        assert reply == f"✅ Sent ₹12.5 notification to {NUMBER}"
        assert transport.messages_for(RECIPIENT) == ["You have received ₹12.5 from Vipin Jangir."]

    @pytest.mark.parametrize("text", ["send", f"send {NUMBER}"])
    def test_missing_arguments(self, flow, ledger, text):
        assert handle(flow, text) == formatting.SEND_USAGE
        assert ledger.total_for(NUMBER) == 0

    def test_bad_number(self, flow, transport):
        reply = handle(flow, "send 98765abc 500")
        assert reply == "Invalid number format. Please use digits only."
        assert [m.recipient for m in transport.outbox] == [OPERATOR]

    @pytest.mark.parametrize("amount", ["0", "-5", "abc", "12abc"])
    def test_bad_amount(self, flow, ledger, amount):
        reply = handle(flow, f"send {NUMBER} {amount}")
        assert reply == "Invalid amount. Please enter a positive number."
        assert ledger.total_for(NUMBER) == 0


class TestDetails:
    """details <number> [period]"""

    def test_summary(self, flow, clock):
        handle(flow, f"send {NUMBER} 500")
        clock.advance(hours=1)
        handle(flow, f'send {NUMBER} 200 details="milk"')

        reply = handle(flow, f"details {NUMBER}")
        assert reply.startswith(
            f"Number: {NUMBER}\nTotal Sent: ₹700\nLast Sent: ₹200 on 20/8/2025 - milk"
        )

    def test_summary_for_unknown_number(self, flow):
        reply = handle(flow, "details 0000000000")
        assert "Total Sent: ₹0" in reply
        assert "Last Sent: No transactions found" in reply

    def test_history_for_period(self, flow, clock):
        clock.set(datetime(2025, 8, 1, 10, tzinfo=timezone.utc))
        handle(flow, f"send {NUMBER} 100")
        clock.set(datetime(2025, 8, 15, 10, tzinfo=timezone.utc))
        handle(flow, f'send {NUMBER} 500 details="grocery"')
        clock.set(datetime(2025, 8, 20, 15, 30, tzinfo=timezone.utc))

        reply = handle(flow, f"details {NUMBER} 10d")
        assert reply == (
            f"Number: {NUMBER}\n"
            "Last 10D transactions:\n"
            "Total: ₹500\n\n"
            "1. ₹500 on 15/8/2025 - grocery\n"
            f"\n{formatting.TIP}"
        )

    def test_month_query(self, flow, clock):
        clock.set(datetime(2025, 2, 10, tzinfo=timezone.utc))
        handle(flow, f"send {NUMBER} 300")
        clock.set(datetime(2025, 8, 20, tzinfo=timezone.utc))

        reply = handle(flow, f"details {NUMBER} month=2 year=25")
        assert "Transactions for month 2/2025:" in reply
        assert "1. ₹300 on 10/2/2025" in reply

    def test_empty_period(self, flow):
        reply = handle(flow, f"details {NUMBER} 5d")
        assert "No transactions found for this period." in reply

    def test_missing_number(self, flow):
        assert handle(flow, "details") == formatting.DETAILS_USAGE

    @pytest.mark.parametrize("text,expected", [
        (f"details {NUMBER} abc", "Invalid format. Use: DD/MM/YY, 10d, 5d, 1m, 2m, 1y, month=9, or month=9 year=25"),
        (f"details {NUMBER} month=13", "Invalid month. Use month=1 to month=12"),
        (f"details {NUMBER} month=2 year=abc", "Invalid year format. Use year=25 or year=2025"),
        (f"details {NUMBER} 31/02/25", "'31/02/25' is not a real calendar date"),
    ])
    def test_bad_period(self, flow, text, expected):
        assert handle(flow, text) == expected

    def test_bad_number(self, flow):
        assert handle(flow, "details +91987") == "Invalid number format. Please use digits only."


class TestBill:
    """bill <number> [period]"""

    def test_bill_all_time(self, flow, transport, clock):
        handle(flow, f"send {NUMBER} 500")
        clock.advance(days=1)
        handle(flow, f"send {NUMBER} 200")
        transport.drain()

        reply = handle(flow, f"bill {NUMBER}")
        assert transport.messages_for(RECIPIENT) == [
            "Total amount received from Vipin Jangir so far: ₹700"
        ]
        assert reply == f"✅ Sent bill summary (₹700) so far to {NUMBER}\n\n{formatting.TIP}"

    def test_bill_for_period(self, flow, transport, clock):
        clock.set(datetime(2025, 7, 1, tzinfo=timezone.utc))
        handle(flow, f"send {NUMBER} 100")
        clock.set(datetime(2025, 8, 20, tzinfo=timezone.utc))
        handle(flow, f"send {NUMBER} 250")
        transport.drain()

        reply = handle(flow, f"bill {NUMBER} 10d")
        assert transport.messages_for(RECIPIENT) == [
            "Total amount received from Vipin Jangir for last 10D: ₹250"
        ]
        assert reply.startswith(f"✅ Sent bill summary (₹250) for last 10D to {NUMBER}")

    def test_no_bill_sends_nothing_to_recipient(self, flow, transport):
        reply = handle(flow, f"bill {NUMBER} 1m")
        assert reply == formatting.render_no_bill(NUMBER)
        assert transport.messages_for(RECIPIENT) == []

    def test_missing_number(self, flow):
        assert handle(flow, "bill") == formatting.BILL_USAGE


class TestDispatch:
    """Help, unknown commands and the allow-list."""

    @pytest.mark.parametrize("text", ["help", "commands"])
    def test_help(self, flow, text):
        assert handle(flow, text) == formatting.HELP_TEXT

    @pytest.mark.parametrize("text", ["hello", "", "balance 123"])
    def test_unknown(self, flow, text):
        assert handle(flow, text) == formatting.UNKNOWN_COMMAND

    def test_unauthorized_sender_is_ignored(self, flow, transport, ledger):
        reply = handle(flow, f"send {NUMBER} 500", sender="911111111111@s.whatsapp.net")
        assert reply is None
        assert transport.outbox == []
        assert ledger.total_for(NUMBER) == 0

    def test_empty_allow_list_allows_everyone(self, ledger, transport, bot_settings, clock):
        settings = bot_settings.model_copy(update={"allowed_senders": ""})
        flow = CommandFlow(ledger, transport, bot_settings=settings, tz=timezone.utc, clock=clock)
        assert handle(flow, "help", sender="anyone@s.whatsapp.net") == formatting.HELP_TEXT


class TestFailures:
    """Unexpected errors become the generic reply."""

    def test_storage_failure(self, flow, ledger):
        ledger.close()
        assert handle(flow, f"details {NUMBER}") == formatting.GENERIC_ERROR

    def test_transport_failure(self, ledger, bot_settings, clock):
        class RecipientDown(InMemoryTransport):
            async def send_text(self, recipient, text):
                if recipient == RECIPIENT:
                    raise TransportError("recipient unreachable")
                await super().send_text(recipient, text)

        transport = RecipientDown()
        flow = CommandFlow(ledger, transport, bot_settings=bot_settings, tz=timezone.utc, clock=clock)

        assert handle(flow, f"send {NUMBER} 500") == formatting.GENERIC_ERROR
        assert transport.messages_for(OPERATOR) == [formatting.GENERIC_ERROR]


class TestAuditTrail:
    """Every command leaves events under one correlation ID."""

    def test_send_events(self, flow, audit_storage):
        handle(flow, f"send {NUMBER} 500")

        events = asyncio.run(audit_storage.get_recent_events())
        types = [e.event_type for e in reversed(events)]
        assert types == [
            AuditEventType.COMMAND_RECEIVED,
            AuditEventType.TRANSACTION_RECORDED,
            AuditEventType.NOTIFICATION_SENT,
        ]
        assert len({e.correlation_id for e in events}) == 1

    def test_parse_failure_event(self, flow, audit_storage):
        handle(flow, f"details {NUMBER} month=13")
        latest = asyncio.run(audit_storage.get_recent_events(limit=1))[0]
        assert latest.event_type == AuditEventType.PARSE_FAILED
        assert latest.details["kind"] == "bad_month"

    def test_unauthorized_event(self, flow, audit_storage):
        handle(flow, "help", sender="intruder@s.whatsapp.net")
        latest = asyncio.run(audit_storage.get_recent_events(limit=1))[0]
        assert latest.event_type == AuditEventType.UNAUTHORIZED_SENDER


class TestCreateAppComponents:
    """Factory wiring."""

    def test_components(self, tmp_path, monkeypatch):
        monkeypatch.setenv("BOT_ALLOWED_SENDERS", OPERATOR)
        flow, ledger, client = create_app_components(database_path=str(tmp_path / "app.db"))
        try:
            assert ledger.is_open
            assert client.database_path == str(tmp_path / "app.db")
            reply = asyncio.run(flow.handle(OPERATOR, f"send {NUMBER} 500"))
            assert reply.startswith("✅ Sent ₹500")
            assert isinstance(flow.transport, InMemoryTransport)
        finally:
            ledger.close()
