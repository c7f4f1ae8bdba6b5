"""
Tests for the SQLite storage backend.
"""

import asyncio
import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4
from zoneinfo import ZoneInfo

from sqlalchemy import inspect
from sqlalchemy.exc import OperationalError

from ledgerbot.models.audit import AuditEventBuilder, AuditEventType
from ledgerbot.services.storage import (
    ConnectionError,
    SqliteAuditStorage,
    SqliteClient,
    SqliteTransactionStorage,
    StorageError,
)
from ledgerbot.services.storage.sqlite import (
    _is_transient,
    format_instant,
    parse_instant,
    truncate_to_millis,
)


NOW = datetime(2025, 8, 20, 15, 30, tzinfo=timezone.utc)


@pytest.fixture
def storage(client):
    storage = SqliteTransactionStorage(client)
    storage.open()
    yield storage
    storage.close()


class TestInstantEncoding:
    """Timestamps are stored as fixed-width UTC strings."""

    def test_format_instant(self):
        assert format_instant(datetime(2025, 8, 12, 10, 0, tzinfo=timezone.utc)) == "2025-08-12T10:00:00.000Z"

    def test_format_converts_to_utc(self):
        local = datetime(2025, 8, 12, 0, 0, tzinfo=ZoneInfo("Asia/Kolkata"))
        assert format_instant(local) == "2025-08-11T18:30:00.000Z"

    def test_format_keeps_milliseconds(self):
        value = datetime(2025, 8, 12, 23, 59, 59, 999999, tzinfo=timezone.utc)
        assert format_instant(value) == "2025-08-12T23:59:59.999Z"

    def test_format_rejects_naive(self):
        with pytest.raises(ValueError):
            format_instant(datetime(2025, 8, 12, 10, 0))

    def test_format_pads_early_years(self):
        """Years before 1000 keep four digits so string order stays time order."""
        early = format_instant(datetime(525, 8, 20, tzinfo=timezone.utc))
        assert early == "0525-08-20T00:00:00.000Z"
        assert early < format_instant(NOW)

    def test_format_clamps_at_calendar_edges(self):
        first_day = datetime(1, 1, 1, tzinfo=ZoneInfo("Asia/Kolkata"))
        last_instant = datetime(9999, 12, 31, 23, 59, 59, 999000, tzinfo=ZoneInfo("America/New_York"))
        assert format_instant(first_day) == "0001-01-01T00:00:00.000Z"
        assert format_instant(last_instant) == "9999-12-31T23:59:59.999Z"

    def test_parse_early_year(self):
        assert parse_instant("0525-08-20T00:00:00.000Z") == datetime(525, 8, 20, tzinfo=timezone.utc)

    def test_parse_instant(self):
        parsed = parse_instant("2025-08-12T10:00:00.123Z")
        assert parsed == datetime(2025, 8, 12, 10, 0, 0, 123000, tzinfo=timezone.utc)

    def test_parse_legacy_timestamp(self):
        """Rows written by SQLite's CURRENT_TIMESTAMP are read as UTC."""
        assert parse_instant("2025-08-12 10:00:00") == datetime(2025, 8, 12, 10, 0, tzinfo=timezone.utc)

    def test_truncate_to_millis(self):
        value = datetime(2025, 8, 12, 10, 0, 0, 123456, tzinfo=timezone.utc)
        assert truncate_to_millis(value).microsecond == 123000

    def test_strings_sort_like_instants(self):
        early = format_instant(datetime(2025, 8, 12, 9, 59, 59, 999000, tzinfo=timezone.utc))
        late = format_instant(datetime(2025, 8, 12, 10, 0, tzinfo=timezone.utc))
        assert early < late


class TestSchema:
    """The on-disk layout stays compatible with older ledger files."""

    def test_transactions_table(self, storage, client):
        inspector = inspect(client.connect())
        columns = {column["name"] for column in inspector.get_columns("transactions")}
        assert columns == {"id", "phone_number", "amount", "details", "date", "created_at"}

    def test_transactions_indexes(self, storage, client):
        inspector = inspect(client.connect())
        names = {index["name"] for index in inspector.get_indexes("transactions")}
        assert {"idx_phone_number", "idx_date", "idx_phone_date", "idx_created_at"} <= names

    def test_audit_table(self, storage, client):
        inspector = inspect(client.connect())
        assert "audit_log" in inspector.get_table_names()

    def test_raw_rows_are_iso_strings(self, storage, client):
        storage.insert_transaction("9876543210", Decimal("500"), "grocery", NOW)
        with client.connect().connect() as connection:
            row = connection.exec_driver_sql(
                "SELECT phone_number, amount, details, date, created_at FROM transactions"
            ).one()
        assert row[0] == "9876543210"
        assert row[1] == "500"
        assert row[2] == "grocery"
        assert row[3] == "2025-08-20T15:30:00.000Z"
        assert row[4] == row[3]


class TestTransactionStorage:
    """Row level behaviour."""

    def test_insert_returns_transaction(self, storage):
        transaction = storage.insert_transaction("1", Decimal("12.5"), None, NOW)
        assert transaction.amount == Decimal("12.5")
        assert transaction.occurred_at == NOW

    def test_collision_bumps_one_millisecond(self, storage):
        first = storage.insert_transaction("1", Decimal("1"), None, NOW)
        second = storage.insert_transaction("2", Decimal("2"), None, NOW)
        assert second.recorded_at == first.recorded_at + timedelta(milliseconds=1)

    def test_clock_going_backwards_still_increases(self, storage):
        first = storage.insert_transaction("1", Decimal("1"), None, NOW)
        second = storage.insert_transaction("1", Decimal("2"), None, NOW - timedelta(hours=1))
        assert second.recorded_at > first.recorded_at

    def test_list_transactions_bounds(self, storage):
        storage.insert_transaction("1", Decimal("1"), None, NOW)
        storage.insert_transaction("1", Decimal("2"), None, NOW + timedelta(days=1))

        rows = storage.list_transactions("1", occurred_from=NOW, occurred_to=NOW)
        assert [r.amount for r in rows] == [Decimal("1")]
        assert len(storage.list_transactions("1")) == 2

    def test_amount_stored_as_exact_text(self, storage, client):
        stored = storage.insert_transaction("1", Decimal("12345678901234567.89"), None, NOW)
        assert stored.amount == Decimal("12345678901234567.89")
        with client.connect().connect() as connection:
            raw = connection.exec_driver_sql("SELECT amount FROM transactions").scalar_one()
        assert raw == "12345678901234567.89"

    def test_list_amounts(self, storage):
        storage.insert_transaction("1", Decimal("0.1"), None, NOW)
        storage.insert_transaction("1", Decimal("0.2"), None, NOW)
        assert sorted(storage.list_amounts("1")) == [Decimal("0.1"), Decimal("0.2")]

    def test_get_latest_empty(self, storage):
        assert storage.get_latest("1") is None


class TestClient:
    """Connecting and failing to connect."""

    def test_session_before_connect(self, db_path):
        with pytest.raises(StorageError):
            SqliteClient(database_path=db_path).get_session()

    def test_unreachable_path_raises_connection_error(self, tmp_path):
        client = SqliteClient(database_path=str(tmp_path / "missing" / "ledger.db"))
        with pytest.raises(ConnectionError):
            SqliteTransactionStorage(client).open()
        assert not client.is_connected

    def test_connect_is_idempotent(self, client):
        assert client.connect() is client.connect()
        assert client.is_connected

    def test_default_path_from_settings(self, monkeypatch):
        monkeypatch.setenv("LEDGER_DATABASE_PATH", "custom.db")
        assert SqliteClient().database_path == "custom.db"

    @pytest.mark.parametrize("message,expected", [
        ("database is locked", True),
        ("database is busy", True),
        ("no such table: transactions", False),
    ])
    def test_transient_errors(self, message, expected):
        assert _is_transient(OperationalError("SELECT 1", {}, Exception(message))) is expected

    def test_other_errors_are_not_transient(self):
        assert _is_transient(ValueError("database is locked")) is False


class TestAuditStorage:
    """Audit events in the same file."""

    def test_append_and_read_back(self, storage, client):
        audit = SqliteAuditStorage(client)
        correlation_id = uuid4()
        event = AuditEventBuilder.transaction_recorded(
            transaction_id=1,
            counterparty="9876543210",
            amount="500",
            correlation_id=correlation_id,
        )

        assert asyncio.run(audit.append_event(event)) is True
        events = asyncio.run(audit.get_events_by_correlation_id(correlation_id))

        assert len(events) == 1
        assert events[0].event_id == event.event_id
        assert events[0].event_type == AuditEventType.TRANSACTION_RECORDED
        assert events[0].details == {"counterparty": "9876543210", "amount": "500"}

    def test_recent_events_newest_first(self, storage, client):
        audit = SqliteAuditStorage(client)
        for n in range(3):
            asyncio.run(audit.append_event(AuditEventBuilder.storage_error(
                operation=f"op{n}",
                error_message="x",
            )))
        events = asyncio.run(audit.get_recent_events(limit=2))
        assert [e.details["operation"] for e in events] == ["op2", "op1"]

    def test_append_without_connection_returns_false(self, db_path):
        audit = SqliteAuditStorage(SqliteClient(database_path=db_path))
        event = AuditEventBuilder.storage_error(operation="x", error_message="y")
        assert asyncio.run(audit.append_event(event)) is False
