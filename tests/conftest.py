"""
Shared fixtures.

Every test that touches the ledger gets its own SQLite file under
tmp_path and a clock it can move by hand.
"""

from datetime import datetime, timedelta, timezone

import pytest

from ledgerbot.config import BotSettings, get_settings
from ledgerbot.ledger import Ledger
from ledgerbot.services.storage import SqliteClient, SqliteTransactionStorage


NOW = datetime(2025, 8, 20, 15, 30, tzinfo=timezone.utc)

OPERATOR = "919999999999@s.whatsapp.net"


class FakeClock:
    """A settable stand-in for utc_now()."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set(self, now: datetime) -> None:
        self.now = now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch, tmp_path):
    """Run every test away from any real .env and with fresh settings."""
    monkeypatch.chdir(tmp_path)
    for name in (
        "LEDGER_DATABASE_PATH",
        "LEDGER_TIMEZONE",
        "LEDGER_ECHO_SQL",
        "BOT_ALLOWED_SENDERS",
        "BOT_SENDER_DISPLAY_NAME",
        "BOT_COUNTRY_CODE",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "ledger.db")


@pytest.fixture
def client(db_path):
    client = SqliteClient(database_path=db_path)
    yield client
    client.close()


@pytest.fixture
def ledger(client, clock):
    ledger = Ledger(SqliteTransactionStorage(client), clock=clock).open()
    yield ledger
    ledger.close()


@pytest.fixture
def bot_settings():
    return BotSettings(
        allowed_senders=OPERATOR,
        sender_display_name="Vipin Jangir",
        country_code="91",
        jid_domain="s.whatsapp.net",
        currency_symbol="₹",
    )
