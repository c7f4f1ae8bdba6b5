"""
Configuration Management for Ledgerbot

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see what the bot depends on (a database file,
a time zone, the operator allow-list) and ensures everything is
validated at startup.
"""

from functools import lru_cache
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LedgerSettings(BaseSettings):
    """Transaction ledger storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    database_path: str = Field(
        default="transactions.db",
        description="Path to the SQLite file holding the ledger"
    )
    timezone: str = Field(
        default="Asia/Kolkata",
        description="IANA time zone used to resolve dates and periods"
    )
    echo_sql: bool = Field(
        default=False,
        description="Echo SQL statements (debugging only)"
    )

    @field_validator('timezone')
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        """Reject unknown zone names early instead of at query time."""
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown time zone: {v}")
        return v

    @property
    def tzinfo(self) -> ZoneInfo:
        """The configured zone as a tzinfo object."""
        return ZoneInfo(self.timezone)


class BotSettings(BaseSettings):
    """Messaging bot configuration."""

    model_config = SettingsConfigDict(
        env_prefix="BOT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    allowed_senders: str = Field(
        default="",
        description="Comma-separated JIDs allowed to issue commands (empty = everyone)"
    )
    sender_display_name: str = Field(
        default="Vipin Jangir",
        description="Name shown to recipients in notifications"
    )
    country_code: str = Field(
        default="91",
        pattern=r"^\d{1,3}$",
        description="Dialling prefix used to address counterparties"
    )
    jid_domain: str = Field(
        default="s.whatsapp.net",
        description="Domain part of chat addresses"
    )
    currency_symbol: str = Field(
        default="₹",
        max_length=3,
        description="Symbol printed in front of amounts"
    )

    @property
    def allowed_senders_list(self) -> list[str]:
        """Get allowed senders as a list."""
        return [s.strip() for s in self.allowed_senders.split(",") if s.strip()]


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Minimum level for local structured logs"
    )


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Sub-settings are loaded lazily to allow partial configuration

    @property
    def ledger(self) -> LedgerSettings:
        return LedgerSettings()

    @property
    def bot(self) -> BotSettings:
        return BotSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings(settings: Optional[Settings] = None) -> dict[str, object]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, plus a
    "<name>_error" entry for every section that failed.
    Useful for startup checks.
    """
    results: dict[str, object] = {}
    settings = settings or get_settings()

    for name in ("ledger", "bot", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
