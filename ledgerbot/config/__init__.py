"""Configuration package."""

from ledgerbot.config.settings import (
    AppSettings,
    BotSettings,
    LedgerSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "BotSettings",
    "LedgerSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
