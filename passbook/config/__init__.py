"""Configuration package."""

from passbook.config.settings import (
    AppSettings,
    Settings,
    StorageSettings,
    TransferSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "Settings",
    "StorageSettings",
    "TransferSettings",
    "get_settings",
    "validate_all_settings",
]
