"""
Configuration Management for Passbook

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see where data lives and what can be tuned,
and ensures bad configuration is rejected at startup.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageSettings(BaseSettings):
    """Record store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="PASSBOOK_STORAGE_",
        extra="ignore"
    )

    backend: Literal["json", "memory"] = Field(
        default="json",
        description="Which record storage backend to use"
    )
    data_path: Path = Field(
        default=Path("passbook.json"),
        description="Path of the JSON file holding accounts, tags and associations"
    )


class TransferSettings(BaseSettings):
    """CSV import/export configuration."""

    model_config = SettingsConfigDict(
        env_prefix="PASSBOOK_CSV_",
        extra="ignore"
    )

    export_filename: str = Field(
        default="accounts.csv",
        description="Fixed file name of the generated export"
    )
    export_directory: Optional[Path] = Field(
        default=None,
        description="Where exports are written; system temp dir when unset"
    )

    @field_validator('export_filename')
    @classmethod
    def validate_export_filename(cls, v: str) -> str:
        """The export name must be a bare file name, never a path."""
        if not v or Path(v).name != v:
            raise ValueError(f"Export filename must be a plain file name: {v!r}")
        return v


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

    # Startup behaviour
    seed_default_tags: bool = Field(
        default=True,
        description="Create the default tags on first launch"
    )

    # List filtering
    max_search_length: int = Field(
        default=100,
        ge=1,
        le=1000,
        description="Longest accepted search text"
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

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def transfer(self) -> TransferSettings:
        return TransferSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, plus
    {setting_name}_error entries for the ones that failed.
    """
    results = {}

    settings = get_settings()

    for name in ("storage", "transfer", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
