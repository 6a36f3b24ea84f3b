"""
Configuration Management for the Personal Ledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see what external dependencies exist and
ensures all required configuration is validated at startup.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the Google Sheets spreadsheet to use"
    )

    # Sheet names within the spreadsheet
    store_sheet_name: str = Field(
        default="LedgerStore",
        description="Name of the key-value sheet holding ledgers and archives"
    )
    audit_sheet_name: str = Field(
        default="AuditLog",
        description="Name of the sheet for audit logs"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v


class ClockSettings(BaseSettings):
    """Authoritative clock source configuration."""

    model_config = SettingsConfigDict(
        env_prefix="CLOCK_",
        extra="ignore"
    )

    source: Literal["timezone", "http"] = Field(
        default="timezone",
        description="Compute the date locally in the ledger timezone, or ask a time server"
    )
    server_url: Optional[str] = Field(
        default=None,
        description="Time endpoint returning currentDate/currentMonth JSON"
    )
    timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        le=60,
        description="Time server request timeout"
    )

    @model_validator(mode='after')
    def require_url_for_http(self) -> 'ClockSettings':
        if self.source == "http" and not self.server_url:
            raise ValueError("CLOCK_SERVER_URL is required when CLOCK_SOURCE=http")
        return self


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

    # Period boundaries are decided in this timezone
    timezone: str = Field(
        default="Asia/Hong_Kong",
        description="IANA timezone the ledger's calendar days belong to"
    )

    currency_symbol: str = Field(
        default="$",
        max_length=5,
        description="Prefix used when formatting amounts in reports"
    )
    default_username: str = Field(
        default="default",
        description="Ledger owner used when no user is signed in"
    )

    storage_backend: Literal["memory", "google_sheets"] = Field(
        default="memory",
        description="Key-value store backing ledgers and archives"
    )

    # Closing
    cleanup_daily_archives_on_month_close: bool = Field(
        default=True,
        description="Delete a month's daily archives once its monthly archive is written"
    )

    # Spending limit
    spending_alert_threshold_percent: int = Field(
        default=90,
        ge=1,
        le=100,
        description="Usage percentage at which the limit is reported as nearly reached"
    )

    # Validation thresholds
    max_transaction_amount: float = Field(
        default=1000000.0,
        description="Maximum reasonable entry amount (for sanity checking)"
    )
    future_date_tolerance_days: int = Field(
        default=1,
        ge=0,
        description="How many days in the future an entry date can be"
    )

    @field_validator('timezone')
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown timezone: {v}")
        return v


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

    # Note: These are loaded lazily to allow partial configuration

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def clock(self) -> ClockSettings:
        return ClockSettings()

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


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    for name in ("app", "clock", "google_sheets"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
