"""
Configuration Management for Freelancer Tax Ledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Ledger granularity is an explicit setting rather than something inferred
from which entry fields happen to be populated.
"""

from decimal import Decimal
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from freelancer_tax.models.entry import LedgerKind, RateRegime


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
    ledger_sheet_name: str = Field(
        default="Ledger",
        description="Name of the sheet holding ledger documents"
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


class LedgerSettings(BaseSettings):
    """Ledger behaviour configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    kind: LedgerKind = Field(
        default=LedgerKind.MONTHLY,
        description="monthly = one entry per period, daily = one entry per transaction"
    )
    default_regime: RateRegime = Field(
        default=RateRegime.WITHHOLDING,
        description="Regime preselected for new entries"
    )
    default_expense_rate: Decimal = Field(
        default=Decimal("0"),
        description="Expense rate (percent) preselected for new entries"
    )


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

    debug_mode: bool = Field(
        default=False,
        description="Human-readable console logs instead of JSON lines"
    )
    use_remote_storage: bool = Field(
        default=True,
        description="Persist to Google Sheets when configured"
    )
    export_filename: str = Field(
        default="freelancer_tax.csv",
        description="Suggested file name for exported ledgers"
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

    # Note: These are loaded lazily to allow partial configuration

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def ledger(self) -> LedgerSettings:
        return LedgerSettings()

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

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    for name in ("google_sheets", "ledger", "app"):
        try:
            _ = getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
