"""Configuration settings for the agency ledger."""

from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from typing import Literal
from zoneinfo import ZoneInfo

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Flat settings read from environment variables or a ``.env`` file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Sheet Store (spreadsheet web app)
    sheet_store_url: str = Field(default="", validation_alias="SHEET_STORE_URL")
    expenses_store_url: str = Field(default="", validation_alias="EXPENSES_STORE_URL")
    sheet_store_timeout: float = Field(default=30.0, validation_alias="SHEET_STORE_TIMEOUT")

    # Sheet names
    income_sheet: str = Field(default="sales_report", validation_alias="INCOME_SHEET")
    expense_sheet: str = Field(default="כל החשבוניות", validation_alias="EXPENSE_SHEET")

    # Ledger defaults
    default_usd_rate: Decimal = Field(
        default=Decimal("3.6"), validation_alias="DEFAULT_USD_RATE"
    )
    cost_bearer_a: str = Field(default="דור", validation_alias="COST_BEARER_A")
    cost_bearer_b: str = Field(default="יוראי", validation_alias="COST_BEARER_B")
    rates_file: Path | None = Field(default=None, validation_alias="RATES_FILE")
    sheet_timezone: str = Field(default="Asia/Jerusalem", validation_alias="SHEET_TIMEZONE")

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", validation_alias="LOG_LEVEL"
    )
    log_format: Literal["json", "console"] = Field(
        default="console", validation_alias="LOG_FORMAT"
    )

    @property
    def resolved_expenses_url(self) -> str:
        """Expense sheet URL, falling back to the income store URL."""
        return self.expenses_store_url or self.sheet_store_url

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.sheet_timezone)

    @property
    def cost_bearers(self) -> tuple[str, str]:
        return (self.cost_bearer_a, self.cost_bearer_b)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
