"""Configuration settings for COMEX Ledger."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Flat settings read from environment variables or a .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Entity store (Supabase REST)
    supabase_url: str = Field(
        default="http://localhost:54321", validation_alias="SUPABASE_URL"
    )
    supabase_key: SecretStr = Field(..., validation_alias="SUPABASE_KEY")
    store_timeout: float = Field(default=30.0, validation_alias="STORE_TIMEOUT")
    store_max_retries: int = Field(default=3, validation_alias="STORE_MAX_RETRIES")

    # Dashboard
    dashboard_top_clients: int = Field(default=10, validation_alias="DASHBOARD_TOP_CLIENTS")
    dashboard_trend_months: int = Field(default=6, validation_alias="DASHBOARD_TREND_MONTHS")

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", validation_alias="LOG_LEVEL"
    )
    log_format: Literal["json", "console"] = Field(
        default="console", validation_alias="LOG_FORMAT"
    )

    @property
    def rest_url(self) -> str:
        """PostgREST endpoint under the Supabase project URL."""
        return f"{self.supabase_url.rstrip('/')}/rest/v1"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
