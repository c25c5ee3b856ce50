"""
FINTRACK Configuration Management

Settings are read from the environment (or a local .env file). Nothing is
validated at startup: a missing exchange-rate API key only fails the first
conversion that needs it.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # === Exchange Rate Provider ===
    exchange_rate_api_key: str = Field(
        default="",
        description="ExchangeRate-API key (required on first conversion)"
    )
    exchange_rate_base_url: str = Field(
        default="https://v6.exchangerate-api.com/v6",
        description="ExchangeRate-API base URL"
    )
    base_currency: str = Field(
        default="USD",
        description="Currency every monetary field is normalized into"
    )

    # === Rate Cache ===
    # Seconds, not minutes: 36000 = 10 hours
    rate_cache_ttl_seconds: int = Field(default=36000, gt=0)
    redis_url: str = Field(default="redis://localhost:6379/0")
    redis_socket_timeout: float = Field(
        default=5.0,
        gt=0,
        description="Connect and read timeout for the cache client"
    )

    # === Outbound HTTP ===
    http_timeout_seconds: float = Field(default=5.0, gt=0)
    http_max_retries: int = Field(default=3, ge=0)

    # === API Configuration ===
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=8000)

    # === Scheduler Configuration ===
    scheduler_cron_hour: int = Field(default=0, description="Recurring job hour")
    scheduler_cron_minute: int = Field(default=0, description="Recurring job minute")
    scheduler_timezone: str = Field(default="UTC")

    # === Logging ===
    log_level: str = Field(default="INFO")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}")
        return level

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
    }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
