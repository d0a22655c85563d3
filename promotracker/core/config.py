from __future__ import annotations

from decimal import Decimal
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration.

    Values are loaded from environment variables (prefix ``PROMOTRACKER_``) and optional .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="PROMOTRACKER_",
        case_sensitive=False,
    )

    # App
    app_name: str = "Hotel Promotion Tracker"
    environment: str = "dev"  # dev|staging|prod
    api_prefix: str = "/api"
    log_level: str = "INFO"

    # Database
    database_url: str = "sqlite:///./promotracker.db"

    # Valuation fallbacks (used when reference data is missing)
    default_cents_per_point: Decimal = Decimal("1.0")
    default_eqn_value: Decimal = Decimal("10.0")

    # Run the post-write cascade as a background task instead of inside the request
    cascade_in_background: bool = False


@lru_cache
def get_settings() -> Settings:
    return Settings()
