"""
Configuration and settings for the portfolio API.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    api_prefix: str = Field(default="/api")

    # Document database (MongoDB expected)
    mongodb_uri: Optional[str] = Field(default=None)
    mongodb_database: str = Field(
        default="ruhul-amin",
        validation_alias=AliasChoices("mongodb_database", "MONGODB_DATABASE"),
    )

    # Any SQLAlchemy URL; used when no MongoDB URI is configured.
    database_url: Optional[str] = Field(default=None)

    # Development toggles
    use_in_memory_backends: bool = Field(
        default=False,
        validation_alias=AliasChoices(
            "use_in_memory_backends", "PORTFOLIO_USE_IN_MEMORY_BACKENDS"
        ),
    )
    strict_identifiers: bool = Field(
        default=False,
        validation_alias=AliasChoices(
            "strict_identifiers", "PORTFOLIO_STRICT_IDENTIFIERS"
        ),
    )

    # HTTP server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=5000)
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])
    log_level: str = Field(default="INFO")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
