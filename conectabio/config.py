"""
Configuration and settings for the ConectaBio service.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")
    log_level: str = Field(default="INFO")

    # Supabase project (tables, auth and storage)
    supabase_url: Optional[str] = Field(default=None)
    supabase_anon_key: Optional[str] = Field(default=None)
    supabase_service_key: Optional[str] = Field(default=None)

    # Storage buckets
    documents_bucket: str = Field(default="documents")
    avatars_bucket: str = Field(default="avatars")

    # Development toggles
    use_in_memory_backends: bool = Field(default=False)

    # Scraper
    scraper_timeout_seconds: int = Field(default=30)
    scraper_user_agent: str = Field(
        default=(
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
        )
    )

    # Accounts
    min_username_length: int = Field(default=3)
    invite_codes: list[str] = Field(default_factory=list)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
