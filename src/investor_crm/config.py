"""Configuration for the investor CRM."""

from __future__ import annotations

from pathlib import Path

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="INVESTOR_CRM_",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # Persistence
    cache_path: Path = Field(
        default=Path("investors.json"),
        description="Path to the local JSON cache of the investor collection",
    )
    db_path: Path = Field(
        default=Path("investor_crm.db"),
        description="Path (or SQLAlchemy URL) of the remote row store",
    )
    remote_enabled: bool = Field(
        default=True,
        description="Mirror every change into the remote row store",
    )

    # Apollo
    apollo_api_key: str = Field(default="", description="Apollo.io API key")
    apollo_base_url: str = Field(
        default="https://api.apollo.io/api/v1",
        description="Apollo REST API base URL",
    )
    api_timeout: int = Field(default=30, description="HTTP request timeout in seconds")

    # Claude (for investor research)
    anthropic_api_key: str = Field(default="", description="Anthropic API key for research")
    claude_model: str = Field(
        default="claude-sonnet-4-20250514",
        description="Claude model used to draft investor research",
    )

    # Gmail
    gmail_access_token: str = Field(default="", description="OAuth access token for Gmail")
    gmail_base_url: str = Field(
        default="https://gmail.googleapis.com/gmail/v1/users/me",
        description="Gmail REST API base URL for the authenticated user",
    )
    gmail_lookback_days: int = Field(default=30, description="Days of sent mail to scan")
    gmail_max_messages: int = Field(default=50, description="Sent messages inspected per sync")
    gmail_sync_interval_seconds: int = Field(
        default=3600,
        description="Seconds between Gmail sync cycles for the listener",
    )

    @model_validator(mode="after")
    def validate_gmail_config(self) -> Settings:
        """Keep Gmail sync limits inside what the API accepts."""
        if not 1 <= self.gmail_max_messages <= 100:
            raise ValueError("INVESTOR_CRM_GMAIL_MAX_MESSAGES must be between 1 and 100.")
        if self.gmail_sync_interval_seconds <= 0:
            raise ValueError("INVESTOR_CRM_GMAIL_SYNC_INTERVAL_SECONDS must be positive.")
        return self
