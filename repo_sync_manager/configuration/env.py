"""Pydantic Settings model for application configuration."""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment variable settings for the application."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Generic application-wide settings
    SYNC_CONFIG_PATH: Path = Path(".github/sync-config.yml")

    # GitHub settings
    GITHUB_API_URL: str = "https://api.github.com"
    GITHUB_TOKEN: str | None = None

    # GitLab settings
    GITLAB_URL: str | None = None
    GITLAB_TOKEN: str | None = None
