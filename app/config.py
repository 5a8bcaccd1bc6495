"""Application configuration using Pydantic Settings.

This module provides type-safe configuration management with automatic
environment variable loading and validation.
"""

import logging

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class GithubConfig(BaseSettings):
    """GitHub Contents API configuration settings."""

    model_config = SettingsConfigDict(
        env_prefix="GITHUB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    token: str = Field(default="", description="Token with repo contents scope")
    owner: str = Field(default="", description="Owner of the data repository")
    repo: str = Field(default="", description="Name of the data repository")
    branch: str = Field(default="main", description="Branch that holds the data")
    api_url: str = Field(
        default="https://api.github.com", description="GitHub REST API base URL"
    )
    timeout: float = Field(
        default=15.0, description="Seconds to wait for a single GitHub call"
    )
    user_agent: str = Field(default="qr-menu-api", description="User-Agent header")

    @property
    def is_configured(self) -> bool:
        """Whether token, owner and repo are all present."""
        return bool(self.token and self.owner and self.repo)

    def presence(self) -> dict[str, bool]:
        """Report which required variables are set, without their values."""
        return {
            "GITHUB_OWNER": bool(self.owner),
            "GITHUB_REPO": bool(self.repo),
            "GITHUB_TOKEN": bool(self.token),
        }


class AppConfig(BaseSettings):
    """General application configuration settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    admin_secret: str = Field(
        default="",
        validation_alias=AliasChoices("ADMIN_SECRET", "VITE_ADMIN_SECRET"),
        description="Shared secret for privileged endpoints",
    )
    admin_secret_header: str = Field(
        default="x-admin-secret",
        description="HTTP header name used to pass the admin secret",
    )
    default_tenant: str = Field(
        default="speisekarte",
        description="Tenant used when none can be derived from the request",
    )
    platform_labels: list[str] = Field(
        default=["www", "localhost"],
        description="Hostname labels that never name a tenant",
    )
    platform_domains: list[str] = Field(
        default=["vercel.app"],
        description="Hosting-platform domains whose subdomains are not tenants",
    )
    bcrypt_rounds: int = Field(default=10, description="bcrypt cost factor")
    write_retries: int = Field(
        default=2,
        description="Extra read-modify-write attempts after a revision conflict",
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    cors_origins: list[str] = Field(
        default=["*"], description="Origins allowed by the CORS middleware"
    )


class Settings(BaseSettings):
    """Main application settings combining all configuration sections."""

    # Load from .env
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    github: GithubConfig = Field(default_factory=GithubConfig)
    app: AppConfig = Field(default_factory=AppConfig)

    def configure_logging(self) -> None:
        """Configure application logging based on settings."""
        numeric_level = getattr(logging, self.app.log_level.upper(), None)
        if not isinstance(numeric_level, int):
            numeric_level = logging.INFO

        logging.basicConfig(
            level=numeric_level,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

        # Quiet noisy third-party loggers
        for noisy_logger in ("urllib3", "urllib3.connectionpool"):
            logging.getLogger(noisy_logger).setLevel(logging.WARNING)


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create the global settings instance.

    Returns:
        Settings instance with loaded configuration.
    """
    global _settings
    if _settings is None:
        _settings = Settings()
        _settings.configure_logging()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next call re-reads the environment."""
    global _settings
    _settings = None
