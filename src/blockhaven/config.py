"""Application configuration using pydantic-settings.

Every provider URL, timeout and polling cadence used by the exchange engine
is read from here.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ======================
    # Database
    # ======================
    database_url: str = Field(
        default="sqlite+aiosqlite:///./data/blockhaven.db",
        description="Database connection URL (holds the active rate lock)",
    )

    # ======================
    # API
    # ======================
    api_host: str = Field(default="0.0.0.0", description="API server host")
    api_port: int = Field(default=8000, description="API server port")

    # ======================
    # Environment
    # ======================
    environment: str = Field(default="development", description="Runtime environment")
    debug: bool = Field(default=True, description="Enable debug mode")

    # ======================
    # Exchange provider
    # ======================
    provider: str = Field(default="dryrun", description="Exchange provider (dryrun, changenow)")
    provider_api_url: str = Field(
        default="http://localhost:3000/api/blockhaven",
        description="Base URL of the exchange provider gateway",
    )
    provider_api_key: str = Field(default="", description="Provider API key")
    provider_timeout_seconds: float = Field(
        default=30.0, description="Timeout for a single provider HTTP call"
    )

    # ======================
    # Quotes
    # ======================
    quote_timeout_seconds: float = Field(
        default=12.0, description="Upper bound for one estimate round (bounds + amount)"
    )
    quote_debounce_seconds: float = Field(
        default=0.4, description="Window in which rapid edits are coalesced"
    )
    error_notice_window_seconds: float = Field(
        default=30.0, description="Suppress repeated estimate error notices for this long"
    )

    # ======================
    # Rate locks
    # ======================
    rate_expiry_warning_seconds: int = Field(
        default=120, description="Remaining lock time considered 'about to expire'"
    )
    rate_expiry_critical_seconds: int = Field(
        default=30, description="Remaining lock time considered 'critically low'"
    )

    # ======================
    # Order tracking
    # ======================
    status_poll_interval_seconds: float = Field(
        default=30.0, description="Seconds between order status polls"
    )
    status_failure_escalation: int = Field(
        default=3, description="Consecutive failed polls before a notice is raised"
    )

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "production"

    def get_safe_dict(self) -> dict:
        """Return settings dict with secrets redacted."""
        return {
            "environment": self.environment,
            "debug": self.debug,
            "api_host": self.api_host,
            "api_port": self.api_port,
            "database_url": self._redact_url(self.database_url),
            "provider": {
                "name": self.provider,
                "url": self.provider_api_url,
                "api_key": "***" if self.provider_api_key else "(not set)",
                "timeout": self.provider_timeout_seconds,
            },
            "quotes": {
                "timeout": self.quote_timeout_seconds,
                "debounce": self.quote_debounce_seconds,
            },
            "tracking": {
                "poll_interval": self.status_poll_interval_seconds,
                "failure_escalation": self.status_failure_escalation,
            },
        }

    @staticmethod
    def _redact_url(url: str) -> str:
        """Redact sensitive parts of database URL."""
        if "://" in url and "@" in url:
            proto, rest = url.split("://", 1)
            if "@" in rest:
                creds, host = rest.rsplit("@", 1)
                if ":" in creds:
                    user, _ = creds.split(":", 1)
                    return f"{proto}://{user}:***@{host}"
        return url


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
