"""Application configuration using Pydantic Settings.

Loads configuration from environment variables and .env files.
Each engine component reads its own section with its own env prefix.
"""

import json
from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """PostgreSQL database configuration."""

    model_config = SettingsConfigDict(env_prefix="POSTGRES_")

    host: str = "localhost"
    port: int = 5432
    user: str = "handshake"
    password: SecretStr = SecretStr("handshake")
    database: str = "handshake"

    # Connection pool settings
    pool_size: int = Field(default=10, ge=1, le=100)
    max_overflow: int = Field(default=10, ge=0, le=50)
    pool_timeout: int = Field(default=30, ge=1)
    pool_recycle: int = Field(default=1800, ge=60)

    echo: bool = False

    @property
    def async_url(self) -> str:
        """Construct async PostgreSQL connection URL."""
        password = self.password.get_secret_value()
        return f"postgresql+asyncpg://{self.user}:{password}@{self.host}:{self.port}/{self.database}"

    @property
    def sync_url(self) -> str:
        """Construct sync PostgreSQL connection URL (for Alembic)."""
        password = self.password.get_secret_value()
        return f"postgresql://{self.user}:{password}@{self.host}:{self.port}/{self.database}"


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(env_prefix="LOG_")

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: Literal["json", "console"] = "json"
    include_timestamp: bool = True
    include_caller: bool = True


class GraphSettings(BaseSettings):
    """Handshake graph traversal bounds."""

    model_config = SettingsConfigDict(env_prefix="GRAPH_")

    # Recipient resolution
    max_depth: int = Field(default=6, ge=1, le=50)
    max_recipients: int = Field(default=10_000, ge=1)

    # Point-to-point path search
    path_max_depth: int = Field(default=20, ge=1, le=100)

    # Network visualisation slice
    slice_depth: int = Field(default=3, ge=1, le=10)
    slice_limit: int = Field(default=500, ge=1)


class ChainSettings(BaseSettings):
    """Clearing-chain discovery configuration."""

    model_config = SettingsConfigDict(env_prefix="CHAIN_")

    max_length: int = Field(default=5, ge=2, le=5)

    # New chains persisted per finder invocation
    max_new_chains: int = Field(default=3, ge=1, le=50)

    # Listing limit for a participant's open chains
    list_limit: int = Field(default=20, ge=1, le=200)


class ClusterSettings(BaseSettings):
    """Cluster analytics visibility rules."""

    model_config = SettingsConfigDict(env_prefix="CLUSTER_")

    # Connected clusters are visible only above this many live members
    min_visible_members_exclusive: int = Field(default=3, ge=0)


class NotificationSettings(BaseSettings):
    """Collection notification fan-out configuration."""

    model_config = SettingsConfigDict(env_prefix="NOTIFICATION_")

    ttl_hours: int = Field(default=24, ge=1, le=24 * 30)

    # Remaining amount per re-notified recipient
    ratio: float = Field(default=1.0, gt=0)

    re_notify_interval_hours: int = Field(default=12, ge=1)

    # Background worker loop
    worker_poll_interval_seconds: int = Field(default=60, ge=1)


class WebhookSettings(BaseSettings):
    """Webhook delivery channel configuration."""

    model_config = SettingsConfigDict(env_prefix="WEBHOOK_")

    enabled: bool = False
    url: str | None = None
    secret: SecretStr | None = None  # For HMAC signature
    timeout: int = Field(default=30, ge=1, le=120)
    retry_count: int = Field(default=3, ge=0, le=10)
    retry_delay: float = Field(default=1.0, ge=0.1, le=30.0)  # Base delay for exponential backoff

    # Custom headers (as JSON string, parsed to dict)
    headers_json: str | None = None

    @property
    def headers(self) -> dict[str, str]:
        """Parse custom headers from JSON string."""
        if not self.headers_json:
            return {}
        try:
            return json.loads(self.headers_json)
        except json.JSONDecodeError:
            return {}


class Settings(BaseSettings):
    """Main application settings aggregating all configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # Application info
    app_name: str = "Handshake"
    app_version: str = "0.1.0"
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = False

    # Sub-configurations
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    graph: GraphSettings = Field(default_factory=GraphSettings)
    chains: ChainSettings = Field(default_factory=ChainSettings)
    clusters: ClusterSettings = Field(default_factory=ClusterSettings)
    notifications: NotificationSettings = Field(default_factory=NotificationSettings)
    webhook: WebhookSettings = Field(default_factory=WebhookSettings)

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings singleton."""
    return Settings()
