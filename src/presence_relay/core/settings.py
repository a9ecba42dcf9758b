"""Application settings and configuration.

This module defines all configuration options for the Presence Relay service.
Settings are loaded from environment variables with sensible defaults.
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="Presence Relay", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Database configuration
    database_url: str = Field(default="sqlite:///./presence_relay.db", alias="DATABASE_URL")
    test_database_url: str | None = Field(default=None, alias="TEST_DATABASE_URL")
    use_testing_database: bool = Field(default=False, alias="USE_TEST_DATABASE")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")
    auto_create_tables: bool = Field(default=True, alias="AUTO_CREATE_TABLES")

    # Push gateway: "local" delivers over sockets accepted by this process,
    # "http" posts to an external connection-management API.
    push_gateway_mode: Literal["local", "http"] = Field(default="local", alias="PUSH_GATEWAY_MODE")
    push_gateway_url: str | None = Field(default=None, alias="PUSH_GATEWAY_URL")
    push_gateway_shared_secret: str | None = Field(
        default=None,
        alias="PUSH_GATEWAY_SHARED_SECRET",
    )
    push_gateway_audience: str = Field(default="push-gateway", alias="PUSH_GATEWAY_AUDIENCE")
    push_gateway_token_ttl_seconds: int = Field(
        default=300,
        alias="PUSH_GATEWAY_TOKEN_TTL_SECONDS",
    )
    push_timeout_seconds: float = Field(default=5.0, alias="PUSH_TIMEOUT_SECONDS")

    # Relay limits
    history_max_limit: int = Field(default=1000, alias="HISTORY_MAX_LIMIT")
    max_message_length: int = Field(default=4096, alias="MAX_MESSAGE_LENGTH")

    # CORS configuration for web frontend access
    cors_origins: list[str] = Field(
        default=["*"],
        alias="CORS_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "OPTIONS"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(
        default=["*"],
        alias="CORS_ALLOW_HEADERS",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )

    @property
    def database_url_sync(self) -> str:
        """Return a sync-compatible database URL for tooling.

        Converts asyncpg URLs to psycopg for synchronous database operations
        like Alembic migrations.
        """
        url = self.effective_database_url
        if url.startswith("postgresql+asyncpg"):
            return url.replace("postgresql+asyncpg", "postgresql+psycopg", 1)
        return url

    @property
    def effective_database_url(self) -> str:
        """Return the database URL respecting testing overrides."""
        if self.use_testing_database and self.test_database_url:
            return self.test_database_url
        return self.database_url


settings = Settings()
