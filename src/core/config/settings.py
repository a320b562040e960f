# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Application configuration settings using Pydantic Settings.

This module provides centralized configuration management for QuestLMS.
Settings are loaded from environment variables with sensible defaults.

The Settings class is the main entry point and aggregates all subsettings.
A singleton instance is provided via get_settings() for dependency injection.

Example:
    >>> from src.core.config.settings import get_settings
    >>> settings = get_settings()
    >>> print(settings.environment)
    'development'
"""

from functools import lru_cache
from typing import Literal, Self

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Primary database configuration.

    The database stores learners, programs, enrollments, quiz results
    and discussion messages.

    Attributes:
        user: PostgreSQL username.
        password: PostgreSQL password.
        host: Database host address.
        port: Database port number.
        database: Database name.
        url_override: Full connection URL, used instead of the components if set.
        pool_size: Connection pool size.
        max_overflow: Maximum overflow connections.
    """

    model_config = SettingsConfigDict(
        env_prefix="DB_",
        extra="ignore",
    )

    user: str = "questlms"
    password: SecretStr = SecretStr("questlms_password")
    host: str = "questlms-db"
    port: int = 5432
    database: str = "questlms"
    url_override: str | None = Field(
        default=None,
        validation_alias="DATABASE_URL",
    )
    pool_size: int = 10
    max_overflow: int = 20

    @property
    def url(self) -> str:
        """Build the async database URL from components."""
        if self.url_override:
            return self.url_override
        pwd = self.password.get_secret_value()
        return f"postgresql+asyncpg://{self.user}:{pwd}@{self.host}:{self.port}/{self.database}"

    @property
    def sync_url(self) -> str:
        """Build the sync database URL for migrations."""
        pwd = self.password.get_secret_value()
        return f"postgresql://{self.user}:{pwd}@{self.host}:{self.port}/{self.database}"

    @property
    def is_sqlite(self) -> bool:
        """Check whether the configured URL targets SQLite."""
        return self.url.startswith("sqlite")


class RedisSettings(BaseSettings):
    """Redis configuration for discussion fan-out between API workers.

    Attributes:
        host: Redis server host.
        port: Redis server port.
        password: Redis password.
        database: Redis database number.
        max_connections: Maximum connection pool size.
    """

    model_config = SettingsConfigDict(
        env_prefix="REDIS_",
        extra="ignore",
    )

    host: str = "questlms-redis"
    port: int = 6379
    password: SecretStr = SecretStr("questlms_redis_password")
    database: int = 0
    max_connections: int = 50

    @property
    def url(self) -> str:
        """Build the Redis connection URL."""
        pwd = self.password.get_secret_value()
        return f"redis://:{pwd}@{self.host}:{self.port}/{self.database}"


class JWTSettings(BaseSettings):
    """JWT authentication configuration.

    Tokens are issued by the identity provider; this service only
    validates them (and issues them for seeds and tests).

    Attributes:
        secret_key: Secret key for signing tokens.
        algorithm: JWT signing algorithm.
        access_token_expire_minutes: Access token expiration time.
    """

    model_config = SettingsConfigDict(
        env_prefix="JWT_",
        extra="ignore",
    )

    secret_key: SecretStr = SecretStr("change-this-in-production")
    algorithm: str = "HS256"
    access_token_expire_minutes: int = Field(
        default=60,
        validation_alias="ACCESS_TOKEN_EXPIRE_MINUTES",
    )


class RateLimitSettings(BaseSettings):
    """Rate limiting configuration.

    Attributes:
        enabled: Whether limits are enforced.
        requests_per_minute: Default limit per client.
        storage_uri: slowapi storage backend (memory:// or a redis:// URL).
    """

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        extra="ignore",
    )

    enabled: bool = True
    requests_per_minute: int = 120
    storage_uri: str = "memory://"


class CORSSettings(BaseSettings):
    """CORS configuration for API.

    Attributes:
        origins: Comma-separated list of allowed origins.
        allow_credentials: Whether to allow credentials.
        allow_methods: Allowed HTTP methods.
        allow_headers: Allowed HTTP headers.
    """

    model_config = SettingsConfigDict(
        env_prefix="CORS_",
        extra="ignore",
    )

    origins: str = "http://localhost:3000"
    allow_credentials: bool = True
    allow_methods: list[str] = ["GET", "POST", "PATCH", "DELETE"]
    allow_headers: list[str] = ["*"]

    @property
    def origins_list(self) -> list[str]:
        """Parse origins string into a list."""
        return [origin.strip() for origin in self.origins.split(",") if origin.strip()]


class APISettings(BaseSettings):
    """API server configuration.

    Attributes:
        host: Host to bind to.
        port: Port to listen on.
        workers: Number of worker processes.
        reload: Whether to enable auto-reload.
    """

    model_config = SettingsConfigDict(
        env_prefix="API_",
        extra="ignore",
    )

    host: str = "0.0.0.0"
    port: int = 3000
    workers: int = 1
    reload: bool = False


class DiscussionSettings(BaseSettings):
    """Discussion room configuration.

    Attributes:
        poll_interval: Seconds between client polls while the live channel is down.
        history_limit: Maximum number of messages returned for a room.
        max_message_length: Maximum accepted message length.
        redis_fanout: Relay room events between API processes through Redis.
        fanout_channel_prefix: Redis channel prefix used for fan-out.
    """

    model_config = SettingsConfigDict(
        env_prefix="DISCUSSION_",
        extra="ignore",
    )

    poll_interval: float = 4.0
    history_limit: int = 50
    max_message_length: int = 2000
    redis_fanout: bool = False
    fanout_channel_prefix: str = "discussion"


class RewardSettings(BaseSettings):
    """XP and level configuration.

    Attributes:
        xp_per_level: XP needed per level step (level = xp // xp_per_level + 1).
    """

    model_config = SettingsConfigDict(
        env_prefix="REWARD_",
        extra="ignore",
    )

    xp_per_level: int = 1000


class Settings(BaseSettings):
    """Main application settings aggregating all subsettings.

    This is the primary configuration class for QuestLMS.
    Use get_settings() to obtain a cached singleton instance.

    Attributes:
        environment: Current environment (development, staging, production, test).
        debug: Enable debug mode.
        log_level: Logging level.
        database: Database settings.
        redis: Redis settings.
        jwt: JWT authentication settings.
        rate_limit: Rate limiting settings.
        cors: CORS settings.
        api: API server settings.
        discussion: Discussion room settings.
        rewards: XP and level settings.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # Environment
    environment: Literal["development", "staging", "production", "test"] = "development"
    debug: bool = True
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "DEBUG"

    # Subsettings - loaded with their own env prefixes
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    jwt: JWTSettings = Field(default_factory=JWTSettings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    cors: CORSSettings = Field(default_factory=CORSSettings)
    api: APISettings = Field(default_factory=APISettings)
    discussion: DiscussionSettings = Field(default_factory=DiscussionSettings)
    rewards: RewardSettings = Field(default_factory=RewardSettings)

    @model_validator(mode="after")
    def validate_production_settings(self) -> Self:
        """Validate that production settings are properly configured.

        Raises:
            ValueError: If running in production with insecure defaults.
        """
        if self.environment == "production":
            default_jwt_secret = "change-this-in-production"
            if self.jwt.secret_key.get_secret_value() == default_jwt_secret:
                raise ValueError(
                    "JWT secret key must be changed from default in production. "
                    "Set JWT_SECRET_KEY environment variable."
                )
        return self

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call clear_settings_cache() if you need to reload settings.

    Returns:
        Cached Settings instance.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Call this if you need to reload settings from environment.
    Useful for testing or dynamic configuration updates.
    """
    get_settings.cache_clear()
