"""Application settings and configuration.

This module defines all configuration options for the Campus Pulse service.
Settings are loaded from environment variables with sensible defaults.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    This class defines all configuration options for the Campus Pulse service.
    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="Campus Pulse", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")

    # Security and authentication
    secret_key: str = Field(alias="SECRET_KEY")
    debug: bool = Field(default=False, alias="DEBUG")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(
        default=60 * 24 * 30,
        alias="ACCESS_TOKEN_EXPIRE_MINUTES",
    )

    # Database configuration
    database_url: str = Field(default="sqlite:///./pulse.db", alias="DATABASE_URL")
    test_database_url: str | None = Field(default=None, alias="TEST_DATABASE_URL")
    use_testing_database: bool = Field(default=False, alias="USE_TEST_DATABASE")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Redis backs the pair-scoped reveal lock; unset means process-local locks.
    redis_url: str | None = Field(default=None, alias="REDIS_URL")
    pair_lock_timeout_seconds: float = Field(default=5.0, alias="PAIR_LOCK_TIMEOUT_SECONDS")
    pair_lock_ttl_seconds: int = Field(default=30, alias="PAIR_LOCK_TTL_SECONDS")

    # Post lifecycle
    post_lifetime_hours: int = Field(default=24, alias="POST_LIFETIME_HOURS")
    post_max_chars: int = Field(default=280, alias="POST_MAX_CHARS")

    # Feed paging
    feed_page_size: int = Field(default=20, alias="FEED_PAGE_SIZE")
    feed_max_page_size: int = Field(default=100, alias="FEED_MAX_PAGE_SIZE")

    # Reveal requests outlive their post by this window so that in-flight
    # reciprocity checks can still see them.
    reveal_retention_minutes: int = Field(default=60, alias="REVEAL_RETENTION_MINUTES")
    deleted_retention_hours: int = Field(default=24, alias="DELETED_RETENTION_HOURS")

    # Local retries for contended transactions
    transaction_max_retries: int = Field(default=3, alias="TRANSACTION_MAX_RETRIES")
    transaction_retry_backoff_seconds: float = Field(
        default=0.05,
        alias="TRANSACTION_RETRY_BACKOFF_SECONDS",
    )

    # Expiry sweeper
    sweeper_enabled: bool = Field(default=True, alias="SWEEPER_ENABLED")
    sweep_interval_seconds: float = Field(default=300.0, alias="SWEEP_INTERVAL_SECONDS")
    cron_secret: str | None = Field(default=None, alias="CRON_SECRET")

    # External collaborators
    profile_service_url: str | None = Field(default=None, alias="PROFILE_SERVICE_URL")
    notification_service_url: str | None = Field(
        default=None,
        alias="NOTIFICATION_SERVICE_URL",
    )
    collaborator_token: str | None = Field(default=None, alias="COLLABORATOR_TOKEN")
    collaborator_timeout_seconds: float = Field(
        default=5.0,
        alias="COLLABORATOR_TIMEOUT_SECONDS",
    )
    notification_max_attempts: int = Field(default=5, alias="NOTIFICATION_MAX_ATTEMPTS")
    notification_stale_seconds: int = Field(default=300, alias="NOTIFICATION_STALE_SECONDS")
    notify_on_reaction: bool = Field(default=False, alias="NOTIFY_ON_REACTION")

    # CORS configuration for web frontend access
    cors_origins: list[str] = Field(
        default=["*"],
        alias="CORS_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "DELETE", "OPTIONS"],
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


settings = Settings()  # type: ignore[call-arg]
