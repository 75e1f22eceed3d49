"""Application settings and configuration.

This module defines all process-level configuration for the raffle service.
Settings are loaded from environment variables with sensible defaults.
Weight-formula constants are not part of this object; they are stored in the
database and served by :mod:`stream_raffle.services.weight_settings`.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="Stream Raffle", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Shared secrets for the admin and event ingress surfaces
    admin_token: str | None = Field(default=None, alias="ADMIN_TOKEN")
    ingress_token: str | None = Field(default=None, alias="INGRESS_TOKEN")

    # Database configuration
    database_url: str = Field(default="sqlite:///./raffle.db", alias="DATABASE_URL")
    test_database_url: str | None = Field(default=None, alias="TEST_DATABASE_URL")
    use_testing_database: bool = Field(default=False, alias="USE_TEST_DATABASE")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Weight settings cache; 0 disables caching
    weight_settings_cache_seconds: float = Field(
        default=60.0,
        alias="WEIGHT_SETTINGS_CACHE_SECONDS",
    )

    # Winner selection
    draw_timeout_seconds: float = Field(default=5.0, alias="DRAW_TIMEOUT_SECONDS")
    spin_list_size: int = Field(default=20, alias="SPIN_LIST_SIZE")

    # Display projections
    leaderboard_size: int = Field(default=20, alias="LEADERBOARD_SIZE")

    # Batch jobs
    recalc_batch_size: int = Field(default=200, alias="RECALC_BATCH_SIZE")
    carry_over_batch_size: int = Field(default=25, alias="CARRY_OVER_BATCH_SIZE")

    # Entry submission rules
    require_follow_to_enter: bool = Field(default=True, alias="REQUIRE_FOLLOW_TO_ENTER")
    allowed_link_domains: list[str] = Field(
        default=["soundcloud.com", "drive.google.com", "dropbox.com", "google.com"],
        alias="ALLOWED_LINK_DOMAINS",
    )

    # Identity provider sync cadence
    identity_sync_cooldown_seconds: int = Field(
        default=60,
        alias="IDENTITY_SYNC_COOLDOWN_SECONDS",
    )
    identity_sync_stale_seconds: int = Field(
        default=600,
        alias="IDENTITY_SYNC_STALE_SECONDS",
    )

    # CORS configuration for web frontend access
    cors_origins: list[str] = Field(default=["*"], alias="CORS_ORIGINS")
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(default=["*"], alias="CORS_ALLOW_HEADERS")

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
