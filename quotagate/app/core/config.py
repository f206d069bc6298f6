import os

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be configured via environment variables or .env file.
    """

    # Debug mode - enables detailed error responses
    debug: bool = False

    # Database settings
    db_host: str = "localhost"
    db_port: int = 5432
    db_user: str = "quotagate"
    db_password: str = "quotagate"
    db_name: str = "quotagate"

    db_pool_size: int = 20
    db_max_overflow: int = 10
    db_pool_timeout: int = 30
    db_pool_recycle: int = 300
    db_pool_pre_ping: bool = True

    # Explicit DATABASE_URL (takes priority over db_* settings)
    database_url_override: str = Field(default="", validation_alias="DATABASE_URL")

    @property
    def database_url(self) -> str:
        """Build database connection URL.

        Priority:
        1. database_url_override (from DATABASE_URL env var or .env file)
        2. Built from db_* settings
        """
        if self.database_url_override:
            return self.database_url_override
        return (
            f"postgresql+asyncpg://{self.db_user}:{self.db_password}@"
            f"{self.db_host}:{self.db_port}/{self.db_name}"
        )

    # Logging settings
    log_level: str = "INFO"
    log_format: str = "text"  # text | structured | json

    # Redis settings (fast shared counter store, optional)
    redis_enabled: bool = False
    redis_url: str = "redis://localhost:6379/0"
    redis_key_prefix: str = "ratelimit"

    # IP throttling policies (window values in milliseconds)
    rate_limit_password_limit: int = 7
    rate_limit_password_window_ms: int = 3600 * 1000
    rate_limit_questions_limit: int = 50
    rate_limit_questions_window_ms: int = 60 * 1000
    rate_limit_global_limit: int = 300
    rate_limit_global_window_ms: int = 60 * 1000
    # Development deployments skip the global baseline
    rate_limit_enforce_global: bool = Field(
        default_factory=lambda: os.getenv("APP_ENV", "production") != "development"
    )

    # Chat quota per subscription tier
    chat_free_limit: int = 3
    chat_free_window_ms: int = 6 * 3600 * 1000
    chat_pro_limit: int = 70
    chat_pro_window_ms: int = 24 * 3600 * 1000

    @field_validator(
        "rate_limit_password_limit",
        "rate_limit_questions_limit",
        "rate_limit_global_limit",
        "chat_free_limit",
        "chat_pro_limit",
    )
    @classmethod
    def validate_limit_not_negative(cls, v: int) -> int:
        """Validate limits are not negative (0 denies everything)."""
        if v < 0:
            raise ValueError("Rate limit values must not be negative")
        return v

    @field_validator(
        "rate_limit_password_window_ms",
        "rate_limit_questions_window_ms",
        "rate_limit_global_window_ms",
        "chat_free_window_ms",
        "chat_pro_window_ms",
    )
    @classmethod
    def validate_window_positive(cls, v: int) -> int:
        """Validate window durations are positive."""
        if v < 1:
            raise ValueError("Rate limit windows must be at least 1 millisecond")
        return v

    @field_validator("db_pool_size", "db_max_overflow")
    @classmethod
    def validate_pool_size_positive(cls, v: int) -> int:
        """Validate pool_size is positive."""
        if v < 1:
            raise ValueError("pool size values must be at least 1")
        return v

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


# Global settings instance
settings = Settings()
