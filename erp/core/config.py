"""
Settings for the ERP inventory service.

Values come from environment variables or a ``.env`` file; every field is
addressed by its upper-case alias (``DATABASE_URL``, ``LOG_LEVEL`` ...).
"""
import logging
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator


class Settings(BaseSettings):
    """Runtime configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Application
    app_name: str = Field(default="ERP Inventory API", alias="APP_NAME")
    app_version: str = Field(default="1.0.0", alias="APP_VERSION")
    environment: str = Field(default="Production", alias="ENVIRONMENT")
    debug: bool = Field(default=False, alias="DEBUG")

    # Database. There is no fallback URL: starting without one is fatal.
    database_url: Optional[str] = Field(default=None, alias="DATABASE_URL")
    db_echo: bool = Field(default=False, alias="DB_ECHO")
    db_pool_size: int = Field(default=20, ge=1, alias="DB_POOL_SIZE")
    db_max_overflow: int = Field(default=40, ge=0, alias="DB_MAX_OVERFLOW")
    auto_create_tables: bool = Field(default=False, alias="AUTO_CREATE_TABLES")

    # Retries on transient database errors (delays in seconds)
    db_retry_attempts: int = Field(default=3, ge=0, alias="DB_RETRY_ATTEMPTS")
    db_retry_base_delay: float = Field(default=0.5, ge=0, alias="DB_RETRY_BASE_DELAY")
    db_retry_max_delay: float = Field(default=5.0, ge=0, alias="DB_RETRY_MAX_DELAY")

    # Bearer tokens naming the acting user
    jwt_secret_key: str = Field(
        default="change-me-erp-inventory-secret",
        alias="JWT_SECRET_KEY"
    )
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    jwt_access_token_expire_minutes: int = Field(default=60, alias="JWT_ACCESS_TOKEN_EXPIRE_MINUTES")
    system_actor: str = Field(default="System", max_length=100, alias="SYSTEM_ACTOR")

    cors_origins: list[str] = Field(default=["http://localhost:3000"], alias="CORS_ORIGINS")

    # Inventory rules
    default_min_stock_level: int = Field(default=5, ge=0, alias="DEFAULT_MIN_STOCK_LEVEL")
    attention_days_threshold: int = Field(default=90, ge=0, alias="ATTENTION_DAYS_THRESHOLD")
    recent_arrivals_days: int = Field(default=30, ge=0, alias="RECENT_ARRIVALS_DAYS")

    # Listing
    default_page_size: int = Field(default=20, ge=1, alias="DEFAULT_PAGE_SIZE")
    max_page_size: int = Field(default=100, ge=1, alias="MAX_PAGE_SIZE")

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_file: str = Field(default="./logs/app.log", alias="LOG_FILE")
    log_max_bytes: int = Field(default=10 * 1024 * 1024, alias="LOG_MAX_BYTES")  # 10MB
    log_backup_count: int = Field(default=5, alias="LOG_BACKUP_COUNT")
    log_to_file: bool = Field(default=True, alias="LOG_TO_FILE")

    # Rate limiting (per client address)
    rate_limit_enabled: bool = Field(default=True, alias="RATE_LIMIT_ENABLED")
    rate_limit_per_minute: int = Field(default=100, ge=1, alias="RATE_LIMIT_PER_MINUTE")

    @field_validator("log_level")
    @classmethod
    def known_log_level(cls, value: str) -> str:
        level = value.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level '{value}'")
        return level

    @field_validator("database_url")
    @classmethod
    def blank_url_is_missing(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value.strip() or None


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Dependency injection for FastAPI."""
    return settings
