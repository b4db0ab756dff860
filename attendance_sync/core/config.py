"""
Application settings for the Offline Attendance Sync Service.

Values are read from environment variables (or a local .env file) so the same
build can point at a staging or production attendance backend.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # Application
    APP_NAME: str = "attendance-sync-service"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Local persistence
    DATABASE_URL: str = "sqlite:///./attendance_offline.db"
    TIMEZONE: str = "UTC"

    # Remote attendance API
    REMOTE_API_BASE_URL: str = "http://localhost:8000/api/"
    REMOTE_API_TIMEOUT: float = 30.0
    REMOTE_API_TOKEN: str = ""

    # Duplicate punch prevention
    PUNCH_COOLDOWN_MS: int = 120_000

    # Retention
    OFFLINE_RETENTION_DAYS: int = 7
    CACHE_RETENTION_DAYS: int = 30
    MAX_RECORD_AGE_DAYS: int = 7

    # Sync scheduling
    SYNC_INTERVAL_SECONDS: float = 900.0
    SYNC_ON_START: bool = True

    # Retry policy for remote calls
    RETRY_MAX_ATTEMPTS: int = 3
    RETRY_INITIAL_DELAY: float = 1.0
    RETRY_MAX_DELAY: float = 10.0
    RETRY_BACKOFF_MULTIPLIER: float = 2.0

    # CORS
    CORS_ORIGINS: str = "http://localhost,http://localhost:3000"
    CORS_ALLOW_CREDENTIALS: bool = True
    CORS_ALLOW_METHODS: list[str] = ["*"]
    CORS_ALLOW_HEADERS: list[str] = ["*"]

    @property
    def cors_origins_list(self) -> list[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin]


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
