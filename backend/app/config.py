"""Application configuration."""
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings."""

    # App
    APP_NAME: str = "Job_Archive_Numbering"
    ENV: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"
    ALLOWED_ORIGINS: str = "http://localhost:3000,http://localhost:9002"

    # Database
    DATABASE_URL: str = "postgresql://localhost/job_archive"
    DATABASE_POOL_SIZE: int = 20
    DATABASE_MAX_OVERFLOW: int = 10

    # Celery
    CELERY_BROKER_URL: str = "redis://localhost:6379/1"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/2"

    # JWT (tokens are issued elsewhere; this service only verifies them)
    JWT_SECRET_KEY: str = "change-me"
    JWT_ALGORITHM: str = "HS256"
    JWT_LEEWAY_SECONDS: int = 30  # clock skew tolerance for exp validation

    # Document numbering
    # Bounded retry for optimistic counter conflicts; backoff doubles per attempt.
    NUMBERING_MAX_ATTEMPTS: int = 5
    NUMBERING_RETRY_BACKOFF_SECONDS: float = 0.05

    # Archival
    # Writes per committed chunk when moving an activity log.
    ARCHIVE_ACTIVITY_CHUNK_SIZE: int = 400
    MIGRATION_MAX_LIMIT: int = 40
    MIGRATION_ARCHIVE_YEAR: int = 2026
    MIGRATION_ACTOR_NAME: str = "Migration"
    BACKLOG_DRAIN_MAX_ROUNDS: int = 25
    BACKLOG_DRAIN_INTERVAL_SECONDS: float = 3600.0

    class Config:
        env_file = ".env"
        case_sensitive = True

    @property
    def cors_origins(self) -> list[str]:
        """Get CORS origins as list."""
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",")]


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
