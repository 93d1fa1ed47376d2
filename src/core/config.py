"""Application configuration."""

import logging
import secrets
from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str = "postgresql+asyncpg://localhost/notes"

    @property
    def async_database_url(self) -> str:
        """Convert DATABASE_URL to async format for SQLAlchemy."""
        url = self.database_url
        if url.startswith("postgresql://"):
            url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
        elif url.startswith("sqlite:///"):
            url = url.replace("sqlite:///", "sqlite+aiosqlite:///", 1)
        return url

    # Storage behaviour
    storage_timeout_seconds: float = 10.0
    transaction_max_attempts: int = 3
    chat_list_limit: int = 200
    delete_batch_size: int = 5000

    # Security - MUST be set via SECRET_KEY env variable in production
    secret_key: str = ""
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24

    # CORS - stored as comma-separated string, parsed via property
    allowed_origins_str: str = "http://localhost:8081,http://localhost:19006"

    @property
    def allowed_origins(self) -> list[str]:
        """Parse allowed_origins from comma-separated string."""
        return [origin.strip() for origin in self.allowed_origins_str.split(",") if origin.strip()]

    # App settings
    debug: bool = False
    environment: str = "development"
    run_migrations: bool = True

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Validate SECRET_KEY based on environment."""
        if not self.secret_key:
            is_production = self.environment.lower() in ("production", "prod")

            if is_production:
                raise ValueError(
                    "SECRET_KEY must be set via environment variable in production. "
                    "Generate a secure key with: "
                    "python -c 'import secrets; print(secrets.token_urlsafe(32))'"
                )

            # Development: generate random key with warning
            self.secret_key = secrets.token_urlsafe(32)
            logger.warning(
                "SECRET_KEY not set - generated random key for development. "
                "Tokens issued now will stop verifying after a restart."
            )

        return self

    class Config:
        env_file = ".env"
        case_sensitive = False


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
