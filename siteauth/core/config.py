# siteauth/core/config.py
from loguru import logger
from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parent.parent.parent
ENV_FILE_PATH = BASE_DIR / ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        case_sensitive=True,
        env_file=ENV_FILE_PATH,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Core
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    API_PREFIX: str = ""
    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./users.db"
    DB_OPERATION_TIMEOUT_SECONDS: float = Field(default=10.0, gt=0)
    DB_CREATE_TABLES: bool = True

    # Tokens
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(default=60 * 24, gt=0)
    JWT_ISSUER: str = "urn:siteauth:api"
    JWT_AUDIENCE: str = "urn:siteauth:site"

    # Password hashing
    BCRYPT_ROUNDS: int = Field(default=12, ge=4, le=31)

    # Account Lockout
    LOGIN_MAX_FAILED_ATTEMPTS: int = Field(default=5, ge=1)
    LOGIN_LOCKOUT_MINUTES: int = Field(default=15, ge=1)

    # Rate limiting (per client address)
    RATE_LIMIT_ENABLED: bool = True
    DEFAULT_RATE_LIMIT: str = "100/15minutes"
    AUTH_RATE_LIMIT: str = "5/15minutes"


@lru_cache
def get_settings() -> Settings:
    try:
        return Settings()
    except Exception as e:
        logger.error(f"FATAL: could not load settings from environment / {ENV_FILE_PATH}: {e}")
        raise
