"""
campuscart/core/config.py

Application Configuration Loader

Loads and manages application settings from environment variables
using Pydantic's BaseSettings with `.env` support.
"""

import logging
import os
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

# ---------------------------------------------------
# Logger Configuration
# ---------------------------------------------------
logger = logging.getLogger(__name__)

# ---------------------------------------------------
# Base Directory Calculation
# ---------------------------------------------------
BASE_DIR = Path(__file__).resolve().parent.parent.parent
DEFAULT_DOTENV_PATH = BASE_DIR / ".env"


# ---------------------------------------------------
# Settings Definition
# ---------------------------------------------------
class Settings(BaseSettings):
    """
    Application-wide settings loaded from environment variables.
    """

    # --- Pydantic Settings Configuration ---
    model_config = SettingsConfigDict(
        env_file=str(DEFAULT_DOTENV_PATH),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # --- General Application Settings ---
    APP_NAME: str = "Campus Cart"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"

    # --- Database Settings ---
    DATABASE_URL: str = "sqlite+aiosqlite:///./campuscart.db"
    TEST_DATABASE_URL: str = "sqlite+aiosqlite:///:memory:"
    AUTO_CREATE_TABLES: bool = True

    # --- Caller Identity (JWT bearer + signed session cookie) ---
    SECRET_KEY: str = "change-me"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24
    SESSION_MAX_AGE: int = 60 * 60 * 24

    # --- Redis Cache Settings ---
    REDIS_URL: str | None = None
    CACHE_PREFIX: str = "cache:campuscart:"
    DEFAULT_CACHE_TTL: int = 3600
    SHORT_CACHE_TTL: int = 15

    # --- Rate Limiting ---
    RATE_LIMIT_ENABLED: bool = True

    # --- CORS Settings ---
    CORS_ALLOWED_ORIGINS: str = ""

    # --- Calculated Properties ---
    @property
    def cors_origins(self) -> list[str]:
        """Parses the CORS_ALLOWED_ORIGINS string into a list."""
        if not self.CORS_ALLOWED_ORIGINS:
            return []
        return [origin.strip() for origin in self.CORS_ALLOWED_ORIGINS.split(",") if origin.strip()]

    @property
    def db_url(self) -> str:
        """
        Returns the appropriate database URL based on the testing environment.
        """
        is_testing = os.getenv("PYTEST_CURRENT_TEST") is not None
        url_str = self.TEST_DATABASE_URL if is_testing else self.DATABASE_URL
        if self.DEBUG:
            logger.debug(f"[CONFIG] Using DATABASE URL: {url_str}")
        return url_str

    @property
    def log_path(self) -> Path:
        """Returns the absolute path to the log directory."""
        path = Path(self.LOG_DIR)
        return path if path.is_absolute() else BASE_DIR / path


# ---------------------------------------------------
# Instantiate Settings Globally
# ---------------------------------------------------
settings = Settings()

if settings.SECRET_KEY == "change-me":
    logger.warning("[CONFIG] SECRET_KEY is using the default value; set it in the environment.")
