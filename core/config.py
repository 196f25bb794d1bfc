"""
Configuration management for CrewRate.
Centralizes all configuration settings and environment variables.
"""
from __future__ import annotations

import logging
import os
from decimal import Decimal
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

logger = logging.getLogger(__name__)


class Config:
    """Central configuration class for the application."""

    # Application version
    VERSION: str = "1.4"

    # Database configuration
    DATABASE_URL: str = os.getenv("DATABASE_URL", "")
    DB_POOL_MIN: int = int(os.getenv("DB_POOL_MIN", "1"))
    DB_POOL_MAX: int = int(os.getenv("DB_POOL_MAX", "10"))

    # Application configuration
    DEBUG: bool = os.getenv("DEBUG", "False").lower() in ("true", "1", "yes")

    # Server configuration
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", "8000"))

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
    LOG_FILE: str = os.getenv("LOG_FILE", "")

    # Feature flags
    ENABLE_CACHING: bool = os.getenv("ENABLE_CACHING", "True").lower() in ("true", "1", "yes")
    RATE_CARD_CACHE_TTL: int = int(os.getenv("RATE_CARD_CACHE_TTL", "60"))

    # Rate configuration
    DEFAULT_CURRENCY: str = os.getenv("DEFAULT_CURRENCY", "GBP")
    DEFAULT_OT_MULTIPLIER: Decimal = Decimal(os.getenv("DEFAULT_OT_MULTIPLIER", "1.5"))
    MAX_RATE: Decimal = Decimal(os.getenv("MAX_RATE", "10000"))
    MAX_LOGGED_HOURS: Decimal = Decimal(os.getenv("MAX_LOGGED_HOURS", "24"))

    LOCAL_TZ = ZoneInfo(os.getenv("LOCAL_TZ", "Europe/London"))

    def __init__(self):
        """Validate configuration on initialization."""
        if not self.DATABASE_URL:
            # The calculation core runs without a database; only the store needs it.
            logger.debug("DATABASE_URL is not set; PostgreSQL rate card store unavailable")

        if self.DEFAULT_OT_MULTIPLIER < 1:
            raise RuntimeError("DEFAULT_OT_MULTIPLIER must be at least 1")

    @classmethod
    def from_env(cls) -> Config:
        """Create Config instance from environment variables."""
        return cls()

    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.DEBUG

    def is_production(self) -> bool:
        """Check if running in production mode."""
        return not self.DEBUG


# Global config instance
config = Config.from_env()
