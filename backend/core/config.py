"""
Centralized configuration for the Ledger backend.

All environment variables and settings should be defined here
to avoid duplication across modules.
"""
import os
from functools import lru_cache


class Settings:
    """Application settings loaded from environment variables."""

    # CORS - comma-separated list of allowed origins
    ALLOWED_ORIGINS: list = os.environ.get(
        "ALLOWED_ORIGINS",
        "http://localhost:5173,http://127.0.0.1:5173,http://localhost:3000"
    ).split(",")

    # Database
    DB_PATH: str = os.environ.get("LEDGER_DB_PATH", "data/ledger.db")

    # API key for protecting mutating endpoints (optional)
    API_KEY: str = os.environ.get("LEDGER_API_KEY", "")

    # Document extraction service (OCR + parsing)
    EXTRACTION_URL: str = os.environ.get("LEDGER_EXTRACTION_URL", "")
    EXTRACTION_API_KEY: str = os.environ.get("LEDGER_EXTRACTION_API_KEY", "")
    EXTRACTION_TIMEOUT: int = int(os.environ.get("LEDGER_EXTRACTION_TIMEOUT", "30"))

    # Backfill engine config file (empty = bundled defaults)
    BACKFILL_CONFIG: str = os.environ.get("LEDGER_BACKFILL_CONFIG", "")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Singleton instance for easy import
settings = get_settings()
