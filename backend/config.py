"""
Application configuration using Pydantic Settings.

This module manages all configuration from environment variables.
"""

from functools import lru_cache
from typing import List, Optional
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Workbook Configuration
    ALLOWED_EXTENSIONS: List[str] = [".xlsx", ".xlsm"]

    # Model Configuration
    NETWORK_ELEMENT_CLASS: str = "Network"

    # Logging Configuration
    LOG_LEVEL: str = "WARNING"
    LOG_FILE: Optional[str] = None
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    LOG_EXCLUDES: str = ""  # Comma list of regexes hidden from the import log

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are loaded only once.
    """
    return Settings()


# Create global settings instance
settings = get_settings()
