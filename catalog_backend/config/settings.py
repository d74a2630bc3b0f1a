"""
Configuration settings for catalog ingestion clients (CLI, admin tools)
Loads from .env file
"""

from typing import Optional

from pydantic_settings import BaseSettings
from functools import lru_cache


class ClientSettings(BaseSettings):
    """Settings for talking to the catalog ingest API"""

    # API
    catalog_api_url: str = "http://localhost:8000"
    catalog_api_token: Optional[str] = None
    http_timeout_seconds: float = 10.0

    # Uploads
    gcs_bucket: Optional[str] = None

    # Job polling
    poll_interval_seconds: float = 2.0
    max_poll_attempts: int = 60

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"  # Ignore extra fields in .env file


@lru_cache()
def get_client_settings() -> ClientSettings:
    """Get cached settings instance"""
    return ClientSettings()
