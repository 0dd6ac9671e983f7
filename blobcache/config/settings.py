"""
Blob Cache Configuration Settings

This module contains the environment-driven defaults for the blob cache.
Explicit arguments passed to CacheConfig always win over these values.
"""

import os
from dataclasses import dataclass


@dataclass
class Settings:
    """Cache configuration settings."""

    # Remote table settings
    ENDPOINT: str = os.environ.get("BLOB_CACHE_ENDPOINT", "")
    AUTH: str = os.environ.get("BLOB_CACHE_AUTH", "")
    TABLE: str = os.environ.get("BLOB_CACHE_TABLE", "")

    # Cache settings
    MAX_ENTRIES: int = int(os.environ.get("BLOB_CACHE_MAX_ENTRIES", "128"))
    MAX_BYTES: int = int(os.environ.get("BLOB_CACHE_MAX_BYTES", "0"))  # 0 means no byte budget

    # Transport settings
    REQUEST_TIMEOUT: float = float(os.environ.get("BLOB_CACHE_TIMEOUT", "30"))
    MAX_RETRIES: int = int(os.environ.get("BLOB_CACHE_MAX_RETRIES", "0"))
    CHUNK_SIZE: int = int(os.environ.get("BLOB_CACHE_CHUNK_SIZE", "0"))  # 0 means unchunked
    CLIENT_CERT: str = os.environ.get("BLOB_CACHE_CLIENT_CERT", "")  # PEM with certificate and key

    # Logging settings
    DEBUG: bool = os.environ.get("BLOB_CACHE_DEBUG", "false").lower() == "true"
    LOG_LEVEL: str = os.environ.get("BLOB_CACHE_LOG_LEVEL", "INFO")


# Global settings instance
settings = Settings()
