"""Configuration module for the blob cache."""

from .logging_config import setup_logging
from .remote import CacheConfig, RemoteTableConfig
from .settings import Settings, settings

__all__ = [
    "CacheConfig",
    "RemoteTableConfig",
    "Settings",
    "settings",
    "setup_logging",
]
