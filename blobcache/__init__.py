"""
Blob Cache: In-Memory LRU Cache for a Remote KV Blob Store

Serves blobs by path from a local LRU cache, filling misses from a
remote HTTP key-value table with at most one fetch in flight per key.
"""

from .cache import CacheEntry, FetchCoordinator, LruCache
from .config import CacheConfig, RemoteTableConfig, setup_logging
from .errors import (
    BlobCacheError,
    CacheInvariantViolation,
    ConfigError,
    IntegrityError,
    NotFoundError,
    TransportError,
)
from .handler import CacheHandler
from .remote import ChunkedRemoteStore, HttpRemoteStore, InMemoryRemoteStore, RemoteStore

__version__ = "1.0.0"

__all__ = [
    "BlobCacheError",
    "CacheConfig",
    "CacheEntry",
    "CacheHandler",
    "CacheInvariantViolation",
    "ChunkedRemoteStore",
    "ConfigError",
    "FetchCoordinator",
    "HttpRemoteStore",
    "InMemoryRemoteStore",
    "IntegrityError",
    "LruCache",
    "NotFoundError",
    "RemoteStore",
    "RemoteTableConfig",
    "TransportError",
    "setup_logging",
]
