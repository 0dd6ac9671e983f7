"""Cache engine for the blob cache."""

from .coordinator import FetchCoordinator
from .lru import CacheEntry, LruCache

__all__ = ["CacheEntry", "FetchCoordinator", "LruCache"]
