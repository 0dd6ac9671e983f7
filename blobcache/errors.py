"""
Error taxonomy for the blob cache.

ConfigError is raised at construction only. NotFoundError and
TransportError come from the remote store and pass through the cache
unchanged; neither is ever cached. CacheInvariantViolation marks a
defect in the cache itself.
"""

from typing import Optional


class BlobCacheError(Exception):
    """Base class for all blob cache errors."""


class ConfigError(BlobCacheError, ValueError):
    """Missing or malformed endpoint, auth or table."""


class NotFoundError(BlobCacheError, KeyError):
    """The remote table has no blob under this key."""

    def __init__(self, key: str):
        super().__init__(key)
        self.key = key

    def __str__(self) -> str:
        return f"blob not found: {self.key}"


class TransportError(BlobCacheError):
    """
    The remote call could not complete.

    Covers connection failures, timeouts and unexpected HTTP statuses.
    Callers may retry; the cache layer never does.

    Attributes:
        key: The key being fetched or written, if known
        status_code: HTTP status of the failed response, if one was received
    """

    def __init__(self, message: str, key: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.key = key
        self.status_code = status_code


class IntegrityError(TransportError):
    """A chunk or chunk index did not match its content hash."""


class CacheInvariantViolation(BlobCacheError, AssertionError):
    """Internal LRU state is inconsistent. Always a bug."""
