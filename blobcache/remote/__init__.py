"""Remote store backends for the blob cache."""

from .base import RemoteStore
from .chunked import ChunkedRemoteStore, content_hash
from .http import HttpRemoteStore
from .memory import InMemoryRemoteStore

__all__ = [
    "ChunkedRemoteStore",
    "HttpRemoteStore",
    "InMemoryRemoteStore",
    "RemoteStore",
    "content_hash",
]
