"""
Blob Cache Handler

Public entry point composing LruCache, FetchCoordinator and a RemoteStore.

get_blob(key):
    1. Lookup in the LRU cache; a hit returns immediately
    2. On a miss, join or start the single in-flight fetch for the key
    3. A successful fetch is inserted into the cache, then returned
    4. A failed fetch propagates and leaves the cache untouched

put_blob(key, blob) writes through: the remote store must accept the
blob before the local cache is updated.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from .cache.coordinator import FetchCoordinator
from .cache.lru import LruCache
from .config.remote import CacheConfig
from .config.settings import settings
from .errors import NotFoundError, TransportError
from .remote.base import RemoteStore
from .remote.chunked import DEFAULT_CHUNK_SIZE, ChunkedRemoteStore
from .remote.http import HttpRemoteStore

logger = logging.getLogger(__name__)


class CacheHandler:
    """
    Read-through, write-through LRU cache in front of a remote blob table.

    Safe to share between any number of concurrent tasks on one event
    loop. Consistency is local to this instance; nothing is coordinated
    across processes.

    Usage:
        config = CacheConfig(endpoint="https://kv.example.com", auth="token",
                             table="fs", max_entries=256)
        async with CacheHandler.from_config(config) as handler:
            data = await handler.get_blob("images/a.bin")

    Attributes:
        remote: The origin store
        cache: The local LRU cache
        coordinator: Per-key single-flight coordinator
    """

    def __init__(
            self,
            remote: RemoteStore,
            cache: Optional[LruCache] = None,
            coordinator: Optional[FetchCoordinator] = None,
    ):
        """
        Initialize the handler.

        Args:
            remote: The origin store
            cache: LRU cache (default: MAX_ENTRIES/MAX_BYTES from settings)
            coordinator: Fetch coordinator (creates a new one if not provided)
        """
        self.remote = remote
        self.cache = cache if cache is not None else LruCache(
            max_entries=settings.MAX_ENTRIES or None,
            max_bytes=settings.MAX_BYTES or None,
        )
        self.coordinator = coordinator if coordinator is not None else FetchCoordinator()

        self._fetches = 0
        self._not_found = 0
        self._transport_errors = 0

    @classmethod
    def from_config(
            cls,
            config: CacheConfig,
            transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "CacheHandler":
        """
        Validate a staged config and build a ready handler.

        Args:
            config: Staged configuration
            transport: httpx transport override, for tests

        Raises:
            ConfigError: If the configuration is incomplete or invalid
        """
        table_config = config.validate()
        remote: RemoteStore = HttpRemoteStore(table_config, transport=transport)
        if config.chunk_size or config.reducer is not None:
            remote = ChunkedRemoteStore(
                remote,
                chunk_size=config.chunk_size or DEFAULT_CHUNK_SIZE,
                reducer=config.reducer,
            )

        max_entries, max_bytes = config.capacity()
        cache = LruCache(max_entries=max_entries, max_bytes=max_bytes)
        logger.info(
            f"Blob cache for {table_config.endpoint}/{table_config.table} "
            f"(max_entries={max_entries}, max_bytes={max_bytes}, "
            f"chunk_size={config.chunk_size})"
        )
        return cls(remote=remote, cache=cache)

    @classmethod
    def from_env(cls) -> "CacheHandler":
        """Build a handler from BLOB_CACHE_* environment variables."""
        return cls.from_config(CacheConfig.from_env())

    async def get_blob(self, key: str) -> bytes:
        """
        Get a blob, from memory if resident, otherwise from the remote store.

        Raises:
            ValueError: If key is empty
            NotFoundError: The remote table has no such key
            TransportError: The remote call could not complete
        """
        self._check_key(key)

        data = self.cache.get(key)
        if data is not None:
            logger.debug(f"Cache hit for {key!r}")
            return data

        logger.debug(f"Cache miss for {key!r}")
        return await self.coordinator.resolve(key, lambda: self._fill(key))

    async def _fill(self, key: str) -> bytes:
        """Fetch a key from the remote store and populate the cache."""
        self._fetches += 1
        try:
            data = await self.remote.fetch(key)
        except NotFoundError:
            self._not_found += 1
            raise
        except TransportError:
            self._transport_errors += 1
            raise

        # A put or invalidate that landed while this fetch was running
        # detaches it; its now stale result must not be cached.
        if self.coordinator.owns(key, asyncio.current_task()):
            self.cache.insert(key, data)
        else:
            logger.debug(f"Discarding superseded fetch result for {key!r}")
        return data

    async def put_blob(self, key: str, blob: bytes) -> None:
        """
        Write a blob to the remote store, then to the local cache.

        Raises:
            ValueError: If key is empty
            TransportError: The remote store did not accept the write; the
                local cache is left as it was
        """
        self._check_key(key)
        data = bytes(blob)

        try:
            await self.remote.put(key, data)
        except TransportError as e:
            self._transport_errors += 1
            logger.error(f"Write-through of {key!r} failed: {e}")
            raise

        self.coordinator.discard(key)
        self.cache.insert(key, data)

    def invalidate(self, key: str) -> None:
        """
        Drop a key from the local cache only. Idempotent.

        Any fetch for the key already in flight will not populate the cache.
        """
        self.coordinator.discard(key)
        self.cache.invalidate(key)

    async def delete_blob(self, key: str) -> None:
        """
        Delete a blob from the remote store, then from the local cache.

        Raises:
            ValueError: If key is empty
            TransportError: The remote delete failed; the local cache is
                left as it was
        """
        self._check_key(key)
        await self.remote.delete(key)
        self.invalidate(key)

    def contains(self, key: str) -> bool:
        """Whether key is resident locally (does not touch LRU order)."""
        return self.cache.contains(key)

    def get_stats(self) -> Dict[str, Any]:
        stats = self.cache.get_stats()
        stats.update(self.coordinator.get_stats())
        stats.update({
            "remote_fetches": self._fetches,
            "not_found": self._not_found,
            "transport_errors": self._transport_errors,
        })
        return stats

    async def close(self) -> None:
        """Release the remote store's transport and drop cached blobs."""
        await self.remote.close()
        self.cache.clear()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    @staticmethod
    def _check_key(key: str) -> None:
        if not isinstance(key, str) or not key:
            raise ValueError("key must be a non-empty string")
