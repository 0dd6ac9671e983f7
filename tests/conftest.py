"""
Pytest Configuration and Fixtures

This module provides shared fixtures and configuration for all tests.
"""

import asyncio
from collections import Counter
from typing import AsyncGenerator, Dict, List, Optional

import httpx
import pytest
import pytest_asyncio

from blobcache.cache.coordinator import FetchCoordinator
from blobcache.cache.lru import LruCache
from blobcache.config.remote import RemoteTableConfig
from blobcache.errors import NotFoundError, TransportError
from blobcache.handler import CacheHandler
from blobcache.remote.base import RemoteStore
from blobcache.remote.http import HttpRemoteStore
from blobcache.remote.memory import InMemoryRemoteStore

TEST_ENDPOINT = "https://kv.test"
TEST_TOKEN = "test-token"
TEST_TABLE = "fs"


# ============================================================================
# LRU Cache Fixtures
# ============================================================================

@pytest.fixture
def lru_cache() -> LruCache:
    """Create an LRU cache for testing (5 entries max)."""
    return LruCache(max_entries=5)


@pytest.fixture
def byte_cache() -> LruCache:
    """Create an LRU cache bounded by a 100 byte budget."""
    return LruCache(max_bytes=100)


@pytest.fixture
def coordinator() -> FetchCoordinator:
    return FetchCoordinator()


# ============================================================================
# Remote Store Fixtures
# ============================================================================

class GatedRemoteStore(RemoteStore):
    """
    RemoteStore whose fetches block until the test opens the gate.

    Lets a test pile up concurrent callers on one key before the origin
    answers. Fetch outcomes are taken from `blobs`, or from `failures`
    when a key has an exception queued there.
    """

    def __init__(self, blobs: Optional[Dict[str, bytes]] = None):
        self.blobs: Dict[str, bytes] = dict(blobs or {})
        self.failures: Dict[str, Exception] = {}
        self.gate = asyncio.Event()
        self.gate.set()
        self.calls: Counter = Counter()
        self.fetched: List[str] = []

    async def fetch(self, key: str) -> bytes:
        self.calls["fetch"] += 1
        self.fetched.append(key)
        await self.gate.wait()
        if key in self.failures:
            raise self.failures[key]
        try:
            return self.blobs[key]
        except KeyError:
            raise NotFoundError(key) from None

    async def put(self, key: str, data: bytes) -> None:
        self.calls["put"] += 1
        self.blobs[key] = bytes(data)

    async def delete(self, key: str) -> None:
        self.calls["delete"] += 1
        self.blobs.pop(key, None)

    def fail(self, key: str, error: Optional[Exception] = None) -> None:
        self.failures[key] = error or TransportError("connection reset", key=key)


@pytest.fixture
def origin() -> InMemoryRemoteStore:
    """In-memory origin preloaded with a few blobs."""
    return InMemoryRemoteStore({
        "a.bin": bytes([1, 2, 3]),
        "b.bin": b"bravo",
        "c.bin": b"charlie",
        "d.bin": b"delta",
    })


@pytest.fixture
def gated_origin() -> GatedRemoteStore:
    return GatedRemoteStore({
        "a.bin": bytes([1, 2, 3]),
        "b.bin": b"bravo",
    })


@pytest.fixture
def handler(origin: InMemoryRemoteStore) -> CacheHandler:
    """Handler over the in-memory origin with room for 3 blobs."""
    return CacheHandler(remote=origin, cache=LruCache(max_entries=3))


@pytest.fixture
def gated_handler(gated_origin: GatedRemoteStore) -> CacheHandler:
    return CacheHandler(remote=gated_origin, cache=LruCache(max_entries=3))


# ============================================================================
# HTTP Fixtures
# ============================================================================

class KVTableApp:
    """
    Minimal remote KV service for httpx.MockTransport.

    Serves GET/POST/DELETE on /<table>/<key>, requires the bearer token,
    and records every request it sees.
    """

    def __init__(self, token: str = TEST_TOKEN):
        self.token = token
        self.tables: Dict[str, Dict[str, bytes]] = {}
        self.requests: List[httpx.Request] = []
        self.status_override: Optional[int] = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.headers.get("Authorization") != f"Bearer {self.token}":
            return httpx.Response(401)
        if self.status_override is not None:
            return httpx.Response(self.status_override)

        table, _, key = request.url.path.lstrip("/").partition("/")
        rows = self.tables.setdefault(table, {})

        if request.method == "GET":
            if key not in rows:
                return httpx.Response(404)
            return httpx.Response(200, content=rows[key])
        if request.method == "POST":
            rows[key] = request.content
            return httpx.Response(201)
        if request.method == "DELETE":
            if rows.pop(key, None) is None:
                return httpx.Response(404)
            return httpx.Response(204)
        return httpx.Response(405)

    def count(self, method: str) -> int:
        return sum(1 for r in self.requests if r.method == method)


@pytest.fixture
def kv_app() -> KVTableApp:
    return KVTableApp()


@pytest.fixture
def table_config() -> RemoteTableConfig:
    return RemoteTableConfig(endpoint=TEST_ENDPOINT, auth=TEST_TOKEN, table=TEST_TABLE)


@pytest_asyncio.fixture
async def http_store(
    kv_app: KVTableApp,
    table_config: RemoteTableConfig,
) -> AsyncGenerator[HttpRemoteStore, None]:
    """HttpRemoteStore wired to the in-process KV service."""
    store = HttpRemoteStore(table_config, transport=httpx.MockTransport(kv_app))
    yield store
    await store.close()


# ============================================================================
# Pytest Configuration
# ============================================================================

def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )


# Configure asyncio mode for pytest-asyncio
pytest_plugins = ['pytest_asyncio']
