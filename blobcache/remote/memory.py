"""In-process RemoteStore for local development, tests and benchmarks."""

import asyncio
from collections import Counter
from typing import Dict, Optional

from ..errors import NotFoundError, TransportError
from .base import RemoteStore


class InMemoryRemoteStore(RemoteStore):
    """
    Dict-backed RemoteStore with optional simulated latency.

    Attributes:
        blobs: The stored blobs, keyed by path
        latency: Seconds to sleep before each call
        available: When False every call raises TransportError
        calls: Per-operation call counts ("fetch", "put", "delete")
    """

    def __init__(self, blobs: Optional[Dict[str, bytes]] = None, latency: float = 0.0):
        self.blobs: Dict[str, bytes] = dict(blobs or {})
        self.latency = latency
        self.available = True
        self.calls: Counter = Counter()

    async def _enter(self, op: str, key: str) -> None:
        self.calls[op] += 1
        if self.latency:
            await asyncio.sleep(self.latency)
        if not self.available:
            raise TransportError(f"{op} {key!r}: remote unavailable", key=key)

    async def fetch(self, key: str) -> bytes:
        await self._enter("fetch", key)
        try:
            return self.blobs[key]
        except KeyError:
            raise NotFoundError(key) from None

    async def put(self, key: str, data: bytes) -> None:
        await self._enter("put", key)
        self.blobs[key] = bytes(data)

    async def delete(self, key: str) -> None:
        await self._enter("delete", key)
        self.blobs.pop(key, None)
