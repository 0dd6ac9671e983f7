"""
Chunked, content-addressed blob layout on top of another RemoteStore.

A blob stored under "name" becomes:

    name:<hash>   one entry per chunk of at most chunk_size bytes
    name:index    the chunk hashes in order, 8 bytes each (int64 LE)

The hash of a chunk is SHAKE-256 truncated to 8 bytes, read as a signed
little-endian int64. Chunks are verified against their hash on fetch.

An optional reducer transforms each chunk before it is hashed and stored,
and again after it is fetched and verified. The index is never reduced.
A self-inverse reducer (an XOR keystream, say) round-trips the blob.
"""

import asyncio
import hashlib
import logging
import struct
from typing import Awaitable, Iterable, List, Optional, TypeVar

from ..config.remote import Reducer
from ..errors import IntegrityError, NotFoundError
from .base import RemoteStore

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 1024 * 1024
INDEX_SUFFIX = "index"
HASH_SIZE = 8

T = TypeVar("T")


def content_hash(data: bytes) -> int:
    """SHAKE-256 digest of data truncated to a signed 64-bit integer."""
    return int.from_bytes(hashlib.shake_256(data).digest(HASH_SIZE), "little", signed=True)


def pack_index(hashes: List[int]) -> bytes:
    return b"".join(struct.pack("<q", h) for h in hashes)


def unpack_index(key: str, index: bytes) -> List[int]:
    if len(index) % HASH_SIZE:
        raise IntegrityError(f"index for {key!r} has invalid length {len(index)}", key=key)
    return [h for (h,) in struct.iter_unpack("<q", index)]


async def gather_or_cancel(aws: Iterable[Awaitable[T]]) -> List[T]:
    """
    Run awaitables concurrently; on the first failure cancel the rest.

    The remaining tasks are awaited after cancellation so none of them
    outlives the call or leaves an unretrieved exception behind.
    """
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


class ChunkedRemoteStore(RemoteStore):
    """
    RemoteStore decorator that splits blobs into verified chunks.

    Identical chunks share one remote entry. Deleting a blob removes its
    index only; chunks may be referenced by other blobs and are left in
    place.

    Attributes:
        inner: The store holding chunk and index entries
        chunk_size: Maximum chunk length in bytes
        reducer: Optional per-chunk transform applied on put and on fetch
    """

    def __init__(
            self,
            inner: RemoteStore,
            chunk_size: int = DEFAULT_CHUNK_SIZE,
            reducer: Optional[Reducer] = None,
    ):
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self.inner = inner
        self.chunk_size = chunk_size
        self.reducer = reducer

    @staticmethod
    def index_key(key: str) -> str:
        return f"{key}:{INDEX_SUFFIX}"

    @staticmethod
    def chunk_key(key: str, chunk_hash: int) -> str:
        return f"{key}:{chunk_hash}"

    def split(self, data: bytes) -> List[bytes]:
        return [data[i:i + self.chunk_size] for i in range(0, len(data), self.chunk_size)]

    def _reduce(self, chunk: bytes) -> bytes:
        return bytes(self.reducer(chunk)) if self.reducer is not None else chunk

    async def fetch(self, key: str) -> bytes:
        hashes = unpack_index(key, await self.inner.fetch(self.index_key(key)))
        chunks = await gather_or_cancel(self._fetch_chunk(key, h) for h in hashes)
        return b"".join(chunks)

    async def _fetch_chunk(self, key: str, chunk_hash: int) -> bytes:
        try:
            chunk = await self.inner.fetch(self.chunk_key(key, chunk_hash))
        except NotFoundError as e:
            # The index exists, so a missing chunk means a damaged blob
            raise IntegrityError(f"chunk {chunk_hash} of {key!r} is missing", key=key) from e
        if content_hash(chunk) != chunk_hash:
            raise IntegrityError(f"chunk {chunk_hash} of {key!r} failed verification", key=key)
        return self._reduce(chunk)

    async def put(self, key: str, data: bytes) -> None:
        chunks = [self._reduce(chunk) for chunk in self.split(bytes(data))]
        hashes = [content_hash(chunk) for chunk in chunks]

        # Chunks first, index last: a reader never sees an index whose
        # chunks are not stored yet.
        unique = dict(zip(hashes, chunks))
        await gather_or_cancel(
            self.inner.put(self.chunk_key(key, h), chunk) for h, chunk in unique.items()
        )
        await self.inner.put(self.index_key(key), pack_index(hashes))
        logger.debug(f"Stored {key!r} as {len(chunks)} chunks ({len(unique)} unique)")

    async def delete(self, key: str) -> None:
        await self.inner.delete(self.index_key(key))

    async def close(self) -> None:
        await self.inner.close()
