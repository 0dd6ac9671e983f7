"""
Remote store abstraction.

A RemoteStore is bound to one table when constructed and addresses blobs
by key within it. It owns no cache state.
"""

from abc import ABC, abstractmethod


class RemoteStore(ABC):
    """
    Fallible, slow origin for blobs.

    Implementations must raise:
        NotFoundError: fetch() of a key the table does not hold
        TransportError: any failure to complete the remote call

    and must keep the two distinct: NotFoundError is a normal negative
    answer, TransportError is a retryable failure.
    """

    @abstractmethod
    async def fetch(self, key: str) -> bytes:
        """Fetch the blob stored under key."""

    @abstractmethod
    async def put(self, key: str, data: bytes) -> None:
        """Store data under key, replacing any previous blob."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove key from the table. Deleting a missing key is not an error."""

    async def close(self) -> None:
        """Release any transport resources."""

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
