"""
LRU Blob Cache Module

Fixed-capacity in-memory store for blobs, ordered by recency of access.

LRU Concept:
- Most recently accessed entries are at the END of the OrderedDict
- Least recently accessed entries are at the BEGINNING
- On access (get/insert), move entry to end
- On eviction, remove from beginning

Capacity can be bounded by entry count, by total bytes, or by both.
"""

import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..errors import CacheInvariantViolation

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    """
    A resident blob and its bookkeeping.

    Attributes:
        key: The blob path
        data: The blob payload
        size: Payload length in bytes
    """
    key: str
    data: bytes
    size: int

    @classmethod
    def create(cls, key: str, blob: bytes) -> "CacheEntry":
        data = bytes(blob)
        return cls(key=key, data=data, size=len(data))


class LruCache:
    """
    Least Recently Used blob cache.

    All operations are O(1) amortized: the OrderedDict is both the hash
    index and the recency list, and move_to_end()/popitem(last=False)
    are constant time. One lock covers lookup, insert and eviction, so no
    caller ever sees a half-evicted or half-inserted state. The lock is
    never held across I/O.

    Usage:
        cache = LruCache(max_entries=100)
        cache.insert("a.bin", b"...")
        data = cache.get("a.bin")  # marks a.bin as most recently used

    When a byte budget is configured, a blob larger than the whole budget
    is not retained at all.

    Attributes:
        max_entries: Maximum number of resident entries, or None
        max_bytes: Maximum total payload size, or None
    """

    def __init__(self, max_entries: Optional[int] = None, max_bytes: Optional[int] = None):
        """
        Initialize the cache.

        Args:
            max_entries: Maximum number of entries (must be positive if given)
            max_bytes: Maximum total bytes (must be positive if given)

        Raises:
            ValueError: If neither bound is given or a bound is not positive
        """
        if max_entries is None and max_bytes is None:
            raise ValueError("max_entries or max_bytes must be set")
        if max_entries is not None and max_entries <= 0:
            raise ValueError("max_entries must be positive")
        if max_bytes is not None and max_bytes <= 0:
            raise ValueError("max_bytes must be positive")

        self.max_entries = max_entries
        self.max_bytes = max_bytes

        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._total_bytes = 0
        self._lock = threading.Lock()

        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._rejected = 0

    def get(self, key: str) -> Optional[bytes]:
        """
        Get a blob and mark it as recently used.

        Returns:
            The blob if resident, None otherwise (no side effect on miss)
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None

            self._entries.move_to_end(key)
            self._hits += 1
            return entry.data

    def peek(self, key: str) -> Optional[bytes]:
        """Get a blob without updating LRU order."""
        with self._lock:
            entry = self._entries.get(key)
            return entry.data if entry is not None else None

    def contains(self, key: str) -> bool:
        """Check residency without updating LRU order."""
        with self._lock:
            return key in self._entries

    def __contains__(self, key: str) -> bool:
        return self.contains(key)

    def __len__(self) -> int:
        return self.size()

    def fits(self, size: int) -> bool:
        """Whether a blob of this size can be retained at all."""
        return self.max_bytes is None or size <= self.max_bytes

    def insert(self, key: str, blob: bytes) -> List[str]:
        """
        Insert or replace a blob and evict as needed.

        The new entry becomes most recently used. Least recently used
        entries are then evicted until the cache is back within capacity;
        the entry just inserted is never one of them.

        A blob larger than max_bytes is rejected: it is not stored, nothing
        is evicted for it, and any older entry under the same key is
        dropped so the superseded value is not served.

        Args:
            key: The blob path
            blob: The blob payload

        Returns:
            Keys evicted to make room, least recently used first
        """
        entry = CacheEntry.create(key, blob)
        evicted: List[str] = []

        with self._lock:
            old = self._entries.pop(key, None)
            if old is not None:
                self._total_bytes -= old.size

            if not self.fits(entry.size):
                self._rejected += 1
                logger.warning(
                    f"Blob {key!r} ({entry.size} bytes) exceeds cache budget "
                    f"of {self.max_bytes} bytes; not cached"
                )
                return evicted

            self._entries[key] = entry
            self._total_bytes += entry.size

            while self._over_capacity():
                lru_key, lru_entry = self._entries.popitem(last=False)
                self._total_bytes -= lru_entry.size
                self._evictions += 1
                evicted.append(lru_key)

        if evicted:
            logger.debug(f"Inserted {key!r}, evicted {len(evicted)} entries: {evicted}")
        return evicted

    def _over_capacity(self) -> bool:
        # Caller holds the lock. The MRU entry always fits on its own, so
        # the loop in insert() stops before reaching it.
        if self.max_entries is not None and len(self._entries) > self.max_entries:
            return True
        if self.max_bytes is not None and self._total_bytes > self.max_bytes:
            return True
        return False

    def remove(self, key: str) -> bool:
        """
        Remove a blob.

        Returns:
            True if it was resident, False otherwise
        """
        with self._lock:
            entry = self._entries.pop(key, None)
            if entry is None:
                return False
            self._total_bytes -= entry.size
            return True

    def invalidate(self, key: str) -> None:
        """Drop a blob if resident. Idempotent."""
        self.remove(key)

    def evict_lru(self) -> Optional[CacheEntry]:
        """
        Manually evict the least recently used entry.

        Returns:
            The evicted entry, or None if the cache is empty
        """
        with self._lock:
            if not self._entries:
                return None
            _, entry = self._entries.popitem(last=False)
            self._total_bytes -= entry.size
            self._evictions += 1
            return entry

    def get_lru_key(self) -> Optional[str]:
        """Key of the least recently used entry, without evicting."""
        with self._lock:
            if not self._entries:
                return None
            return next(iter(self._entries))

    def get_mru_key(self) -> Optional[str]:
        """Key of the most recently used entry."""
        with self._lock:
            if not self._entries:
                return None
            return next(reversed(self._entries))

    def keys(self) -> List[str]:
        """All resident keys, least recent first."""
        with self._lock:
            return list(self._entries.keys())

    def size(self) -> int:
        """Number of resident entries."""
        with self._lock:
            return len(self._entries)

    def total_bytes(self) -> int:
        """Sum of resident payload sizes."""
        with self._lock:
            return self._total_bytes

    def clear(self) -> None:
        """Remove all entries."""
        with self._lock:
            self._entries.clear()
            self._total_bytes = 0

    def check_invariants(self) -> None:
        """
        Verify the index/entry bijection, size accounting and capacity.

        Raises:
            CacheInvariantViolation: If any invariant is broken
        """
        with self._lock:
            for key, entry in self._entries.items():
                if entry.key != key:
                    raise CacheInvariantViolation(f"index key {key!r} maps to entry {entry.key!r}")
                if entry.size != len(entry.data):
                    raise CacheInvariantViolation(f"entry {key!r} records size {entry.size}, holds {len(entry.data)}")

            actual = sum(entry.size for entry in self._entries.values())
            if actual != self._total_bytes:
                raise CacheInvariantViolation(f"tracked {self._total_bytes} bytes, resident {actual}")
            if self.max_entries is not None and len(self._entries) > self.max_entries:
                raise CacheInvariantViolation(f"{len(self._entries)} entries exceed limit {self.max_entries}")
            if self.max_bytes is not None and self._total_bytes > self.max_bytes:
                raise CacheInvariantViolation(f"{self._total_bytes} bytes exceed limit {self.max_bytes}")

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        with self._lock:
            lookups = self._hits + self._misses
            if self.max_bytes is not None:
                utilization = self._total_bytes / self.max_bytes
            else:
                utilization = len(self._entries) / self.max_entries
            return {
                "entries": len(self._entries),
                "bytes": self._total_bytes,
                "max_entries": self.max_entries,
                "max_bytes": self.max_bytes,
                "utilization": utilization,
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": self._hits / lookups if lookups else 0.0,
                "evictions": self._evictions,
                "rejected": self._rejected,
            }
