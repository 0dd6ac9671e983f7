"""
Tests for the LRU blob cache

These tests verify LRU (Least Recently Used) behaviour:
- Eviction when the cache is full (by entries and by bytes)
- Correct LRU ordering
- Update of access order on get/insert
- Rejection of blobs larger than the byte budget

Run with: python -m pytest tests/test_lru.py -v
"""

import random
import threading

import pytest

from blobcache.cache.lru import CacheEntry, LruCache
from blobcache.errors import CacheInvariantViolation


class TestLruCacheBasics:
    """Test the LruCache class directly."""

    def test_init(self, lru_cache: LruCache):
        assert lru_cache.max_entries == 5
        assert lru_cache.max_bytes is None
        assert lru_cache.size() == 0

    def test_init_invalid_bounds(self):
        with pytest.raises(ValueError):
            LruCache()

        with pytest.raises(ValueError):
            LruCache(max_entries=0)

        with pytest.raises(ValueError):
            LruCache(max_bytes=-1)

    def test_insert_and_get(self, lru_cache: LruCache):
        lru_cache.insert("a.bin", b"\x01\x02\x03")
        assert lru_cache.get("a.bin") == b"\x01\x02\x03"

    def test_get_nonexistent(self, lru_cache: LruCache):
        assert lru_cache.get("missing") is None
        assert lru_cache.size() == 0

    def test_insert_copies_mutable_buffers(self, lru_cache: LruCache):
        """Cached bytes do not alias the caller's buffer."""
        buf = bytearray(b"abc")
        lru_cache.insert("k", buf)
        buf[0] = ord("z")

        assert lru_cache.get("k") == b"abc"

    def test_insert_replaces_existing(self, lru_cache: LruCache):
        lru_cache.insert("k", b"one")
        lru_cache.insert("k", b"three")

        assert lru_cache.get("k") == b"three"
        assert lru_cache.size() == 1
        assert lru_cache.total_bytes() == 5

    def test_remove(self, lru_cache: LruCache):
        lru_cache.insert("k", b"v")

        assert lru_cache.remove("k") is True
        assert lru_cache.get("k") is None
        assert lru_cache.total_bytes() == 0

    def test_remove_nonexistent(self, lru_cache: LruCache):
        assert lru_cache.remove("missing") is False

    def test_invalidate_is_idempotent(self, lru_cache: LruCache):
        lru_cache.insert("k", b"v")

        lru_cache.invalidate("k")
        lru_cache.invalidate("k")

        assert "k" not in lru_cache
        assert len(lru_cache) == 0

    def test_contains_and_peek_do_not_update_order(self, lru_cache: LruCache):
        for i in range(5):
            lru_cache.insert(f"key{i}", f"value{i}".encode())

        assert lru_cache.contains("key0") is True
        assert lru_cache.peek("key0") == b"value0"

        evicted = lru_cache.insert("key5", b"value5")

        assert evicted == ["key0"]

    def test_clear(self, lru_cache: LruCache):
        for i in range(3):
            lru_cache.insert(f"key{i}", b"x")

        lru_cache.clear()

        assert lru_cache.size() == 0
        assert lru_cache.total_bytes() == 0
        assert lru_cache.get_lru_key() is None

    def test_entry_create(self):
        entry = CacheEntry.create("k", bytearray(b"abcd"))

        assert entry.key == "k"
        assert entry.data == b"abcd"
        assert isinstance(entry.data, bytes)
        assert entry.size == 4


class TestEntryEviction:
    """Eviction with an entry-count bound."""

    def test_eviction_when_full(self, lru_cache: LruCache):
        for i in range(5):
            lru_cache.insert(f"key{i}", f"value{i}".encode())

        evicted = lru_cache.insert("key5", b"value5")

        assert evicted == ["key0"]
        assert lru_cache.get("key0") is None
        assert lru_cache.get("key5") == b"value5"
        assert lru_cache.size() == 5

    def test_get_protects_from_eviction(self, lru_cache: LruCache):
        for i in range(5):
            lru_cache.insert(f"key{i}", f"value{i}".encode())

        lru_cache.get("key0")

        evicted = lru_cache.insert("key5", b"value5")

        assert evicted == ["key1"]
        assert lru_cache.get("key0") == b"value0"
        assert lru_cache.get("key1") is None

    def test_reinsert_updates_order(self, lru_cache: LruCache):
        for i in range(5):
            lru_cache.insert(f"key{i}", f"value{i}".encode())

        lru_cache.insert("key0", b"updated")

        evicted = lru_cache.insert("key5", b"value5")

        assert evicted == ["key1"]
        assert lru_cache.get("key0") == b"updated"

    def test_reinsert_does_not_evict(self, lru_cache: LruCache):
        for i in range(5):
            lru_cache.insert(f"key{i}", b"v")

        assert lru_cache.insert("key3", b"w") == []
        assert lru_cache.size() == 5

    def test_eviction_order_follows_access(self, lru_cache: LruCache):
        for i in range(5):
            lru_cache.insert(f"key{i}", b"v")

        for key in ("key3", "key1", "key4"):
            lru_cache.get(key)

        assert lru_cache.keys() == ["key0", "key2", "key3", "key1", "key4"]

        evicted = []
        for i in range(5, 8):
            evicted.extend(lru_cache.insert(f"key{i}", b"v"))

        assert evicted == ["key0", "key2", "key3"]

    def test_lru_and_mru_keys(self, lru_cache: LruCache):
        lru_cache.insert("key1", b"v")
        lru_cache.insert("key2", b"v")

        assert lru_cache.get_lru_key() == "key1"
        assert lru_cache.get_mru_key() == "key2"

        lru_cache.get("key1")

        assert lru_cache.get_lru_key() == "key2"
        assert lru_cache.get_mru_key() == "key1"

    def test_evict_lru(self, lru_cache: LruCache):
        lru_cache.insert("key1", b"value1")
        lru_cache.insert("key2", b"value2")

        entry = lru_cache.evict_lru()

        assert entry.key == "key1"
        assert entry.data == b"value1"
        assert lru_cache.size() == 1

    def test_evict_lru_empty(self, lru_cache: LruCache):
        assert lru_cache.evict_lru() is None

    def test_single_entry_cache(self):
        cache = LruCache(max_entries=1)

        cache.insert("a", b"1")
        evicted = cache.insert("b", b"2")

        assert evicted == ["a"]
        assert cache.keys() == ["b"]


class TestByteEviction:
    """Eviction with a byte budget."""

    def test_evicts_until_within_budget(self, byte_cache: LruCache):
        for i in range(4):
            byte_cache.insert(f"key{i}", bytes(25))

        evicted = byte_cache.insert("big", bytes(60))

        assert evicted == ["key0", "key1", "key2"]
        assert byte_cache.keys() == ["key3", "big"]
        assert byte_cache.total_bytes() == 85

    def test_blob_exactly_budget_is_kept(self, byte_cache: LruCache):
        byte_cache.insert("small", bytes(10))

        evicted = byte_cache.insert("full", bytes(100))

        assert evicted == ["small"]
        assert byte_cache.keys() == ["full"]
        assert byte_cache.total_bytes() == 100

    def test_oversize_blob_is_rejected(self, byte_cache: LruCache):
        """A blob larger than the whole budget is not cached and evicts nothing."""
        byte_cache.insert("a", bytes(40))
        byte_cache.insert("b", bytes(40))

        evicted = byte_cache.insert("huge", bytes(101))

        assert evicted == []
        assert "huge" not in byte_cache
        assert byte_cache.keys() == ["a", "b"]
        assert byte_cache.total_bytes() == 80
        assert byte_cache.get_stats()["rejected"] == 1

    def test_oversize_replacement_drops_stale_entry(self, byte_cache: LruCache):
        byte_cache.insert("a", b"old")

        byte_cache.insert("a", bytes(500))

        assert byte_cache.get("a") is None
        assert byte_cache.total_bytes() == 0

    def test_fits(self, byte_cache: LruCache, lru_cache: LruCache):
        assert byte_cache.fits(100) is True
        assert byte_cache.fits(101) is False
        assert lru_cache.fits(10 ** 9) is True

    def test_both_bounds(self):
        cache = LruCache(max_entries=2, max_bytes=10)

        cache.insert("a", b"1")
        cache.insert("b", b"2")
        assert cache.insert("c", b"3") == ["a"]

        assert cache.insert("d", bytes(10)) == ["b", "c"]
        assert cache.keys() == ["d"]


class TestInvariants:
    """Capacity and index/entry invariants."""

    @pytest.mark.parametrize("max_entries,max_bytes", [(7, None), (None, 300), (5, 200)])
    def test_random_operations_keep_invariants(self, max_entries, max_bytes):
        rng = random.Random(1234)
        cache = LruCache(max_entries=max_entries, max_bytes=max_bytes)
        keys = [f"key{i}" for i in range(20)]

        for _ in range(2000):
            op = rng.random()
            key = rng.choice(keys)
            if op < 0.5:
                cache.insert(key, bytes(rng.randint(0, 120)))
            elif op < 0.85:
                cache.get(key)
            else:
                cache.remove(key)

            cache.check_invariants()
            if max_entries is not None:
                assert cache.size() <= max_entries
            if max_bytes is not None:
                assert cache.total_bytes() <= max_bytes

    def test_detects_broken_accounting(self, lru_cache: LruCache):
        lru_cache.insert("k", b"value")
        lru_cache._total_bytes += 1

        with pytest.raises(CacheInvariantViolation):
            lru_cache.check_invariants()

    def test_detects_mismatched_entry(self, lru_cache: LruCache):
        lru_cache.insert("k", b"value")
        lru_cache._entries["k"] = CacheEntry.create("other", b"value")

        with pytest.raises(CacheInvariantViolation):
            lru_cache.check_invariants()

    def test_concurrent_threads(self):
        cache = LruCache(max_entries=50, max_bytes=4000)
        errors = []

        def worker(seed: int):
            rng = random.Random(seed)
            try:
                for _ in range(500):
                    key = f"key{rng.randint(0, 99)}"
                    if rng.random() < 0.5:
                        cache.insert(key, bytes(rng.randint(1, 200)))
                    else:
                        cache.get(key)
            except Exception as e:  # pragma: no cover
                errors.append(e)

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        cache.check_invariants()


class TestStats:

    def test_stats(self, lru_cache: LruCache):
        lru_cache.insert("key1", b"abc")
        lru_cache.get("key1")
        lru_cache.get("missing")

        stats = lru_cache.get_stats()

        assert stats["entries"] == 1
        assert stats["bytes"] == 3
        assert stats["max_entries"] == 5
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["hit_rate"] == 0.5
        assert stats["utilization"] == 0.2

    def test_eviction_count(self, lru_cache: LruCache):
        for i in range(8):
            lru_cache.insert(f"key{i}", b"v")

        assert lru_cache.get_stats()["evictions"] == 3
