#!/usr/bin/env python3
"""
Benchmark Script for the Blob Cache

Measures the LRU cache on its own and the CacheHandler against an
in-memory origin with simulated network latency.

Usage:
    python scripts/benchmark.py                    # Run all benchmarks
    python scripts/benchmark.py --operations 10000 # Custom operation count
    python scripts/benchmark.py --latency 0.005    # Slower simulated origin
    python scripts/benchmark.py --profile          # Enable cProfile
"""

import argparse
import asyncio
import os
import random
import statistics
import sys
import time
from typing import Any, Callable, Dict, List

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from blobcache.cache.lru import LruCache
from blobcache.config.logging_config import setup_logging
from blobcache.handler import CacheHandler
from blobcache.remote.memory import InMemoryRemoteStore


def measure_time(func: Callable, iterations: int = 1) -> Dict[str, float]:
    """Measure execution time statistics."""
    times = []

    for _ in range(iterations):
        start = time.perf_counter()
        func()
        elapsed = (time.perf_counter() - start) * 1000  # Convert to ms
        times.append(elapsed)

    return {
        "min_ms": min(times),
        "max_ms": max(times),
        "mean_ms": statistics.mean(times),
        "median_ms": statistics.median(times),
        "total_ms": sum(times),
    }


class Benchmark:
    """Collection of benchmarks for blob cache components."""

    def __init__(self, operations: int = 10000, keys: int = 1000, blob_size: int = 1024, latency: float = 0.001):
        self.operations = operations
        self.blob_size = blob_size
        self.latency = latency

        # Pre-generate test data
        self.keys = [f"blobs/{i:06d}.bin" for i in range(keys)]
        self.blobs = {key: os.urandom(blob_size) for key in self.keys}
        rng = random.Random(42)
        # Skewed access pattern: a small hot set gets most of the traffic
        hot = self.keys[: max(1, keys // 10)]
        self.workload = [
            rng.choice(hot) if rng.random() < 0.8 else rng.choice(self.keys)
            for _ in range(operations)
        ]

    def _finish(self, stats: Dict[str, Any], name: str) -> Dict[str, Any]:
        stats["ops_per_second"] = self.operations / (stats["total_ms"] / 1000)
        stats["operation"] = name
        stats["count"] = self.operations
        return stats

    def benchmark_insert(self) -> Dict[str, Any]:
        """Benchmark inserts with no eviction."""
        cache = LruCache(max_entries=len(self.keys))

        def run():
            for key in self.workload:
                cache.insert(key, self.blobs[key])

        return self._finish(measure_time(run), "LRU insert")

    def benchmark_get_hit(self) -> Dict[str, Any]:
        """Benchmark get() on resident keys."""
        cache = LruCache(max_entries=len(self.keys))
        for key in self.keys:
            cache.insert(key, self.blobs[key])

        def run():
            for key in self.workload:
                cache.get(key)

        return self._finish(measure_time(run), "LRU get (hit)")

    def benchmark_eviction(self) -> Dict[str, Any]:
        """Benchmark inserts into a byte-bounded cache that must evict."""
        cache = LruCache(max_bytes=max(self.blob_size, self.blob_size * len(self.keys) // 10))

        def run():
            for key in self.workload:
                if cache.get(key) is None:
                    cache.insert(key, self.blobs[key])

        stats = self._finish(measure_time(run), "LRU get/insert (evicting)")
        stats["evictions"] = cache.get_stats()["evictions"]
        return stats

    def benchmark_handler(self, concurrency: int = 50) -> Dict[str, Any]:
        """Benchmark get_blob() through the handler with concurrent clients."""
        origin = InMemoryRemoteStore(self.blobs, latency=self.latency)
        handler = CacheHandler(remote=origin, cache=LruCache(max_entries=max(1, len(self.keys) // 5)))
        per_client = [self.workload[i::concurrency] for i in range(concurrency)]

        async def client(keys: List[str]):
            for key in keys:
                await handler.get_blob(key)

        async def main():
            await asyncio.gather(*(client(keys) for keys in per_client))

        stats = self._finish(measure_time(lambda: asyncio.run(main())), "Handler get_blob")
        handler_stats = handler.get_stats()
        stats["hit_rate"] = handler_stats["hit_rate"]
        stats["remote_fetches"] = origin.calls["fetch"]
        stats["joined"] = handler_stats["fetches_joined"]
        return stats

    def run_all(self) -> List[Dict[str, Any]]:
        """Run all benchmarks."""
        benchmarks = [
            ("LRU insert", self.benchmark_insert),
            ("LRU get (hit)", self.benchmark_get_hit),
            ("LRU eviction", self.benchmark_eviction),
            ("Handler", self.benchmark_handler),
        ]

        results = []
        for name, func in benchmarks:
            print(f"Running: {name}...", end=" ", flush=True)
            result = func()
            print(f"{result['ops_per_second']:,.0f} ops/sec")
            results.append(result)

        return results


def print_results(results: List[Dict[str, Any]]):
    """Print benchmark results in a table."""
    print()
    print("=" * 70)
    print("                        BENCHMARK RESULTS")
    print("=" * 70)
    print(f"{'Operation':<30} {'Ops/sec':>12} {'Mean (ms)':>12} {'Total (ms)':>12}")
    print("-" * 70)

    for r in results:
        print(f"{r['operation']:<30} {r['ops_per_second']:>12,.0f} "
              f"{r['mean_ms']:>12.3f} {r['total_ms']:>12.1f}")

    print("=" * 70)

    for r in results:
        if "hit_rate" in r:
            print()
            print(f"Handler hit rate: {r['hit_rate']:.1%}")
            print(f"Remote fetches: {r['remote_fetches']:,} (joined in flight: {r['joined']:,})")


def main():
    parser = argparse.ArgumentParser(
        description="Benchmark blob cache components",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "--operations", "-n",
        type=int,
        default=10000,
        help="Number of operations per benchmark"
    )
    parser.add_argument(
        "--keys",
        type=int,
        default=1000,
        help="Number of distinct blobs"
    )
    parser.add_argument(
        "--blob-size",
        type=int,
        default=1024,
        help="Size of each blob in bytes"
    )
    parser.add_argument(
        "--latency",
        type=float,
        default=0.001,
        help="Simulated origin latency in seconds"
    )
    parser.add_argument(
        "--profile",
        action="store_true",
        help="Enable cProfile profiling"
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging"
    )

    args = parser.parse_args()
    setup_logging(debug=args.debug)

    print(f"Blob Cache Benchmark")
    print(f"====================")
    print(f"Operations per test: {args.operations:,}")
    print(f"Distinct blobs: {args.keys:,}")
    print(f"Blob size: {args.blob_size}")
    print()

    benchmark = Benchmark(
        operations=args.operations,
        keys=args.keys,
        blob_size=args.blob_size,
        latency=args.latency,
    )

    if args.profile:
        import cProfile
        import pstats

        profiler = cProfile.Profile()
        profiler.enable()
        results = benchmark.run_all()
        profiler.disable()

        print_results(results)

        print()
        print("Profiling Results (top 20):")
        print("-" * 70)
        stats = pstats.Stats(profiler)
        stats.sort_stats('cumulative')
        stats.print_stats(20)
    else:
        results = benchmark.run_all()
        print_results(results)


if __name__ == "__main__":
    main()
