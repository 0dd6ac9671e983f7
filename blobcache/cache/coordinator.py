"""
Single-flight fetch coordination.

At most one remote fetch is outstanding per key. The first caller to miss
on a key starts the fetch as an asyncio Task; later callers for the same
key attach to that Task instead of starting their own. Every waiter awaits
the Task through asyncio.shield(), so one caller giving up (timeout,
cancellation) never aborts the fetch the others depend on.
"""

import asyncio
import logging
import threading
from typing import Any, Awaitable, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

FetchFn = Callable[[], Awaitable[bytes]]


class FetchCoordinator:
    """
    Deduplicates concurrent misses on the same key.

    The key -> Task map is guarded by a lock that covers only creating,
    looking up and removing entries. The fetch itself runs outside it, so
    fetches for different keys proceed in parallel.

    Usage:
        coordinator = FetchCoordinator()
        data = await coordinator.resolve("a.bin", lambda: store.fetch("a.bin"))
    """

    def __init__(self):
        self._inflight: Dict[str, "asyncio.Task[bytes]"] = {}
        self._lock = threading.Lock()
        self._started = 0
        self._joined = 0

    async def resolve(self, key: str, fetch_fn: FetchFn) -> bytes:
        """
        Get the result of the single in-flight fetch for a key.

        Args:
            key: The key being fetched
            fetch_fn: Zero-argument coroutine function doing the fetch;
                only invoked if no fetch for the key is in flight

        Returns:
            The fetched blob

        Raises:
            Whatever fetch_fn raised; every waiter receives the same error
        """
        with self._lock:
            task = self._inflight.get(key)
            if task is None or task.done():
                task = asyncio.ensure_future(fetch_fn())
                self._inflight[key] = task
                task.add_done_callback(lambda t, k=key: self._release(k, t))
                self._started += 1
                leader = True
            else:
                self._joined += 1
                leader = False

        if not leader:
            logger.debug(f"Joined in-flight fetch for {key!r}")
        return await asyncio.shield(task)

    def _release(self, key: str, task: "asyncio.Task[bytes]") -> None:
        with self._lock:
            if self._inflight.get(key) is task:
                del self._inflight[key]

        # Mark the outcome as retrieved even if every waiter went away.
        if not task.cancelled() and task.exception() is not None:
            logger.debug(f"Fetch for {key!r} failed: {task.exception()!r}")

    def owns(self, key: str, task: Optional["asyncio.Task[Any]"]) -> bool:
        """Whether task is still the registered fetch for key."""
        with self._lock:
            return task is not None and self._inflight.get(key) is task

    def discard(self, key: str) -> bool:
        """
        Detach the in-flight fetch for a key.

        Current waiters still receive its result, but callers arriving
        afterwards start a fresh fetch, and owns() no longer holds for it.

        Returns:
            True if a fetch was detached
        """
        with self._lock:
            return self._inflight.pop(key, None) is not None

    def is_in_flight(self, key: str) -> bool:
        with self._lock:
            task = self._inflight.get(key)
            return task is not None and not task.done()

    def in_flight(self) -> List[str]:
        """Keys with a fetch currently outstanding."""
        with self._lock:
            return [key for key, task in self._inflight.items() if not task.done()]

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "in_flight": len(self._inflight),
                "fetches_started": self._started,
                "fetches_joined": self._joined,
            }
