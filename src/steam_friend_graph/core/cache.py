"""In-memory TTL caches shared by every session of one Steam client.

Two caches back :class:`~steam_friend_graph.steam.client.SteamClient`:

- the **response cache** maps a deterministic request URL to the raw response
  bytes;
- the **profile cache** maps a SteamID64 to its last fetched
  :class:`~steam_friend_graph.steam.models.SteamProfile`.

Each entry is scheduled for eviction exactly once, ``ttl`` seconds after it
was stored.  There is no invalidation API.  Expired entries are never served:
``get`` treats an entry past its deadline as a miss even if the
:class:`CacheEvictionScheduler` has not swept it yet.

The clock is injectable so tests can advance time deterministically::

    now = [0.0]
    cache = TTLCache(ttl=60, clock=lambda: now[0])
    cache.set("k", b"v")
    now[0] = 61
    assert cache.get("k") is None

Each cache owns a single ``threading.Lock`` held only for map lookups,
inserts and evictions.
"""

from __future__ import annotations

import asyncio
import contextlib
import heapq
import itertools
import logging
import threading
import time
from typing import Callable, Generic, Hashable, Iterable, TypeVar

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

Clock = Callable[[], float]


class TTLCache(Generic[K, V]):
    """Key/value map whose entries expire a fixed duration after insertion.

    Args:
        ttl: Entry lifetime in seconds.
        clock: Monotonic time source.  Defaults to :func:`time.monotonic`.
        name: Label used in log messages.
    """

    def __init__(
        self,
        ttl: float,
        clock: Clock = time.monotonic,
        name: str = "cache",
    ) -> None:
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        self.ttl = ttl
        self.name = name
        self._clock = clock
        self._entries: dict[K, tuple[V, float]] = {}
        # (expires_at, seq, key); seq keeps keys out of heap comparisons.
        self._schedule: list[tuple[float, int, K]] = []
        self._seq = itertools.count()
        self._lock = threading.Lock()

    def get(self, key: K) -> V | None:
        """Return the live value for *key*, or ``None`` on a miss."""
        with self._lock:
            return self._get_locked(key, self._clock())

    def get_many(self, keys: Iterable[K]) -> dict[K, V]:
        """Return the live values for every key in *keys* that has one."""
        hits: dict[K, V] = {}
        with self._lock:
            now = self._clock()
            for key in keys:
                value = self._get_locked(key, now)
                if value is not None:
                    hits[key] = value
        return hits

    def set(self, key: K, value: V) -> None:
        """Store *value* under *key* and schedule its eviction after ``ttl``."""
        with self._lock:
            expires_at = self._clock() + self.ttl
            self._entries[key] = (value, expires_at)
            heapq.heappush(self._schedule, (expires_at, next(self._seq), key))

    def purge_expired(self) -> int:
        """Evict every entry whose scheduled eviction time has passed.

        Returns:
            Number of entries removed.
        """
        removed = 0
        with self._lock:
            now = self._clock()
            while self._schedule and self._schedule[0][0] <= now:
                expires_at, _, key = heapq.heappop(self._schedule)
                entry = self._entries.get(key)
                # A re-stored key carries a later deadline; only its own
                # schedule entry may remove it.
                if entry is not None and entry[1] == expires_at:
                    del self._entries[key]
                    removed += 1
        return removed

    def _get_locked(self, key: K, now: float) -> V | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at <= now:
            del self._entries[key]
            return None
        return value

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return self.get(key) is not None  # type: ignore[arg-type]

    def __repr__(self) -> str:
        return f"<TTLCache name={self.name!r} ttl={self.ttl} size={len(self)}>"


class CacheEvictionScheduler:
    """Single background task that periodically purges expired cache entries.

    This is the only long-lived worker in the process.  Start it from the
    application startup hook and stop it on shutdown.

    Args:
        caches: Caches to sweep.
        interval: Seconds between sweeps.
    """

    def __init__(self, caches: Iterable[TTLCache], interval: float = 30.0) -> None:
        self._caches = list(caches)
        self._interval = interval
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Spawn the sweep loop on the running event loop."""
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="cache-eviction")

    async def stop(self) -> None:
        """Cancel the sweep loop and wait for it to exit."""
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None

    def sweep(self) -> int:
        """Purge every cache once and return the total number of evictions."""
        total = 0
        for cache in self._caches:
            removed = cache.purge_expired()
            if removed:
                logger.debug("cache %s: evicted %d expired entries", cache.name, removed)
            total += removed
        return total

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            self.sweep()
