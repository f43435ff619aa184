"""
In-process TTL caches for HireScope.

Four independent caches keep GitHub API responses, resolved profile
analyses, final analysis results and fetched external links. Entries older
than their cache's TTL are treated as absent and removed lazily on read, and
a background sweeper removes them proactively.
"""

import asyncio
import copy
import time
from typing import Any, Callable, Hashable, Iterable, NamedTuple

from rich.console import Console

from hirescope.config import DEFAULT_CACHE_TTLS, DEFAULT_SWEEP_INTERVAL

console = Console(stderr=True)

Clock = Callable[[], float]


class CacheEntry(NamedTuple):
    """A stored value and the time it was written."""

    data: Any
    stored_at: float


class TTLCache:
    """Expiring key -> value store.

    Values are copied on write, so later mutation by the caller never leaks
    into the cache. Values returned by get() must be treated as read-only.
    """

    def __init__(self, name: str, ttl_seconds: float, clock: Clock = time.monotonic):
        self.name = name
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[Hashable, CacheEntry] = {}

    def is_entry_valid(self, entry: CacheEntry, now: float | None = None) -> bool:
        """
        Check if a cache entry is still within the TTL.

        Args:
            entry: Stored entry.
            now: Current clock reading (defaults to the cache clock).

        Returns:
            True if the entry is not older than the TTL.
        """
        if now is None:
            now = self._clock()
        return now - entry.stored_at <= self.ttl_seconds

    def get(self, key: Hashable) -> Any | None:
        """Return the cached value, or None when absent or expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None

        if not self.is_entry_valid(entry):
            del self._entries[key]
            return None

        return entry.data

    def set(self, key: Hashable, value: Any) -> None:
        """Store a value, replacing any previous entry for the key."""
        self._entries[key] = CacheEntry(copy.deepcopy(value), self._clock())

    def sweep(self) -> int:
        """
        Remove every expired entry.

        Returns:
            Number of entries removed.
        """
        now = self._clock()
        expired = [
            key
            for key, entry in self._entries.items()
            if not self.is_entry_valid(entry, now)
        ]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def clear(self) -> int:
        """Drop all entries and return how many were dropped."""
        cleared = len(self._entries)
        self._entries.clear()
        return cleared

    def stats(self) -> dict[str, Any]:
        """Entry counts without evicting anything."""
        now = self._clock()
        total = len(self._entries)
        valid = sum(
            1 for entry in self._entries.values() if self.is_entry_valid(entry, now)
        )
        return {
            "ttl_seconds": self.ttl_seconds,
            "total": total,
            "valid": valid,
            "expired": total - valid,
        }

    def __contains__(self, key: Hashable) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        return len(self._entries)


class CacheRegistry:
    """The four process-wide caches, constructed once and passed around."""

    def __init__(
        self, ttls: dict[str, float] | None = None, clock: Clock = time.monotonic
    ):
        ttls = {**DEFAULT_CACHE_TTLS, **(ttls or {})}
        self.github = TTLCache("github", ttls["github"], clock)
        self.profiles = TTLCache("profile", ttls["profile"], clock)
        self.results = TTLCache("result", ttls["result"], clock)
        self.links = TTLCache("link", ttls["link"], clock)

    def all(self) -> list[TTLCache]:
        return [self.github, self.profiles, self.results, self.links]

    def sweep(self) -> int:
        """Sweep every cache and return the number of entries removed."""
        return sum(cache.sweep() for cache in self.all())

    def clear(self) -> int:
        return sum(cache.clear() for cache in self.all())

    def get_cache_stats(self) -> dict[str, Any]:
        """
        Get cache statistics.

        Returns:
            Dictionary with overall totals and a per-cache breakdown.
        """
        cache_stats = {cache.name: cache.stats() for cache in self.all()}
        return {
            "total_entries": sum(s["total"] for s in cache_stats.values()),
            "valid_entries": sum(s["valid"] for s in cache_stats.values()),
            "expired_entries": sum(s["expired"] for s in cache_stats.values()),
            "caches": cache_stats,
        }

    async def run_sweeper(
        self, interval: float = DEFAULT_SWEEP_INTERVAL, extra: Iterable[Any] = ()
    ) -> None:
        """
        Sweep all caches every `interval` seconds until cancelled.

        `extra` holds further objects with a sweep() method, such as the
        request rate limiter, that are swept on the same schedule.
        """
        extra = tuple(extra)
        while True:
            await asyncio.sleep(interval)
            removed = self.sweep()
            for item in extra:
                item.sweep()
            if removed:
                console.print(f"[dim]Swept {removed} expired cache entries[/dim]")

    def start_sweeper(
        self, interval: float = DEFAULT_SWEEP_INTERVAL, extra: Iterable[Any] = ()
    ) -> "asyncio.Task[None]":
        """Schedule run_sweeper() on the running loop."""
        return asyncio.get_running_loop().create_task(self.run_sweeper(interval, extra))
