"""TTL cache with request collapsing for dashboard queries.

A lookup goes through three steps:

1. A fresh entry for the key is returned with no I/O.
2. Otherwise, if a fetch for the key is already running, the caller awaits
   that same fetch.
3. Otherwise a new fetch starts (through the retry policy), is registered as
   in flight, stores its value on success and is unregistered when it
   settles either way.

Every concurrent caller of one key therefore sees one underlying fetch and
the same value or error. The cache and in-flight maps are only touched on
the event loop thread, between awaits, so they need no lock.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, TypeVar

import structlog

from deckly.execution.retry_policy import RetryConfig, RetryPolicy
from deckly.utils.clock import Clock, SystemClock, seconds_between

logger = structlog.get_logger()

T = TypeVar("T")


class QueryType(str, Enum):
    """Dashboard query families, each with its own TTL."""

    PAGE_STATS = "page_stats"
    TOTALS = "totals"
    DAILY = "daily"
    TOP_DECKS = "top_decks"
    SIGNALS = "signals"


DEFAULT_TTLS: dict[QueryType, float] = {
    QueryType.PAGE_STATS: 120.0,
    QueryType.TOTALS: 30.0,
    QueryType.DAILY: 60.0,
    QueryType.TOP_DECKS: 60.0,
    QueryType.SIGNALS: 60.0,
}


@dataclass
class CacheEntry(Generic[T]):
    """A cached query result."""

    key: str
    data: T
    timestamp: datetime
    ttl_seconds: float

    def is_fresh(self, now: datetime) -> bool:
        return seconds_between(self.timestamp, now) < self.ttl_seconds


@dataclass
class CacheStats:
    """Counters for cache behaviour."""

    hits: int = 0
    misses: int = 0
    joins: int = 0
    fetches: int = 0
    errors: int = 0
    evictions: int = 0
    by_type: dict[str, int] = field(default_factory=dict)


class QueryCache:
    """Per-process query cache.

    Example:
        cache = QueryCache()
        stats = await cache.get_or_fetch(
            "deck_stats:abc:FREE",
            lambda: load_stats("abc"),
            QueryType.PAGE_STATS,
        )
    """

    def __init__(
        self,
        clock: Clock | None = None,
        ttls: dict[QueryType, float] | None = None,
        retry_config: RetryConfig | None = None,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ):
        """Initialize the cache.

        Args:
            clock: Time source for freshness checks.
            ttls: TTL (seconds) per query type; unspecified types use the defaults.
            retry_config: Retry configuration for fetches.
            sleep: Sleep used between retries (for tests).
        """
        self.clock = clock or SystemClock()
        self.ttls = {**DEFAULT_TTLS, **(ttls or {})}
        self.retry_policy = RetryPolicy(retry_config, sleep=sleep)
        self.stats = CacheStats()
        self._entries: dict[str, CacheEntry] = {}
        self._pending: dict[str, asyncio.Task] = {}

    async def get_or_fetch(
        self,
        key: str,
        fetch: Callable[[], Awaitable[T]],
        query_type: QueryType,
        force_refresh: bool = False,
    ) -> T:
        """Return the cached value for ``key`` or fetch it.

        Args:
            key: Cache key built from the query's parameters.
            fetch: Zero-argument coroutine function producing the value.
            query_type: Determines the TTL.
            force_refresh: Skip the freshness check. Still joins a fetch in flight.

        Raises:
            Exception: Whatever the fetch raised after retries, to every waiting caller.
        """
        if not force_refresh:
            entry = self._entries.get(key)
            if entry and entry.is_fresh(self.clock.now()):
                self.stats.hits += 1
                logger.debug("Cache hit", cache_key=key)
                return entry.data

        pending = self._pending.get(key)
        if pending is not None:
            self.stats.joins += 1
            logger.debug("Joining in-flight query", cache_key=key)
            return await asyncio.shield(pending)

        self.stats.misses += 1
        task = asyncio.ensure_future(self._fetch_and_store(key, fetch, query_type))
        self._pending[key] = task
        return await asyncio.shield(task)

    async def _fetch_and_store(
        self,
        key: str,
        fetch: Callable[[], Awaitable[T]],
        query_type: QueryType,
    ) -> T:
        self.stats.fetches += 1
        self.stats.by_type[query_type.value] = self.stats.by_type.get(query_type.value, 0) + 1
        try:
            result = await self.retry_policy.execute(
                fetch, context={"cache_key": key, "query_type": query_type.value}
            )
            if not result.success:
                self.stats.errors += 1
                raise result.error

            now = self.clock.now()
            self._evict_stale(now)
            self._entries[key] = CacheEntry(
                key=key,
                data=result.value,
                timestamp=now,
                ttl_seconds=self.ttls[query_type],
            )
            return result.value
        finally:
            self._pending.pop(key, None)

    def _evict_stale(self, now: datetime) -> None:
        stale = [key for key, entry in self._entries.items() if not entry.is_fresh(now)]
        for key in stale:
            del self._entries[key]
        self.stats.evictions += len(stale)

    def invalidate(self, key: str) -> bool:
        """Drop one entry. Returns True if it existed."""
        return self._entries.pop(key, None) is not None

    def invalidate_prefix(self, prefix: str) -> int:
        """Drop every entry whose key starts with ``prefix``."""
        keys = [key for key in self._entries if key.startswith(prefix)]
        for key in keys:
            del self._entries[key]
        if keys:
            logger.debug("Cache entries invalidated", prefix=prefix, count=len(keys))
        return len(keys)

    def clear(self) -> None:
        """Drop every cached entry. Fetches in flight are left to finish."""
        self._entries.clear()

    def pending_count(self) -> int:
        return len(self._pending)

    def get_metrics(self) -> dict[str, Any]:
        """Cache counters for logging."""
        return {
            "entries": len(self._entries),
            "pending": len(self._pending),
            "hits": self.stats.hits,
            "misses": self.stats.misses,
            "joins": self.stats.joins,
            "fetches": self.stats.fetches,
            "errors": self.stats.errors,
            "evictions": self.stats.evictions,
            "fetches_by_type": dict(self.stats.by_type),
        }
