"""In-memory TTL cache for provider data with request coalescing.

Provides a cache-first pattern for data fetching: check cache, fetch on miss,
store, and return. Each kind of market data has its own TTL; an entry read
after its expiry instant is a miss and is never served, not even as a
fallback. Concurrent misses for the same key share one in-flight load so the
provider quota is spent once.

The cache lives for the lifetime of the process that owns it and is passed
explicitly to the services that use it.
"""

from __future__ import annotations

import asyncio
import datetime
import logging
from collections.abc import Awaitable, Callable
from typing import Final

from pydantic import BaseModel, ConfigDict

from Aktien_Alerts.models.enums import DataKind

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants (TTL values in seconds)
# ---------------------------------------------------------------------------

TTL_QUOTE: Final[int] = 10  # tight for near-real-time alerting
TTL_CANDLE: Final[int] = 60
TTL_PROFILE: Final[int] = 24 * 60 * 60

CACHE_KEY_PREFIX: Final[str] = "finnhub"

# Lazy cleanup: run eviction at most every N accesses
LAZY_CLEANUP_INTERVAL: Final[int] = 100

Clock = Callable[[], datetime.datetime]
Loader = Callable[[], Awaitable[str | None]]


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.UTC)


def cache_key(kind: DataKind, symbol: str, *parts: object) -> str:
    """Build a composite key such as ``finnhub:candle:AAPL:D:1700000000:1731536000``."""
    segments = [CACHE_KEY_PREFIX, kind.value, symbol, *(str(p) for p in parts)]
    return ":".join(segments)


class CacheEntry(BaseModel):
    """A single cached value with its absolute expiry instant."""

    model_config = ConfigDict(frozen=True)

    key: str
    value: str  # JSON-serialized payload
    expires_at: datetime.datetime

    def is_expired(self, now: datetime.datetime) -> bool:
        """Return True once *now* is past the expiry instant."""
        return now > self.expires_at


class MarketDataCache:
    """Process-scoped TTL cache with per-key request coalescing.

    Usage::

        cache = MarketDataCache()

        raw = await cache.get_or_load(
            cache_key(DataKind.QUOTE, "AAPL"),
            cache.get_ttl(DataKind.QUOTE),
            lambda: fetch_quote_json("AAPL"),
        )

    ``get``/``set`` never await, so readers and writers of different keys
    cannot block each other on the event loop. Not safe to share across
    threads; each event loop should own its own instance.
    """

    def __init__(
        self,
        *,
        clock: Clock | None = None,
        max_entries: int | None = None,
    ) -> None:
        self._clock: Clock = clock or _utcnow
        self._max_entries = max_entries
        self._entries: dict[str, CacheEntry] = {}
        self._in_flight: dict[str, asyncio.Future[str | None]] = {}
        self._access_count: int = 0

        logger.info(
            "MarketDataCache initialized: max_entries=%s",
            max_entries if max_entries is not None else "unbounded",
        )

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> str | None:
        """Return the cached value, or None on miss or expiry.

        Expired entries are removed on the spot.
        """
        self._increment_access_count()

        entry = self._entries.get(key)
        if entry is None:
            logger.debug("Cache miss: %s", key)
            return None
        if entry.is_expired(self._clock()):
            del self._entries[key]
            logger.debug("Cache expired: %s", key)
            return None
        logger.debug("Cache hit: %s", key)
        return entry.value

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store *value* until ``now + ttl_seconds``."""
        expires_at = self._clock() + datetime.timedelta(seconds=ttl_seconds)
        self._entries[key] = CacheEntry(key=key, value=value, expires_at=expires_at)
        logger.debug("Cache set: %s (ttl=%ds)", key, ttl_seconds)

        if self._max_entries is not None and len(self._entries) > self._max_entries:
            self._evict_overflow()

    def invalidate(self, key: str) -> None:
        """Remove a specific key."""
        self._entries.pop(key, None)
        logger.debug("Cache invalidated: %s", key)

    def invalidate_pattern(self, pattern: str) -> None:
        """Remove all keys matching a pattern.

        Supports simple glob patterns with ``*`` as a wildcard suffix.
        For example, ``"finnhub:quote:*"`` removes every cached quote.
        """
        if pattern.endswith("*"):
            prefix = pattern[:-1]
            keys_to_remove = [k for k in self._entries if k.startswith(prefix)]
        else:
            keys_to_remove = [k for k in self._entries if k == pattern]

        for key in keys_to_remove:
            del self._entries[key]

        logger.debug(
            "Cache invalidated pattern '%s': %d entries removed",
            pattern,
            len(keys_to_remove),
        )

    def get_ttl(self, kind: DataKind) -> int:
        """Return the TTL in seconds for a kind of market data."""
        match kind:
            case DataKind.QUOTE:
                return TTL_QUOTE
            case DataKind.CANDLE:
                return TTL_CANDLE
            case DataKind.PROFILE:
                return TTL_PROFILE

    async def get_or_load(self, key: str, ttl_seconds: int, loader: Loader) -> str | None:
        """Return the cached value or run *loader* once for all concurrent callers.

        A loader result of None (not found) is returned but not cached. If the
        loader raises, every caller waiting on the same key sees the same
        exception. If the loading caller is cancelled (for instance by a fetch
        timeout), waiters receive None and treat it as a miss.
        """
        cached = self.get(key)
        if cached is not None:
            return cached

        pending = self._in_flight.get(key)
        if pending is not None:
            logger.debug("Coalescing concurrent miss: %s", key)
            return await asyncio.shield(pending)

        future: asyncio.Future[str | None] = asyncio.get_running_loop().create_future()
        self._in_flight[key] = future
        try:
            value = await loader()
        except asyncio.CancelledError:
            if not future.done():
                future.set_result(None)
            raise
        except Exception as exc:
            if not future.done():
                future.set_exception(exc)
                # Mark retrieved so an unobserved failure does not log a warning.
                future.exception()
            raise
        else:
            if value is not None:
                self.set(key, value, ttl_seconds)
            future.set_result(value)
            return value
        finally:
            self._in_flight.pop(key, None)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _increment_access_count(self) -> None:
        """Track accesses and trigger lazy cleanup when threshold is reached."""
        self._access_count += 1
        if self._access_count >= LAZY_CLEANUP_INTERVAL:
            self._access_count = 0
            self._evict_expired_entries()

    def _evict_expired_entries(self) -> None:
        """Remove expired entries.

        Called lazily rather than on every access to reduce overhead.
        """
        now = self._clock()
        expired_keys = [k for k, v in self._entries.items() if v.is_expired(now)]
        for key in expired_keys:
            del self._entries[key]

        if expired_keys:
            logger.debug("Lazy cleanup: evicted %d expired entries", len(expired_keys))

    def _evict_overflow(self) -> None:
        """Drop expired entries, then the ones closest to expiry, down to the cap."""
        assert self._max_entries is not None  # noqa: S101
        self._evict_expired_entries()
        overflow = len(self._entries) - self._max_entries
        if overflow <= 0:
            return
        by_expiry = sorted(self._entries.values(), key=lambda e: e.expires_at)
        for entry in by_expiry[:overflow]:
            del self._entries[entry.key]
        logger.debug("Cache over capacity: evicted %d entries", overflow)
