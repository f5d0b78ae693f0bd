from __future__ import annotations

"""Bounded TTL cache shared by rate and country lookups.

Design:
    - One generic Cache[V]; the rate cache and the country cache are two
      configured instances (see make_rate_cache / make_country_cache).
    - Every entry gets expires_at = now + ttl when it is set. A get() only
      returns values whose expiry is strictly in the future; stale entries
      stay in place until clear_expired() sweeps them or set() evicts them.
    - At capacity, set() evicts exactly one entry: the one expiring first.
      With one TTL per cache this is the oldest insert, not the least
      recently read. Writing a key that is already present still goes
      through the capacity check, so at max_size it can evict another key.
    - Hits and misses are counted on every get(); a stale entry is a miss.
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Generic, Optional, TypeVar

logger = logging.getLogger("currency_api.cache")

V = TypeVar("V")

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class CacheEntry(Generic[V]):
    value: V
    expires_at: datetime


@dataclass(frozen=True)
class CacheStats:
    size: int
    max_size: int
    hits: int
    misses: int
    hit_rate: float


class Cache(Generic[V]):
    """Key -> value store with a shared TTL and a maximum entry count."""

    def __init__(
        self,
        ttl_minutes: float,
        max_size: int,
        *,
        name: str = "cache",
        clock: Clock = utcnow,
    ):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.name = name
        self._ttl = timedelta(minutes=ttl_minutes)
        self._max_size = max_size
        self._clock = clock
        self._store: Dict[str, CacheEntry[V]] = {}
        self._hits = 0
        self._misses = 0
        self._lock = threading.Lock()

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    @property
    def max_size(self) -> int:
        return self._max_size

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)

    def get(self, key: str) -> Optional[V]:
        now = self._clock()
        with self._lock:
            entry = self._store.get(key)
            if entry is not None and entry.expires_at > now:
                self._hits += 1
                logger.debug("%s hit for key %s", self.name, key)
                return entry.value
            self._misses += 1
        logger.debug("%s miss for key %s", self.name, key)
        return None

    def set(self, key: str, value: V) -> None:
        now = self._clock()
        with self._lock:
            if len(self._store) >= self._max_size:
                oldest = min(self._store, key=lambda k: self._store[k].expires_at)
                del self._store[oldest]
                logger.debug(
                    "%s at max size (%d), evicted %s", self.name, self._max_size, oldest
                )
            self._store[key] = CacheEntry(value=value, expires_at=now + self._ttl)
        logger.debug("%s stored key %s", self.name, key)

    def clear_expired(self) -> int:
        """Remove all expired entries. Returns count of evicted keys."""
        now = self._clock()
        with self._lock:
            expired = [k for k, e in self._store.items() if e.expires_at <= now]
            for k in expired:
                del self._store[k]
        if expired:
            logger.debug("%s cleared %d expired entries", self.name, len(expired))
        return len(expired)

    def get_stats(self) -> CacheStats:
        with self._lock:
            hits, misses = self._hits, self._misses
            size = len(self._store)
        total = hits + misses
        return CacheStats(
            size=size,
            max_size=self._max_size,
            hits=hits,
            misses=misses,
            hit_rate=hits / total if total else 0.0,
        )


# Factories for the two caches the service runs with. Country records rarely
# change, rates follow the provider's hourly update cadence.
def make_rate_cache(
    ttl_minutes: float = 60, max_size: int = 1000, *, clock: Clock = utcnow
) -> "Cache":
    return Cache(ttl_minutes, max_size, name="rate_cache", clock=clock)


def make_country_cache(
    ttl_minutes: float = 24 * 60, max_size: int = 500, *, clock: Clock = utcnow
) -> "Cache":
    return Cache(ttl_minutes, max_size, name="country_cache", clock=clock)
