"""Per-client daily request quota.

Counts requests per key (client IP) and rejects once the daily limit is
reached. Counters reset when the UTC date changes; keys untouched since
before yesterday are dropped on a periodic cleanup.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict

logger = logging.getLogger("currency_api.rate_limit")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class _Bucket:
    daily_count: int
    last_reset: datetime


class DailyRateLimiter:
    def __init__(
        self,
        daily_limit: int,
        *,
        cleanup_interval: timedelta = timedelta(minutes=5),
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.daily_limit = daily_limit
        self._cleanup_interval = cleanup_interval
        self._clock = clock
        self._buckets: Dict[str, _Bucket] = {}
        self._last_cleanup = clock()
        self._lock = threading.Lock()

    def check(self, key: str) -> bool:
        """Count one request for key; False when the daily quota is used up."""
        now = self._clock()
        with self._lock:
            self._cleanup_if_needed(now)
            bucket = self._buckets.setdefault(key, _Bucket(daily_count=0, last_reset=now))
            if bucket.last_reset.date() < now.date():
                bucket.daily_count = 0
                bucket.last_reset = now
            if bucket.daily_count >= self.daily_limit:
                logger.warning(
                    "rate limit exceeded for key: %s. daily count: %d", key, bucket.daily_count
                )
                return False
            bucket.daily_count += 1
            logger.debug(
                "rate limit check passed for key: %s. daily count: %d/%d",
                key,
                bucket.daily_count,
                self.daily_limit,
            )
            return True

    def remaining(self, key: str) -> int:
        now = self._clock()
        with self._lock:
            bucket = self._buckets.get(key)
            if bucket is None or bucket.last_reset.date() < now.date():
                return self.daily_limit
            return max(self.daily_limit - bucket.daily_count, 0)

    def _cleanup_if_needed(self, now: datetime) -> None:
        if now - self._last_cleanup <= self._cleanup_interval:
            return
        cutoff = now.date() - timedelta(days=1)
        stale = [k for k, b in self._buckets.items() if b.last_reset.date() < cutoff]
        for k in stale:
            del self._buckets[k]
        self._last_cleanup = now
