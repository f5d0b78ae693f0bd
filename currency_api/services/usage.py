from __future__ import annotations

import threading
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class UsageStats:
    total_requests: int = 0
    successful_requests: int = 0
    cache_hits: int = 0
    api_calls: int = 0
    errors: int = 0
    last_reset: datetime = field(default_factory=_utcnow)


class UsageMonitor:
    """Process-local conversion counters exposed on /v1/cache/stats."""

    def __init__(self) -> None:
        self._stats = UsageStats()
        self._lock = threading.Lock()

    def record_request(self, cached: bool) -> None:
        with self._lock:
            s = self._stats
            self._stats = replace(
                s,
                total_requests=s.total_requests + 1,
                successful_requests=s.successful_requests + 1,
                cache_hits=s.cache_hits + (1 if cached else 0),
                api_calls=s.api_calls + (0 if cached else 1),
            )

    def record_error(self) -> None:
        with self._lock:
            s = self._stats
            self._stats = replace(s, total_requests=s.total_requests + 1, errors=s.errors + 1)

    def get_stats(self) -> UsageStats:
        with self._lock:
            return self._stats

    def reset_stats(self) -> None:
        with self._lock:
            self._stats = UsageStats()
