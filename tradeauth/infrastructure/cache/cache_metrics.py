"""Cache metrics tracking for observability.

Lightweight in-memory hit/miss/error counters per cache namespace, plus a
process-wide total used for the cache hit rate.

Usage:
    metrics = CacheMetrics()
    metrics.record_hit("user")
    metrics.record_miss("user")

    metrics.hit_rate()             # across all namespaces
    metrics.get_stats("user")      # one namespace
"""

from collections import defaultdict
from dataclasses import dataclass
from threading import Lock
from typing import Any


@dataclass
class CacheStats:
    """Counters for one cache namespace.

    Counters only ever increase (except through ``CacheMetrics.reset``).

    Attributes:
        hits: Lookups that found a value (negative results included).
        misses: Lookups that found nothing.
        errors: Backend failures.
    """

    hits: int = 0
    misses: int = 0
    errors: int = 0

    @property
    def total_requests(self) -> int:
        """Total lookups (hits + misses)."""
        return self.hits + self.misses

    @property
    def hit_rate(self) -> float:
        """Hit rate in [0.0, 1.0]; 0.0 before any lookup."""
        if self.total_requests == 0:
            return 0.0
        return self.hits / self.total_requests

    def to_dict(self) -> dict[str, Any]:
        """Convert stats to dictionary for JSON serialization."""
        return {
            "hits": self.hits,
            "misses": self.misses,
            "errors": self.errors,
            "total_requests": self.total_requests,
            "hit_rate": round(self.hit_rate, 4),
        }


class CacheMetrics:
    """In-memory cache metrics tracker.

    Increments hold the lock only for the counter update, so it never blocks
    across I/O and is safe to share between threads.
    """

    def __init__(self) -> None:
        """Initialize metrics tracker with empty counters."""
        self._stats: dict[str, CacheStats] = defaultdict(CacheStats)
        self._total = CacheStats()
        self._lock = Lock()

    def record_hit(self, namespace: str) -> None:
        """Record a cache hit."""
        with self._lock:
            self._stats[namespace].hits += 1
            self._total.hits += 1

    def record_miss(self, namespace: str) -> None:
        """Record a cache miss."""
        with self._lock:
            self._stats[namespace].misses += 1
            self._total.misses += 1

    def record_error(self, namespace: str) -> None:
        """Record a cache backend error."""
        with self._lock:
            self._stats[namespace].errors += 1
            self._total.errors += 1

    def hit_rate(self, namespace: str | None = None) -> float:
        """Hit rate for one namespace, or across all namespaces.

        Args:
            namespace: Namespace to query (None = all).

        Returns:
            hits / total, 0.0 when there were no lookups.
        """
        with self._lock:
            if namespace is None:
                return self._total.hit_rate
            stats = self._stats.get(namespace)
            return stats.hit_rate if stats else 0.0

    def get_stats(self, namespace: str) -> dict[str, Any]:
        """Get statistics for a specific namespace.

        Returns:
            Dictionary with hits, misses, errors, total_requests, hit_rate.
        """
        with self._lock:
            stats = self._stats.get(namespace, CacheStats())
            return stats.to_dict()

    def get_all_stats(self) -> dict[str, dict[str, Any]]:
        """Get statistics for all namespaces."""
        with self._lock:
            return {
                namespace: stats.to_dict() for namespace, stats in self._stats.items()
            }

    def reset(self) -> None:
        """Reset all counters."""
        with self._lock:
            self._stats.clear()
            self._total = CacheStats()
