"""
Metrics used to benchmark eviction policies
"""
from typing import Optional


class EvictionMetrics:
    def __init__(self, stats: dict, writes: int = 0, total_time: Optional[float] = None):
        """
        Initialize the metrics from a `CacheEngine.get_stats()` snapshot.
        `writes` is the number of set calls the workload issued.
        """
        self._hits = stats["hit_count"]
        self._misses = stats["miss_count"]
        self._n_evicts = stats["eviction_count"]
        self._n_expired = stats["expired_count"]
        self._writes = writes
        self._total_time = total_time

    def hit_ratio(self) -> float:
        """
        Caching effectiveness
        """
        reads = self._hits + self._misses
        return self._hits / reads if reads > 0 else 0.0

    def eviction_ratio(self) -> float:
        """
        Share of writes that pushed another key out
        """
        return self._n_evicts / self._writes if self._writes > 0 else 0.0

    def latency(self) -> Optional[float]:
        return self._total_time

    def to_dict(self) -> dict:
        return {
            "hits": self._hits,
            "misses": self._misses,
            "evictions": self._n_evicts,
            "expired": self._n_expired,
            "writes": self._writes,
            "hit_ratio": round(self.hit_ratio(), 4),
            "eviction_ratio": round(self.eviction_ratio(), 4),
        }
