"""
LFU eviction with a recency tie-break
"""
from typing import Dict, List, Mapping, Optional

from cachelayer.entry import CacheEntry
from cachelayer.eviction.base import EvictionPolicy, EvictionStrategy

import logging
logger = logging.getLogger(__name__)


class LFU(EvictionStrategy):
    """
    Counts reads per key: 1 on insert, +1 on every access.

    The victim is the live key with the lowest count. Among equally frequent
    keys the one with the oldest `last_accessed_at` goes first, so fresh
    low-traffic keys are not starved by old ones that were read once long ago.
    """
    policy = EvictionPolicy.LFU

    def __init__(self) -> None:
        self._freq_map: Dict[str, int] = {}

    def on_insert(self, key: str, entry: CacheEntry) -> None:
        self._freq_map[key] = 1

    def on_access(self, key: str, entry: CacheEntry) -> None:
        self._freq_map[key] = self._freq_map.get(key, 0) + 1

    def on_remove(self, key: str) -> None:
        self._freq_map.pop(key, None)

    def frequency(self, key: str) -> int:
        return self._freq_map.get(key, 0)

    def select_victim(self, store: Mapping[str, CacheEntry]) -> Optional[str]:
        """
        O(n) scan over the live store; stale bookkeeping is never looked at.
        """
        victim = None
        min_freq = None
        oldest_access = None
        for key, entry in store.items():
            freq = self._freq_map.get(key, 0)
            if (
                victim is None
                or freq < min_freq
                or (freq == min_freq and entry.last_accessed_at < oldest_access)
            ):
                victim = key
                min_freq = freq
                oldest_access = entry.last_accessed_at
        if victim is not None:
            logger.debug(f"LFU victim: {victim} with frequency {min_freq}")
        return victim

    def reset(self) -> None:
        self._freq_map.clear()

    def tracked_keys(self) -> List[str]:
        return list(self._freq_map)
