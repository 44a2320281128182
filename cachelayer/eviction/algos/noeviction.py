"""
No eviction: the memory ceiling is advisory only.
"""
from typing import List, Mapping, Optional

from cachelayer.entry import CacheEntry
from cachelayer.eviction.base import EvictionPolicy, EvictionStrategy


class NoEviction(EvictionStrategy):
    policy = EvictionPolicy.NONE

    def should_evict(self, current_usage: int, limit: int) -> bool:
        return False

    def select_victim(self, store: Mapping[str, CacheEntry]) -> Optional[str]:
        return None

    def on_insert(self, key: str, entry: CacheEntry) -> None:
        pass

    def on_access(self, key: str, entry: CacheEntry) -> None:
        pass

    def on_remove(self, key: str) -> None:
        pass

    def reset(self) -> None:
        pass

    def tracked_keys(self) -> List[str]:
        return []
