"""
Eviction policy names and the strategy interface every policy implements.
"""
from abc import ABC, abstractmethod
from enum import Enum
from typing import Iterable, List, Mapping, Optional

from cachelayer.entry import CacheEntry


class EvictionPolicy(str, Enum):
    NONE = "none"
    LRU = "lru"
    LFU = "lfu"
    FIFO = "fifo"


class EvictionStrategy(ABC):
    """
    Decides eviction order from insert/access/remove notifications sent by the engine.

    The engine owns the store; a strategy only keeps its own bookkeeping and may
    hold keys that were already removed from the store. Such stale keys must be
    skipped and never returned as a victim.
    """
    policy: EvictionPolicy

    def should_evict(self, current_usage: int, limit: int) -> bool:
        return current_usage >= limit

    @abstractmethod
    def select_victim(self, store: Mapping[str, CacheEntry]) -> Optional[str]:
        pass

    @abstractmethod
    def on_insert(self, key: str, entry: CacheEntry) -> None:
        pass

    @abstractmethod
    def on_access(self, key: str, entry: CacheEntry) -> None:
        pass

    @abstractmethod
    def on_remove(self, key: str) -> None:
        pass

    @abstractmethod
    def reset(self) -> None:
        """Drop all bookkeeping, used when the store is cleared."""
        pass

    @abstractmethod
    def tracked_keys(self) -> List[str]:
        pass


def first_live_key(order: Iterable[str], store: Mapping[str, CacheEntry], discard) -> Optional[str]:
    """
    Walk `order` from the front and return the first key still in `store`.
    Stale keys met on the way are passed to `discard`.
    """
    stale = []
    victim = None
    for key in order:
        if key in store:
            victim = key
            break
        stale.append(key)
    for key in stale:
        discard(key)
    return victim
