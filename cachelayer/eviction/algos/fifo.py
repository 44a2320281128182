"""
FIFO eviction: keys leave in insertion order, reads do not matter.
"""
from collections import OrderedDict
from typing import List, Mapping, Optional

from cachelayer.entry import CacheEntry
from cachelayer.eviction.base import EvictionPolicy, EvictionStrategy, first_live_key


class FIFO(EvictionStrategy):
    policy = EvictionPolicy.FIFO

    def __init__(self) -> None:
        self._insertion_order: "OrderedDict[str, None]" = OrderedDict()

    def on_insert(self, key: str, entry: CacheEntry) -> None:
        # a re-insert goes to the back, the engine unregisters the old key first
        self._insertion_order.pop(key, None)
        self._insertion_order[key] = None

    def on_access(self, key: str, entry: CacheEntry) -> None:
        pass

    def on_remove(self, key: str) -> None:
        self._insertion_order.pop(key, None)

    def select_victim(self, store: Mapping[str, CacheEntry]) -> Optional[str]:
        return first_live_key(self._insertion_order, store, self.on_remove)

    def reset(self) -> None:
        self._insertion_order.clear()

    def tracked_keys(self) -> List[str]:
        return list(self._insertion_order)
