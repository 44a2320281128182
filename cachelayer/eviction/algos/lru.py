"""
LRU eviction: the key touched longest ago is evicted first.
"""
from collections import OrderedDict
from typing import List, Mapping, Optional

from cachelayer.entry import CacheEntry
from cachelayer.eviction.base import EvictionPolicy, EvictionStrategy, first_live_key

import logging
logger = logging.getLogger(__name__)


class LRU(EvictionStrategy):
    policy = EvictionPolicy.LRU

    def __init__(self) -> None:
        # front = least recently used, back = most recently used
        self._lru_queue: "OrderedDict[str, None]" = OrderedDict()

    def _touch(self, key: str) -> None:
        """
        Move the key to the most recently used end of the queue.
          - If the key is already in the queue, move it to the end.
          - If the key is not in the queue, add it to the end.
        """
        if key in self._lru_queue:
            self._lru_queue.move_to_end(key)
        else:
            self._lru_queue[key] = None

    def on_insert(self, key: str, entry: CacheEntry) -> None:
        self._touch(key)

    def on_access(self, key: str, entry: CacheEntry) -> None:
        self._touch(key)

    def on_remove(self, key: str) -> None:
        self._lru_queue.pop(key, None)

    def select_victim(self, store: Mapping[str, CacheEntry]) -> Optional[str]:
        """
        Least recently used key that still lives in the store.
        """
        victim = first_live_key(self._lru_queue, store, self.on_remove)
        logger.debug(f"LRU victim: {victim}, queue length: {len(self._lru_queue)}")
        return victim

    def reset(self) -> None:
        self._lru_queue.clear()

    def tracked_keys(self) -> List[str]:
        return list(self._lru_queue)
