from typing import Any, Callable, Dict, List, Optional, Union
from threading import RLock
import json
import math
import time
import logging

from cachelayer.config import CacheConfig
from cachelayer.entry import CacheEntry
from cachelayer.eviction.base import EvictionPolicy
from cachelayer.eviction.manager import create_strategy, parse_policy

logger = logging.getLogger(__name__)

MAX_KEY_LENGTH = 512
ENTRY_OVERHEAD_BYTES = 64
FALLBACK_VALUE_SIZE = 100
# at most this percentage of the store is evicted by a single set
EVICTION_BATCH_PERCENT = 10

_BYTES_PER_MB = 1024 * 1024


def is_number(value: Any) -> bool:
    """
    True for int and float values; bool is not treated as a number
    """
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def value_size(value: Any) -> int:
    """
    Estimated size in bytes of a cached value
    """
    if value is None:
        return 8
    if isinstance(value, str):
        return len(value.encode("utf-8"))
    if isinstance(value, bool):
        return 1
    if isinstance(value, (int, float)):
        return 8
    try:
        return len(json.dumps(value).encode("utf-8"))
    except (TypeError, ValueError):
        # not serialisable or circular
        return FALLBACK_VALUE_SIZE


def entry_size(key: str, value: Any) -> int:
    return len(key.encode("utf-8")) + value_size(value) + ENTRY_OVERHEAD_BYTES


class CacheEngine:
    """
    A dictionary of key -> CacheEntry with TTL, eviction and statistics.

    Every public method runs under one re-entrant lock, so eviction (victim
    selection, deletion, insertion) is atomic with respect to other callers,
    including the cleanup worker and the stats collector.
    """
    def __init__(self, config: Optional[CacheConfig] = None,
                 policy: Optional[Union[EvictionPolicy, str]] = None,
                 clock: Callable[[], float] = time.time):
        self._config = config or CacheConfig()
        self._policy = parse_policy(policy or self._config.eviction_policy)
        self._strategy = create_strategy(self._policy)
        self._store: Dict[str, CacheEntry] = {}
        self._lock = RLock()
        self._clock = clock

        self._hit_count = 0
        self._miss_count = 0
        self._eviction_count = 0
        self._expired_count = 0
        self._start_time = clock()

        logger.info(f"Cache engine initialized with {self._policy.value} eviction policy")

    """
    -----------------------HELPERS-------------------------
    """
    def _now(self) -> float:
        return self._clock()

    @property
    def policy(self) -> EvictionPolicy:
        return self._policy

    @property
    def config(self) -> CacheConfig:
        return self._config

    def _is_valid_key(self, key: Any) -> bool:
        return isinstance(key, str) and 0 < len(key) <= MAX_KEY_LENGTH

    def _remove(self, key: str) -> bool:
        """
        Single delete routine: drop the key from the store and from the strategy
        """
        removed = self._store.pop(key, None)
        if removed is None:
            return False
        self._strategy.on_remove(key)
        return True

    def _expire(self, key: str) -> None:
        """
        Remove an expired key and count it, whichever path noticed the expiry
        """
        if self._remove(key):
            self._expired_count += 1
            logger.debug(f"Key expired: {key}")

    def _lookup(self, key: Any, now: float) -> Optional[CacheEntry]:
        """
        Return the live entry for key; an expired entry is removed (lazy expiration)
        """
        if not isinstance(key, str):
            return None
        entry = self._store.get(key)
        if entry is None:
            return None
        if entry.is_expired(now):
            self._expire(key)
            return None
        return entry

    def _memory_usage(self) -> int:
        return sum(entry_size(key, entry.value) for key, entry in self._store.items())

    def _evict_entries(self, incoming_size: int) -> int:
        """
        Evict victims until `incoming_size` more bytes fit under the ceiling,
        at most ceil(10%) of the store per call (minimum 1).
        The ceiling is best effort: the caller inserts regardless of the outcome.
        """
        limit = self._config.max_memory_bytes
        max_evictions = max(1, math.ceil(len(self._store) * EVICTION_BATCH_PERCENT / 100))
        usage = self._memory_usage()
        evicted = 0

        while evicted < max_evictions and self._strategy.should_evict(usage + incoming_size, limit):
            victim = self._strategy.select_victim(self._store)
            if victim is None:
                logger.warning("No victim found for eviction")
                break
            victim_size = entry_size(victim, self._store[victim].value)
            if not self._remove(victim):
                break
            usage -= victim_size
            evicted += 1
            self._eviction_count += 1
            logger.debug(f"Evicted key: {victim}")

        logger.info(f"Evicted {evicted} entries")
        return evicted

    """
    -----------------------KEY/VALUE OPERATIONS-------------------------
    """
    def set(self, key: str, value: Any, ttl: Optional[float] = None, overwrite: bool = True) -> bool:
        """
        - Set a key-value pair, replacing the previous entry when `overwrite` is true
        - `ttl` in seconds; None falls back to the configured default, <= 0 never expires
        - Return False (and change nothing) on an invalid key or ttl, or an existing key without overwrite
        """
        with self._lock:
            if not self._is_valid_key(key):
                logger.warning(f"Invalid key attempted: {key!r}")
                return False
            if ttl is not None and not is_number(ttl):
                logger.warning(f"Invalid ttl for key '{key}': {ttl!r}")
                return False

            now = self._now()
            if self._lookup(key, now) is not None:
                if not overwrite:
                    logger.debug(f"Key {key} already exists and overwrite is false")
                    return False
                self._remove(key)

            resolved_ttl = ttl if ttl is not None else self._config.default_ttl
            entry = CacheEntry(key, value, ttl=resolved_ttl, now=now)

            incoming = entry_size(key, value)
            if self._strategy.should_evict(self._memory_usage() + incoming, self._config.max_memory_bytes):
                self._evict_entries(incoming)

            self._store[key] = entry
            self._strategy.on_insert(key, entry)
            logger.debug(f"Set key: {key}, TTL: {entry.remaining_ttl(now)}")
            return True

    def get(self, key: str, default: Any = None) -> Any:
        """
        - Get value by key
        - Return `default` if key does not exist or has expired
        """
        with self._lock:
            now = self._now()
            entry = self._store.get(key) if isinstance(key, str) else None
            if entry is None:
                self._miss_count += 1
                logger.debug(f"Cache miss for key: {key}")
                return default
            if entry.is_expired(now):
                self._expire(key)
                self._miss_count += 1
                return default

            entry.mark_accessed(now)
            self._strategy.on_access(key, entry)
            self._hit_count += 1
            logger.debug(f"Cache hit for key: {key}")
            return entry.value

    def delete(self, key: str) -> bool:
        """
        - Delete a key from the store
        - Return True if key was deleted, False if it did not exist or had already expired
        """
        with self._lock:
            if self._lookup(key, self._now()) is None:
                return False
            deleted = self._remove(key)
            logger.debug(f"Deleted key: {key}")
            return deleted

    def has(self, key: str) -> bool:
        """
        Existence probe: no hit/miss counting and no access bookkeeping
        """
        with self._lock:
            return self._lookup(key, self._now()) is not None

    def keys(self) -> List[str]:
        """
        List live keys; expired ones are skipped but left for the sweeper
        """
        with self._lock:
            now = self._now()
            return [key for key, entry in self._store.items() if not entry.is_expired(now)]

    def size(self) -> int:
        with self._lock:
            return len(self._store)

    def clear(self) -> None:
        with self._lock:
            key_count = len(self._store)
            self._store.clear()
            self._strategy.reset()
            logger.info(f"Cleared cache, removed {key_count} keys")

    def get_entry(self, key: str) -> Optional[Dict[str, Any]]:
        """
        Snapshot of an entry's metadata; does not touch access stats or expire anything
        """
        with self._lock:
            entry = self._store.get(key) if isinstance(key, str) else None
            return entry.to_dict(self._now()) if entry is not None else None

    """
    -----------------------EXPIRATION-------------------------
    """
    def cleanup_expired(self) -> int:
        """
        - Remove every expired entry
        - Return the number of entries removed
        """
        with self._lock:
            now = self._now()
            expired_keys = [key for key, entry in self._store.items() if entry.is_expired(now)]
            for key in expired_keys:
                self._expire(key)
            if expired_keys:
                logger.info(f"Cleaned up {len(expired_keys)} expired keys")
            return len(expired_keys)

    def update_ttl(self, key: str, ttl: float) -> bool:
        """
        - Replace the entry with a fresh one carrying the new ttl
        - Return False if the key does not exist or has expired
        """
        with self._lock:
            if not is_number(ttl):
                return False
            now = self._now()
            entry = self._lookup(key, now)
            if entry is None:
                return False
            # only the entry is swapped: LRU position and LFU frequency carry over,
            # the entry's own access count and timestamps start fresh
            # (strategy hooks are not called here)
            self._store[key] = CacheEntry(key, entry.value, ttl=ttl, now=now)
            logger.debug(f"Updated TTL for key: {key} to {ttl} seconds")
            return True

    """
    -----------------------NUMERIC OPERATIONS-------------------------
    """
    def increment(self, key: str, delta: Union[int, float] = 1) -> Optional[Union[int, float]]:
        """
        - Add delta to a numeric value, keeping the entry's remaining ttl
        - Return the new value, or None if the key is missing, expired or not numeric
        """
        with self._lock:
            if not is_number(delta):
                return None
            now = self._now()
            entry = self._lookup(key, now)
            if entry is None or not is_number(entry.value):
                return None

            new_value = entry.value + delta
            new_entry = CacheEntry(key, new_value, now=now, expires_at=entry.expires_at)
            self._store[key] = new_entry
            self._strategy.on_access(key, new_entry)
            logger.debug(f"Incremented key: {key} by {delta} to {new_value}")
            return new_value

    """
    -----------------------STATISTICS-------------------------
    """
    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            memory_usage_bytes = self._memory_usage()
            total_operations = self._hit_count + self._miss_count
            hit_rate = self._hit_count / total_operations if total_operations > 0 else 0.0
            return {
                "total_keys": len(self._store),
                "memory_usage_bytes": memory_usage_bytes,
                "memory_usage_mb": round(memory_usage_bytes / _BYTES_PER_MB, 2),
                "hit_count": self._hit_count,
                "miss_count": self._miss_count,
                "hit_rate": round(hit_rate * 100, 2),
                "eviction_count": self._eviction_count,
                "expired_count": self._expired_count,
                "uptime_seconds": round(self._now() - self._start_time, 3),
                "max_memory_bytes": self._config.max_memory_bytes,
                "max_memory_mb": self._config.max_memory_mb,
                "eviction_policy": self._policy.value,
            }
