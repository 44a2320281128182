"""
Cache entry: a value plus its creation, expiry and access metadata
"""
import math
import time
from typing import Any, Dict, Optional


class CacheEntry:
    """
    Holds one cached value.
      - `key`, `value`, `created_at`, `expires_at` are fixed at construction.
      - `last_accessed_at` and `access_count` are bumped by the engine on a hit.
    Updates (new TTL, increment) build a replacement entry instead of mutating this one.
    """
    __slots__ = ("_key", "_value", "_created_at", "_expires_at", "last_accessed_at", "access_count")

    def __init__(self, key: str, value: Any, ttl: Optional[float] = None, now: Optional[float] = None,
                 *, expires_at: Optional[float] = None):
        """
        `expires_at` carries an absolute expiry over from a replaced entry and wins over `ttl`.
        """
        created = time.time() if now is None else now
        self._key = key
        self._value = value
        self._created_at = created
        if expires_at is not None:
            self._expires_at = expires_at
        elif ttl is not None and ttl > 0:
            self._expires_at = created + ttl
        else:
            # ttl <= 0 means the entry never expires
            self._expires_at = None
        self.last_accessed_at = created
        self.access_count = 0

    @property
    def key(self) -> str:
        return self._key

    @property
    def value(self) -> Any:
        return self._value

    @property
    def created_at(self) -> float:
        return self._created_at

    @property
    def expires_at(self) -> Optional[float]:
        return self._expires_at

    def is_expired(self, now: float) -> bool:
        if self._expires_at is None:
            return False
        return now > self._expires_at

    def mark_accessed(self, now: float) -> None:
        self.last_accessed_at = now
        self.access_count += 1

    def remaining_ttl(self, now: float) -> Optional[int]:
        """
        Seconds until expiry, rounded up. None means the entry never expires.
        """
        if self._expires_at is None:
            return None
        return math.ceil(max(0.0, self._expires_at - now))

    def age(self, now: float) -> float:
        return now - self._created_at

    def to_dict(self, now: float) -> Dict[str, Any]:
        return {
            "key": self._key,
            "value": self._value,
            "created_at": self._created_at,
            "expires_at": self._expires_at,
            "last_accessed_at": self.last_accessed_at,
            "access_count": self.access_count,
            "remaining_ttl": self.remaining_ttl(now),
            "age": self.age(now),
            "is_expired": self.is_expired(now),
        }

    def __repr__(self):
        return f"CacheEntry(key={self._key!r}, expires_at={self._expires_at}, access_count={self.access_count})"
