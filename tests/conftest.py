import pytest

from cachelayer.config import CacheConfig
from cachelayer.datastore import CacheEngine

# bytes taken by a one-character key holding a one-character string
SMALL_ENTRY_BYTES = 1 + 1 + 64


class FakeClock:
    """Manually advanced replacement for time.time"""
    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def config_with_limit(limit_bytes: int, policy: str = "lru", **kwargs) -> CacheConfig:
    return CacheConfig(max_memory_mb=limit_bytes / (1024 * 1024), eviction_policy=policy, **kwargs)


#-------------FIXTURES----------------
@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def engine(clock):
    return CacheEngine(CacheConfig(default_ttl=0), clock=clock)
