from cachelayer.eviction.base import EvictionPolicy, EvictionStrategy
from cachelayer.eviction.manager import create_strategy, parse_policy

__all__ = ["EvictionPolicy", "EvictionStrategy", "create_strategy", "parse_policy"]
