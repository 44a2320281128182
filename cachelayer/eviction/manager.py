import logging

from cachelayer.eviction.base import EvictionPolicy, EvictionStrategy
from cachelayer.eviction.algos.noeviction import NoEviction
from cachelayer.eviction.algos.lru import LRU
from cachelayer.eviction.algos.lfu import LFU
from cachelayer.eviction.algos.fifo import FIFO

from typing import Union

logger = logging.getLogger(__name__)

_parser = {
    EvictionPolicy.NONE: NoEviction,
    EvictionPolicy.LRU: LRU,
    EvictionPolicy.LFU: LFU,
    EvictionPolicy.FIFO: FIFO,
}


def parse_policy(policy: Union[EvictionPolicy, str]) -> EvictionPolicy:
    """
    Normalise a policy name ("lru", "LFU", ...) to an EvictionPolicy.
    """
    if isinstance(policy, EvictionPolicy):
        return policy
    try:
        return EvictionPolicy(str(policy).strip().lower())
    except ValueError:
        raise ValueError(f"Unknown eviction policy: {policy}") from None


def create_strategy(policy: Union[EvictionPolicy, str]) -> EvictionStrategy:
    """
    Build a fresh strategy for the given eviction policy.
    """
    policy = parse_policy(policy)
    strategy = _parser[policy]()
    logger.debug(f"Created {type(strategy).__name__} strategy for policy '{policy.value}'")
    return strategy
