"""
Script to benchmark cache operations and compare eviction policies.
"""
from cachelayer.config import CacheConfig
from cachelayer.datastore import CacheEngine
from cachelayer.eviction.base import EvictionPolicy
from cachelayer.eviction.metrics import EvictionMetrics

import argparse
import random
import time

from dotenv import load_dotenv
load_dotenv(override=True)

import logging
logger = logging.getLogger(__name__)

# write log to a file
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.FileHandler("benchmark.log", encoding='utf-8'),
        logging.StreamHandler()
    ]
)
# per-operation engine logs would drown the report
logging.getLogger("cachelayer").setLevel(logging.WARNING)


def percentile(sorted_values, pct: float) -> float:
    if not sorted_values:
        return 0.0
    index = min(len(sorted_values) - 1, max(0, int(round(pct / 100 * len(sorted_values))) - 1))
    return sorted_values[index]


def summarize(operation: str, latencies, total_time_s: float) -> dict:
    """
    Count, throughput and latency distribution (in ms) of one benchmarked operation
    """
    ordered = sorted(latencies)
    count = len(ordered)
    return {
        "operation": operation,
        "total_operations": count,
        "total_time_ms": round(total_time_s * 1000, 2),
        "operations_per_second": round(count / total_time_s) if total_time_s > 0 else 0,
        "average_latency_ms": round(sum(ordered) / count, 5) if count else 0.0,
        "min_latency_ms": round(ordered[0], 5) if count else 0.0,
        "max_latency_ms": round(ordered[-1], 5) if count else 0.0,
        "p50": round(percentile(ordered, 50), 5),
        "p95": round(percentile(ordered, 95), 5),
        "p99": round(percentile(ordered, 99), 5),
    }


class Benchmarker:
    def __init__(self, engine: CacheEngine, ops: int = 10000, warmup: int = 1000):
        self._engine = engine
        self._ops = ops
        self._warmup = warmup

    def _timed(self, operation: str, calls) -> dict:
        latencies = []
        start = time.perf_counter()
        for call in calls:
            op_start = time.perf_counter()
            call()
            latencies.append((time.perf_counter() - op_start) * 1000)
        return summarize(operation, latencies, time.perf_counter() - start)

    def bench_set(self) -> dict:
        self._engine.clear()
        for i in range(self._warmup):
            self._engine.set(f"warmup_{i}", f"value_{i}")
        return self._timed("SET", (
            (lambda i=i: self._engine.set(f"key_{i}", {"id": i, "data": f"test_data_{i}", "timestamp": time.time()}))
            for i in range(self._ops)
        ))

    def bench_get(self) -> dict:
        for i in range(self._ops):
            self._engine.set(f"get_key_{i}", f"value_{i}")
        return self._timed("GET", (
            (lambda: self._engine.get(f"get_key_{random.randrange(self._ops)}"))
            for _ in range(self._ops)
        ))

    def bench_delete(self) -> dict:
        for i in range(self._ops):
            self._engine.set(f"del_key_{i}", f"value_{i}")
        return self._timed("DELETE", (
            (lambda i=i: self._engine.delete(f"del_key_{i}"))
            for i in range(self._ops)
        ))

    def bench_mixed(self) -> dict:
        """
        70% reads / 30% writes over a shared key space
        """
        key_space = max(1, self._ops // 10)

        def op():
            key = f"mixed_{random.randrange(key_space)}"
            if random.random() < 0.7:
                self._engine.get(key)
            else:
                self._engine.set(key, random.random())
        return self._timed("MIXED", (op for _ in range(self._ops)))

    def bench_ttl(self) -> dict:
        self._engine.clear()
        return self._timed("SET+TTL", (
            (lambda i=i: self._engine.set(f"ttl_key_{i}", i, ttl=1 + i % 60))
            for i in range(self._ops)
        ))

    def run(self) -> list:
        return [self.bench_set(), self.bench_get(), self.bench_delete(), self.bench_mixed(), self.bench_ttl()]


def compare_policies(policies, ops: int, max_memory_mb: float) -> dict:
    """
    Run the same skewed workload against each policy under memory pressure
    """
    results = {}
    key_space = ops // 2
    rng = random.Random(42)
    workload = [
        ("get" if rng.random() < 0.6 else "set", int(rng.paretovariate(1.2)) % key_space)
        for _ in range(ops)
    ]
    for policy in policies:
        engine = CacheEngine(CacheConfig(max_memory_mb=max_memory_mb, eviction_policy=policy.value, default_ttl=0))
        writes = 0
        start = time.perf_counter()
        for op, k in workload:
            key = f"key_{k}"
            if op == "get" and engine.get(key) is not None:
                continue
            # read-through: a miss is followed by a write
            engine.set(key, "x" * 256)
            writes += 1
        elapsed = time.perf_counter() - start
        metrics = EvictionMetrics(engine.get_stats(), writes=writes, total_time=elapsed)
        results[policy.value] = {**metrics.to_dict(), "total_time_ms": round(elapsed * 1000, 2)}
    return results


if __name__ == "__main__":
    # argument parser for choosing eviction policy and workload size
    parser = argparse.ArgumentParser(description="Benchmark cache operations and eviction policies.")
    parser.add_argument(
        "--policy",
        type=str,
        choices=[p.value for p in EvictionPolicy] + ["all"],
        default="lru",
        help="Eviction policy to benchmark (default: lru)"
    )
    parser.add_argument("--ops", type=int, default=10000, help="Operations per suite (default: 10000)")
    parser.add_argument("--warmup", type=int, default=1000, help="Warmup operations (default: 1000)")
    parser.add_argument(
        "--max-memory-mb",
        type=float,
        default=0.5,
        help="Memory ceiling used for the policy comparison (default: 0.5)"
    )
    args = parser.parse_args()

    policies = list(EvictionPolicy) if args.policy == "all" else [EvictionPolicy(args.policy)]

    for policy in policies:
        engine = CacheEngine(CacheConfig(eviction_policy=policy.value), policy=policy)
        benchmarker = Benchmarker(engine, ops=args.ops, warmup=args.warmup)
        logger.info(f"Running operation suites with {policy.value} eviction...")
        for result in benchmarker.run():
            logger.info(
                f"[{policy.value}] {result['operation']}: {result['operations_per_second']} ops/s, "
                f"avg {result['average_latency_ms']}ms, p95 {result['p95']}ms, p99 {result['p99']}ms"
            )

    logger.info("Comparing eviction policies under memory pressure...")
    for name, metrics in compare_policies(policies, args.ops, args.max_memory_mb).items():
        logger.info(f"[{name}] Hit Ratio: {metrics['hit_ratio']:.2f}, Eviction Ratio: {metrics['eviction_ratio']:.2f}, "
                    f"Evictions: {metrics['evictions']}, Time: {metrics['total_time_ms']}ms")
    logger.info("Benchmarking completed.")
