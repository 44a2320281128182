"""
Read-only monitoring on top of the cache engine.

StatsCollector samples engine counters once per second into a rolling window,
derives recent throughput from it, and turns the numbers into a health verdict.
Nothing here feeds back into eviction or admission.
"""
import platform
import sys
import threading
import time
import logging
from collections import deque
from typing import Any, Callable, Deque, Dict, List, NamedTuple, Optional

import psutil

from cachelayer.cleanup import CleanupWorker
from cachelayer.config import CacheConfig
from cachelayer.datastore import CacheEngine

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 60
THROUGHPUT_WINDOW = 10
SAMPLE_INTERVAL_SECONDS = 1.0

CACHE_MEMORY_CRITICAL_PERCENT = 90
CACHE_MEMORY_WARNING_PERCENT = 75
PROCESS_MEMORY_WARNING_PERCENT = 85
HIT_RATE_WARNING_PERCENT = 50
MIN_OPERATIONS_FOR_HIT_RATE = 100
LOW_OPS_PER_SECOND = 10
MIN_OPERATIONS_FOR_THROUGHPUT = 100


class Sample(NamedTuple):
    timestamp: float
    operations: int
    memory_mb: float


class StatsCollector:
    def __init__(self, engine: CacheEngine, cleanup_worker: CleanupWorker,
                 config: Optional[CacheConfig] = None, clock: Callable[[], float] = time.time):
        self._engine = engine
        self._cleanup_worker = cleanup_worker
        self._config = config or engine.config
        self._clock = clock
        self._process = psutil.Process()

        self._history: Deque[Sample] = deque(maxlen=HISTORY_LIMIT)
        self._history_lock = threading.Lock()
        self._start_time = clock()
        self._peak_memory_mb = 0.0
        self._peak_ops_per_second = 0.0

        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._lifecycle_lock = threading.Lock()

    """
    -----------------------SAMPLING-------------------------
    """
    def record_sample(self) -> Sample:
        stats = self._engine.get_stats()
        sample = Sample(self._clock(), stats["hit_count"] + stats["miss_count"], stats["memory_usage_mb"])
        with self._history_lock:
            self._history.append(sample)
            self._peak_memory_mb = max(self._peak_memory_mb, sample.memory_mb)
        return sample

    def history(self) -> List[Sample]:
        with self._history_lock:
            return list(self._history)

    def start(self) -> None:
        """
        Sample every second and log a performance report every `stats_report_interval_ms`
        """
        with self._lifecycle_lock:
            if self._thread is not None:
                logger.warning("Stats collector is already running")
                return
            self._stop_event = threading.Event()
            self._thread = threading.Thread(target=self._run, args=(self._stop_event,),
                                            name="cache-stats", daemon=True)
            self._thread.start()
        logger.info(f"Started periodic performance reporting every {self._config.stats_report_interval_ms}ms")

    def stop(self) -> None:
        with self._lifecycle_lock:
            if self._thread is None:
                logger.warning("Stats collector is not running")
                return
            self._stop_event.set()
            if self._thread is not threading.current_thread():
                self._thread.join(timeout=5)
            self._thread = None
        logger.info("Stats collector stopped")

    @property
    def is_running(self) -> bool:
        return self._thread is not None

    def _run(self, stop_event: threading.Event) -> None:
        report_every = self._config.stats_report_interval_ms / 1000
        last_report = time.monotonic()
        while not stop_event.wait(SAMPLE_INTERVAL_SECONDS):
            try:
                self.record_sample()
                if time.monotonic() - last_report >= report_every:
                    last_report = time.monotonic()
                    self.log_performance_report()
            except Exception:
                logger.exception("Stats sampling failed")

    """
    -----------------------DERIVED METRICS-------------------------
    """
    def _operations_per_second(self) -> float:
        """
        Mean of the per-sample operation deltas over the last THROUGHPUT_WINDOW samples
        """
        with self._history_lock:
            recent = list(self._history)[-(THROUGHPUT_WINDOW + 1):]
        if len(recent) < 2:
            return 0.0
        deltas = [max(0, later.operations - earlier.operations) for earlier, later in zip(recent, recent[1:])]
        return sum(deltas) / len(deltas)

    def get_performance_stats(self) -> Dict[str, float]:
        ops_per_second = round(self._operations_per_second(), 2)
        self._peak_ops_per_second = max(self._peak_ops_per_second, ops_per_second)
        return {
            "operations_per_second": ops_per_second,
            "peak_operations_per_second": self._peak_ops_per_second,
            "peak_memory_usage_mb": self._peak_memory_mb,
            "samples": len(self._history),
        }

    def _process_memory_percent(self) -> float:
        return self._process.memory_percent()

    def _process_info(self) -> Dict[str, Any]:
        memory = self._process.memory_info()
        cpu = self._process.cpu_times()
        return {
            "pid": self._process.pid,
            "platform": sys.platform,
            "python_version": platform.python_version(),
            "rss_bytes": memory.rss,
            "vms_bytes": memory.vms,
            "cpu_user_seconds": cpu.user,
            "cpu_system_seconds": cpu.system,
            "memory_percent": round(self._process_memory_percent(), 2),
            "uptime_seconds": round(self._clock() - self._start_time, 3),
        }

    def get_system_stats(self) -> Dict[str, Any]:
        cache_stats = self._engine.get_stats()
        self._peak_memory_mb = max(self._peak_memory_mb, cache_stats["memory_usage_mb"])
        return {
            "cache": cache_stats,
            "cleanup": self._cleanup_worker.get_stats(),
            "system": self._process_info(),
            "config": {
                "max_memory_mb": self._config.max_memory_mb,
                "default_ttl": self._config.default_ttl,
                "cleanup_interval_ms": self._cleanup_worker.interval_ms,
                "eviction_policy": self._engine.policy.value,
            },
            "performance": self.get_performance_stats(),
        }

    def get_health_status(self) -> Dict[str, Any]:
        """
        Verdict: "critical" if any critical issue, "warning" if any issue, else "healthy"
        """
        cache_stats = self._engine.get_stats()
        performance = self.get_performance_stats()
        cache_memory_percent = cache_stats["memory_usage_bytes"] / cache_stats["max_memory_bytes"] * 100
        process_memory_percent = self._process_memory_percent()
        total_operations = cache_stats["hit_count"] + cache_stats["miss_count"]

        critical: List[str] = []
        warnings: List[str] = []

        if cache_memory_percent > CACHE_MEMORY_CRITICAL_PERCENT:
            critical.append("Cache memory usage critically high")
        elif cache_memory_percent > CACHE_MEMORY_WARNING_PERCENT:
            warnings.append("Cache memory usage high")

        if process_memory_percent > PROCESS_MEMORY_WARNING_PERCENT:
            warnings.append("Process memory usage high")

        if total_operations >= MIN_OPERATIONS_FOR_HIT_RATE and cache_stats["hit_rate"] < HIT_RATE_WARNING_PERCENT:
            warnings.append("Low cache hit rate")

        # throughput is only judged once there are samples to derive it from
        if (
            total_operations > MIN_OPERATIONS_FOR_THROUGHPUT
            and performance["samples"] >= 2
            and performance["operations_per_second"] < LOW_OPS_PER_SECOND
        ):
            warnings.append("Low operations per second")

        if critical:
            status = "critical"
        elif warnings:
            status = "warning"
        else:
            status = "healthy"

        return {
            "status": status,
            "uptime_seconds": round(self._clock() - self._start_time, 3),
            "issues": critical + warnings,
            "metrics": {
                "cache_memory_percent": round(cache_memory_percent, 2),
                "process_memory_percent": round(process_memory_percent, 2),
                "hit_rate": cache_stats["hit_rate"],
                "operations_per_second": performance["operations_per_second"],
            },
        }

    def log_performance_report(self) -> None:
        stats = self.get_system_stats()
        health = self.get_health_status()
        logger.info(
            f"Performance report: health={health['status']} keys={stats['cache']['total_keys']} "
            f"memory_mb={stats['cache']['memory_usage_mb']} hit_rate={stats['cache']['hit_rate']}% "
            f"ops_per_second={stats['performance']['operations_per_second']} issues={health['issues']}"
        )
