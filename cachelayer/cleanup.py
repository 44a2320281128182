"""
Background sweeper that removes expired keys independently of reads.
"""
import threading
import time
import logging
from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional

from cachelayer.config import CacheConfig
from cachelayer.datastore import CacheEngine

logger = logging.getLogger(__name__)


@dataclass
class CleanupResult:
    success: bool
    expired_keys_removed: int
    duration_ms: float
    timestamp: float
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class CleanupWorker:
    """
    Runs `CacheEngine.cleanup_expired()` every `cleanup_interval_ms` on a daemon thread.

    The interval of a running worker is never changed in place: `update_interval`
    stops the timer, swaps the config and starts a new timer.
    """
    def __init__(self, engine: CacheEngine, config: Optional[CacheConfig] = None):
        self._engine = engine
        self._config = config or engine.config
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._state_lock = threading.Lock()
        # guards the check-then-create of the timer thread
        self._lifecycle_lock = threading.Lock()

        self._total_runs = 0
        self._total_expired_keys = 0
        self._last_run_time = 0.0
        self._average_run_duration = 0.0

    @property
    def is_running(self) -> bool:
        return self._thread is not None

    @property
    def interval_ms(self) -> int:
        return self._config.cleanup_interval_ms

    def start(self) -> None:
        with self._lifecycle_lock:
            if self._thread is not None:
                logger.warning("Cleanup worker is already running")
                return
            self._stop_event = threading.Event()
            self._thread = threading.Thread(target=self._run, args=(self._stop_event,),
                                            name="cache-cleanup", daemon=True)
            self._thread.start()
        logger.info(f"Cleanup worker started with {self._config.cleanup_interval_ms}ms interval")

    def stop(self) -> None:
        with self._lifecycle_lock:
            if self._thread is None:
                logger.warning("Cleanup worker is not running")
                return
            self._stop_event.set()
            if self._thread is not threading.current_thread():
                self._thread.join(timeout=5)
            self._thread = None
        logger.info("Cleanup worker stopped")

    def _run(self, stop_event: threading.Event) -> None:
        interval = self._config.cleanup_interval_ms / 1000
        while not stop_event.wait(interval):
            self._perform_cleanup()

    def force_cleanup(self) -> CleanupResult:
        """
        One synchronous pass outside the timer, e.g. to drain on shutdown
        """
        logger.info("Force cleanup triggered manually")
        return self._perform_cleanup()

    def _perform_cleanup(self) -> CleanupResult:
        start = time.time()
        try:
            expired_count = self._engine.cleanup_expired()
        except Exception as e:
            duration_ms = (time.time() - start) * 1000
            logger.exception("Cleanup failed")
            return CleanupResult(False, 0, round(duration_ms, 3), start, error=str(e))

        duration_ms = (time.time() - start) * 1000
        self._update_stats(expired_count, duration_ms)
        if expired_count > 0:
            logger.info(f"Cleanup completed: removed {expired_count} expired keys in {duration_ms:.2f}ms")
        else:
            logger.debug(f"Cleanup completed: no expired keys found ({duration_ms:.2f}ms)")
        return CleanupResult(True, expired_count, round(duration_ms, 3), start)

    def _update_stats(self, expired_count: int, duration_ms: float) -> None:
        with self._state_lock:
            self._total_runs += 1
            self._total_expired_keys += expired_count
            self._last_run_time = time.time()
            # running mean over all runs
            self._average_run_duration += (duration_ms - self._average_run_duration) / self._total_runs

    def _next_run_in_ms(self) -> float:
        if self._thread is None or not self._last_run_time:
            return 0
        next_run = self._last_run_time + self._config.cleanup_interval_ms / 1000
        return max(0.0, round((next_run - time.time()) * 1000, 3))

    def get_stats(self) -> Dict[str, Any]:
        with self._state_lock:
            return {
                "total_runs": self._total_runs,
                "total_expired_keys": self._total_expired_keys,
                "last_run_time": self._last_run_time,
                "average_run_duration_ms": round(self._average_run_duration, 3),
                "is_running": self.is_running,
                "cleanup_interval_ms": self._config.cleanup_interval_ms,
                "next_run_in_ms": self._next_run_in_ms(),
            }

    def update_interval(self, interval_ms: int) -> None:
        if interval_ms <= 0:
            raise ValueError("Cleanup interval must be greater than 0")
        was_running = self.is_running
        if was_running:
            self.stop()
        self._config = self._config.replace(cleanup_interval_ms=interval_ms)
        if was_running:
            self.start()
        logger.info(f"Cleanup interval updated to {interval_ms}ms")
