import logging
import threading
import time

import pytest

from cachelayer.cleanup import CleanupWorker
from cachelayer.config import CacheConfig
from cachelayer.datastore import CacheEngine


#-------------FIXTURES----------------
@pytest.fixture
def fast_engine(clock):
    return CacheEngine(CacheConfig(default_ttl=0, cleanup_interval_ms=10), clock=clock)

@pytest.fixture
def worker(fast_engine):
    w = CleanupWorker(fast_engine)
    yield w
    if w.is_running:
        w.stop()


def wait_for(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


#-------------FORCE CLEANUP----------------
def test_force_cleanup_removes_expired(fast_engine, worker, clock):
    fast_engine.set("a", 1, ttl=1)
    fast_engine.set("b", 2)
    clock.advance(5)

    result = worker.force_cleanup()
    assert result.success
    assert result.expired_keys_removed == 1
    assert result.error is None
    assert fast_engine.keys() == ["b"]

    stats = worker.get_stats()
    assert stats["total_runs"] == 1
    assert stats["total_expired_keys"] == 1
    assert stats["last_run_time"] > 0
    assert stats["is_running"] is False
    assert stats["next_run_in_ms"] == 0

def test_force_cleanup_reports_failure(fast_engine, worker, monkeypatch):
    def boom():
        raise RuntimeError("store unavailable")
    monkeypatch.setattr(fast_engine, "cleanup_expired", boom)

    result = worker.force_cleanup()
    assert not result.success
    assert result.expired_keys_removed == 0
    assert result.error == "store unavailable"
    assert worker.get_stats()["total_runs"] == 0

def test_average_run_duration(worker):
    worker._update_stats(0, 2.0)
    worker._update_stats(3, 4.0)
    stats = worker.get_stats()
    assert stats["total_runs"] == 2
    assert stats["total_expired_keys"] == 3
    assert stats["average_run_duration_ms"] == 3.0


#-------------TIMER----------------
def test_worker_sweeps_in_background(fast_engine, worker, clock):
    fast_engine.set("a", 1, ttl=1)
    clock.advance(5)
    worker.start()
    assert worker.is_running
    assert wait_for(lambda: fast_engine.size() == 0)
    assert wait_for(lambda: worker.get_stats()["total_expired_keys"] == 1)

def test_start_and_stop_are_idempotent(worker, caplog):
    with caplog.at_level(logging.WARNING, logger="cachelayer.cleanup"):
        worker.start()
        worker.start()
        worker.stop()
        worker.stop()
    assert not worker.is_running
    messages = [r.getMessage() for r in caplog.records]
    assert "Cleanup worker is already running" in messages
    assert "Cleanup worker is not running" in messages

def test_update_interval_restarts_running_worker(worker):
    worker.start()
    worker.update_interval(50)
    assert worker.is_running
    assert worker.interval_ms == 50
    assert worker.get_stats()["cleanup_interval_ms"] == 50

def test_update_interval_on_stopped_worker(worker):
    worker.update_interval(250)
    assert not worker.is_running
    assert worker.interval_ms == 250

def test_update_interval_rejects_non_positive(worker):
    with pytest.raises(ValueError):
        worker.update_interval(0)

def slow_thread_class():
    real_thread = threading.Thread

    class SlowThread(real_thread):
        def __init__(self, *args, **kwargs):
            # widen the gap between the running check and the assignment
            time.sleep(0.05)
            super().__init__(*args, **kwargs)

    return SlowThread

def test_concurrent_start_runs_a_single_timer(worker, monkeypatch):
    before = set(threading.enumerate())
    starters = [threading.Thread(target=worker.start) for _ in range(3)]
    monkeypatch.setattr("cachelayer.cleanup.threading.Thread", slow_thread_class())
    for t in starters:
        t.start()
    for t in starters:
        t.join()
    monkeypatch.undo()

    worker.stop()
    leftover = [t for t in threading.enumerate() if t.name == "cache-cleanup" and t not in before]
    assert leftover == []
    assert not worker.is_running
