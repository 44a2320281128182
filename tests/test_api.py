import pytest

from cachelayer.api import create_app
from cachelayer.cleanup import CleanupWorker
from cachelayer.config import CacheConfig
from cachelayer.datastore import CacheEngine
from cachelayer.stats import StatsCollector

from conftest import SMALL_ENTRY_BYTES, config_with_limit


def build_app(config, clock):
    engine = CacheEngine(config, clock=clock)
    worker = CleanupWorker(engine, config)
    collector = StatsCollector(engine, worker, config, clock=clock)
    collector._process_memory_percent = lambda: 10.0
    return create_app(config, engine, worker, collector)

#-------------FIXTURES----------------
@pytest.fixture
def app(clock):
    app = build_app(CacheConfig(default_ttl=0), clock)
    yield app
    worker = app.extensions["cachelayer"]["cleanup_worker"]
    if worker.is_running:
        worker.stop()

@pytest.fixture
def client(app):
    return app.test_client()

@pytest.fixture
def engine(app):
    return app.extensions["cachelayer"]["engine"]


#-------------KEY/VALUE----------------
def test_set_and_get(client):
    response = client.post("/api/v1/cache", json={"key": "user:1", "value": {"name": "ann"}, "ttl": 60})
    assert response.status_code == 201
    assert response.get_json()["data"]["ttl"] == 60

    response = client.get("/api/v1/cache/user:1")
    assert response.status_code == 200
    body = response.get_json()
    assert body["success"] is True
    assert body["data"] == {"key": "user:1", "value": {"name": "ann"}}
    assert "timestamp" in body

def test_get_missing_key(client):
    response = client.get("/api/v1/cache/missing")
    assert response.status_code == 404
    body = response.get_json()
    assert body["success"] is False
    assert body["error"] == "Key 'missing' not found"

def test_stored_null_is_found(client):
    client.post("/api/v1/cache", json={"key": "empty", "value": None})
    response = client.get("/api/v1/cache/empty")
    assert response.status_code == 200
    assert response.get_json()["data"]["value"] is None

def test_invalid_key_in_path(client):
    response = client.get("/api/v1/cache/bad!key")
    assert response.status_code == 400
    assert "Invalid key format" in response.get_json()["error"]

@pytest.mark.parametrize("payload", [
    {"value": 1},
    {"key": "k"},
    {"key": "has space", "value": 1},
    {"key": "k" * 513, "value": 1},
    {"key": "k", "value": 1, "ttl": -1},
    {"key": "k", "value": 1, "ttl": 1.5},
    {"key": "k", "value": 1, "ttl": True},
    {"key": "k", "value": 1, "ttl": 86400 * 365 + 1},
    ["not", "an", "object"],
])
def test_set_rejects_invalid_payload(client, engine, payload):
    response = client.post("/api/v1/cache", json=payload)
    assert response.status_code == 400
    assert engine.size() == 0

def test_delete(client):
    client.post("/api/v1/cache", json={"key": "k", "value": 1})
    assert client.delete("/api/v1/cache/k").status_code == 200
    assert client.delete("/api/v1/cache/k").status_code == 404

def test_head_probe_does_not_count(client, engine):
    client.post("/api/v1/cache", json={"key": "k", "value": 1})
    assert client.head("/api/v1/cache/k").status_code == 200
    assert client.head("/api/v1/cache/other").status_code == 404
    stats = engine.get_stats()
    assert stats["hit_count"] == 0
    assert stats["miss_count"] == 0

def test_keys_and_clear(client):
    client.post("/api/v1/cache", json={"key": "a", "value": 1})
    client.post("/api/v1/cache", json={"key": "b", "value": 2})
    data = client.get("/api/v1/cache").get_json()["data"]
    assert sorted(data["keys"]) == ["a", "b"]
    assert data["count"] == 2

    assert client.delete("/api/v1/cache").status_code == 200
    assert client.get("/api/v1/cache").get_json()["data"] == {"keys": [], "count": 0}
    assert client.get("/api/v1/stats").get_json()["data"]["total_keys"] == 0


#-------------TTL----------------
def test_update_ttl(client, engine, clock):
    client.post("/api/v1/cache", json={"key": "k", "value": 1, "ttl": 5})
    response = client.put("/api/v1/cache/k/ttl", json={"ttl": 100})
    assert response.status_code == 200
    clock.advance(50)
    assert client.get("/api/v1/cache/k").status_code == 200

def test_update_ttl_errors(client):
    assert client.put("/api/v1/cache/missing/ttl", json={"ttl": 10}).status_code == 404
    client.post("/api/v1/cache", json={"key": "k", "value": 1})
    assert client.put("/api/v1/cache/k/ttl", json={"ttl": "soon"}).status_code == 400
    assert client.put("/api/v1/cache/k/ttl", json={}).status_code == 400

def test_expired_key_is_not_found(client, clock):
    client.post("/api/v1/cache", json={"key": "k", "value": 1, "ttl": 1})
    clock.advance(2)
    assert client.get("/api/v1/cache/k").status_code == 404


#-------------INCREMENT----------------
def test_increment(client):
    client.post("/api/v1/cache", json={"key": "counter", "value": 5})
    response = client.post("/api/v1/cache/counter/increment", json={"delta": 3})
    assert response.status_code == 200
    assert response.get_json()["data"]["value"] == 8

    response = client.post("/api/v1/cache/counter/increment")
    assert response.get_json()["data"]["value"] == 9

def test_increment_errors(client):
    assert client.post("/api/v1/cache/missing/increment", json={"delta": 1}).status_code == 404
    client.post("/api/v1/cache", json={"key": "s", "value": "text"})
    assert client.post("/api/v1/cache/s/increment", json={"delta": 1}).status_code == 400
    client.post("/api/v1/cache", json={"key": "n", "value": 1})
    assert client.post("/api/v1/cache/n/increment", json={"delta": "1"}).status_code == 400
    assert client.get("/api/v1/cache/s").get_json()["data"]["value"] == "text"


#-------------BATCH----------------
def test_batch_set_partial_failure(client):
    response = client.post("/api/v1/cache/batch", json={"operations": [
        {"key": "a", "value": 1},
        {"key": "bad key", "value": 2},
        {"key": "c", "value": 3, "ttl": 30},
    ]})
    assert response.status_code == 200
    data = response.get_json()["data"]
    assert data["total"] == 3
    assert data["successful"] == 2
    assert data["failed"] == 1
    assert data["results"][1]["success"] is False
    assert "error" in data["results"][1]

    assert client.get("/api/v1/cache/a").get_json()["data"]["value"] == 1
    assert client.get("/api/v1/cache/c").get_json()["data"]["value"] == 3

@pytest.mark.parametrize("payload", [{"operations": "nope"}, {"operations": []}, {},
                                     {"operations": [{"key": f"k{i}", "value": i} for i in range(101)]}])
def test_batch_set_rejects_envelope(client, payload):
    assert client.post("/api/v1/cache/batch", json=payload).status_code == 400

def test_batch_get(client):
    client.post("/api/v1/cache", json={"key": "a", "value": 1})
    response = client.post("/api/v1/cache/batch/get", json={"keys": ["a", "b"]})
    data = response.get_json()["data"]
    assert data["found"] == 1
    assert data["missed"] == 1
    assert data["results"] == [
        {"key": "a", "value": 1, "found": True},
        {"key": "b", "value": None, "found": False},
    ]

def test_batch_get_requires_array(client):
    assert client.post("/api/v1/cache/batch/get", json={"keys": "a"}).status_code == 400


#-------------STATS, HEALTH & ADMIN----------------
def test_stats_hit_rate(client):
    client.post("/api/v1/cache", json={"key": "a", "value": 1})
    client.get("/api/v1/cache/a")
    client.get("/api/v1/cache/zzz")
    data = client.get("/api/v1/stats").get_json()["data"]
    assert data["hit_count"] == 1
    assert data["miss_count"] == 1
    assert data["hit_rate"] == 50.0

def test_health(client):
    data = client.get("/api/v1/health").get_json()["data"]
    assert data["status"] == "healthy"
    assert data["memory_usage"]["max_mb"] == 100

def test_system_stats(client):
    data = client.get("/api/v1/system/stats").get_json()["data"]
    assert set(data) == {"cache", "cleanup", "system", "config", "performance"}

def test_system_health_critical_returns_503(clock):
    app = build_app(config_with_limit(SMALL_ENTRY_BYTES + 5, "none"), clock)
    client = app.test_client()
    client.post("/api/v1/cache", json={"key": "a", "value": "x"})
    response = client.get("/api/v1/system/health")
    assert response.status_code == 503
    assert response.get_json()["data"]["status"] == "critical"

def test_system_health_ok(client):
    response = client.get("/api/v1/system/health")
    assert response.status_code == 200
    assert response.get_json()["data"]["status"] == "healthy"

def test_admin_cleanup(client, clock):
    client.post("/api/v1/cache", json={"key": "a", "value": 1, "ttl": 1})
    clock.advance(2)
    response = client.post("/api/v1/admin/cleanup")
    assert response.status_code == 200
    assert response.get_json()["data"]["expired_keys_removed"] == 1

def test_cleanup_worker_control(client, app):
    response = client.post("/api/v1/admin/cleanup-worker/start")
    assert response.get_json()["data"]["is_running"] is True
    response = client.post("/api/v1/admin/cleanup-worker/stop")
    assert response.get_json()["data"]["is_running"] is False


#-------------PLUMBING----------------
def test_index(client):
    data = client.get("/").get_json()["data"]
    assert data["name"] == "Cache Layer Service"
    assert data["status"] == "healthy"

def test_unknown_route(client):
    response = client.get("/api/v1/nothing/here")
    assert response.status_code == 404
    assert response.get_json()["error"] == "Route GET /api/v1/nothing/here not found"

def test_rate_limit(clock):
    app = build_app(CacheConfig(rate_limit_max_requests=2), clock)
    client = app.test_client()
    assert client.get("/api/v1/cache").status_code == 200
    assert client.get("/api/v1/cache").status_code == 200
    response = client.get("/api/v1/cache")
    assert response.status_code == 429
    assert "Retry-After" in response.headers
    # routes outside the api blueprint are not limited
    assert client.get("/").status_code == 200

def test_unexpected_error_returns_500(client, engine, monkeypatch):
    def boom():
        raise RuntimeError("boom")
    monkeypatch.setattr(engine, "keys", boom)
    response = client.get("/api/v1/cache")
    assert response.status_code == 500
    assert response.get_json()["error"] == "Internal server error"
