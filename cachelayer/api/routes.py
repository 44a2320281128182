from flask import Blueprint, request

import logging

from cachelayer.api.rate_limiter import FixedWindowRateLimiter
from cachelayer.api.responses import error_response, success_response
from cachelayer.api.validation import (
    validate_batch_keys,
    validate_batch_operations,
    validate_delta,
    validate_key,
    validate_set_payload,
    validate_ttl,
)
from cachelayer.cleanup import CleanupWorker
from cachelayer.datastore import CacheEngine
from cachelayer.exceptions import ValidationError
from cachelayer.stats import StatsCollector

logger = logging.getLogger(__name__)

# distinguishes "not found" from a stored null
_MISSING = object()


def create_routes(engine: CacheEngine, cleanup_worker: CleanupWorker,
                  stats_collector: StatsCollector, rate_limiter: FixedWindowRateLimiter) -> Blueprint:
    """
    Build the /api/v1 blueprint around one engine instance
    """
    bp = Blueprint("cache_api", __name__)

    @bp.before_request
    def limit_requests():
        rate_limiter.hit(request.remote_addr or "unknown")

    """
    -----------------------KEY/VALUE-------------------------
    """
    @bp.route("/cache/<key>", methods=["GET", "HEAD"])
    def get_key(key):
        validate_key(key)
        if request.method == "HEAD":
            # existence probe, does not count as a hit or miss
            return ("", 200) if engine.has(key) else ("", 404)
        value = engine.get(key, _MISSING)
        if value is _MISSING:
            return error_response(f"Key '{key}' not found", 404)
        return success_response({"key": key, "value": value})

    @bp.route("/cache", methods=["POST"])
    def set_key():
        key, value, ttl = validate_set_payload(request.get_json(silent=True))
        if not engine.set(key, value, ttl=ttl, overwrite=True):
            return error_response(f"Failed to set key '{key}'", 400)
        return success_response({"key": key, "value": value, "ttl": ttl,
                                 "message": "Key set successfully"}, 201)

    @bp.route("/cache/<key>", methods=["DELETE"])
    def delete_key(key):
        validate_key(key)
        if not engine.delete(key):
            return error_response(f"Key '{key}' not found", 404)
        return success_response({"key": key, "message": "Key deleted successfully"})

    @bp.route("/cache", methods=["GET"])
    def list_keys():
        keys = engine.keys()
        return success_response({"keys": keys, "count": len(keys)})

    @bp.route("/cache", methods=["DELETE"])
    def clear():
        engine.clear()
        return success_response({"message": "Cache cleared successfully"})

    @bp.route("/cache/<key>/ttl", methods=["PUT"])
    def update_ttl(key):
        validate_key(key)
        body = request.get_json(silent=True)
        ttl = validate_ttl(body.get("ttl") if isinstance(body, dict) else None, required=True)
        if not engine.update_ttl(key, ttl):
            return error_response(f"Key '{key}' not found", 404)
        return success_response({"key": key, "ttl": ttl, "message": "TTL updated successfully"})

    @bp.route("/cache/<key>/increment", methods=["POST"])
    def increment(key):
        validate_key(key)
        delta = validate_delta(request.get_json(silent=True))
        new_value = engine.increment(key, delta)
        if new_value is None:
            if not engine.has(key):
                return error_response(f"Key '{key}' not found", 404)
            return error_response(f"Value at key '{key}' is not a number", 400)
        return success_response({"key": key, "value": new_value, "delta": delta,
                                 "message": "Value incremented successfully"})

    """
    -----------------------BATCH-------------------------
    """
    @bp.route("/cache/batch", methods=["POST"])
    def batch_set():
        operations = validate_batch_operations(request.get_json(silent=True))
        results = []
        for op in operations:
            op_key = op.get("key") if isinstance(op, dict) else None
            try:
                key, value, ttl = validate_set_payload(op)
            except ValidationError as e:
                results.append({"key": op_key, "success": False, "error": e.message})
                continue
            results.append({"key": key, "success": engine.set(key, value, ttl=ttl, overwrite=True)})

        successful = sum(1 for r in results if r["success"])
        return success_response({
            "results": results,
            "total": len(operations),
            "successful": successful,
            "failed": len(operations) - successful,
        })

    @bp.route("/cache/batch/get", methods=["POST"])
    def batch_get():
        keys = validate_batch_keys(request.get_json(silent=True))
        results = []
        for key in keys:
            value = engine.get(key, _MISSING)
            found = value is not _MISSING
            results.append({"key": key, "value": value if found else None, "found": found})

        found_count = sum(1 for r in results if r["found"])
        return success_response({
            "results": results,
            "total": len(keys),
            "found": found_count,
            "missed": len(keys) - found_count,
        })

    """
    -----------------------STATS & ADMIN-------------------------
    """
    @bp.route("/stats", methods=["GET"])
    def stats():
        return success_response(engine.get_stats())

    @bp.route("/health", methods=["GET"])
    def health():
        stats = engine.get_stats()
        return success_response({
            "status": "healthy",
            "uptime_seconds": stats["uptime_seconds"],
            "memory_usage": {
                "current_mb": stats["memory_usage_mb"],
                "max_mb": stats["max_memory_mb"],
                "percentage": round(stats["memory_usage_bytes"] / stats["max_memory_bytes"] * 100, 2),
            },
            "performance": {
                "hit_rate": stats["hit_rate"],
                "total_operations": stats["hit_count"] + stats["miss_count"],
            },
        })

    @bp.route("/system/stats", methods=["GET"])
    def system_stats():
        return success_response(stats_collector.get_system_stats())

    @bp.route("/system/health", methods=["GET"])
    def system_health():
        health = stats_collector.get_health_status()
        return success_response(health, 503 if health["status"] == "critical" else 200)

    @bp.route("/admin/cleanup", methods=["POST"])
    def admin_cleanup():
        result = cleanup_worker.force_cleanup()
        if not result.success:
            return error_response(f"Cleanup failed: {result.error}", 500)
        return success_response({"expired_keys_removed": result.expired_keys_removed,
                                 "duration_ms": result.duration_ms,
                                 "message": "Manual cleanup completed"})

    @bp.route("/admin/cleanup-worker/start", methods=["POST"])
    def start_cleanup_worker():
        cleanup_worker.start()
        return success_response({"message": "Cleanup worker started", "is_running": cleanup_worker.is_running})

    @bp.route("/admin/cleanup-worker/stop", methods=["POST"])
    def stop_cleanup_worker():
        cleanup_worker.stop()
        return success_response({"message": "Cleanup worker stopped", "is_running": cleanup_worker.is_running})

    return bp
