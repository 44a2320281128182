import time
import logging
from typing import Optional

from flask import Flask, g, request
from werkzeug.exceptions import HTTPException

from cachelayer import __version__
from cachelayer.api.rate_limiter import FixedWindowRateLimiter
from cachelayer.api.responses import error_response, success_response
from cachelayer.api.routes import create_routes
from cachelayer.cleanup import CleanupWorker
from cachelayer.config import CacheConfig
from cachelayer.datastore import CacheEngine
from cachelayer.exceptions import RateLimitExceededError, ValidationError
from cachelayer.stats import StatsCollector

logger = logging.getLogger(__name__)


def create_app(config: Optional[CacheConfig] = None,
               engine: Optional[CacheEngine] = None,
               cleanup_worker: Optional[CleanupWorker] = None,
               stats_collector: Optional[StatsCollector] = None) -> Flask:
    """
    Build the Flask app. Components that are not passed in are created from `config`;
    background workers are not started here.
    """
    config = config or CacheConfig()
    engine = engine or CacheEngine(config)
    cleanup_worker = cleanup_worker or CleanupWorker(engine, config)
    stats_collector = stats_collector or StatsCollector(engine, cleanup_worker, config)
    rate_limiter = FixedWindowRateLimiter(config.rate_limit_max_requests, config.rate_limit_window_seconds)

    app = Flask(__name__)
    app.extensions["cachelayer"] = {
        "config": config,
        "engine": engine,
        "cleanup_worker": cleanup_worker,
        "stats_collector": stats_collector,
        "rate_limiter": rate_limiter,
    }
    started_at = time.time()

    @app.before_request
    def start_timer():
        g.request_started = time.perf_counter()

    @app.after_request
    def log_request(response):
        started = g.get("request_started")
        duration_ms = (time.perf_counter() - started) * 1000 if started is not None else 0.0
        logger.info(f"HTTP {request.method} {request.path} {response.status_code} {duration_ms:.2f}ms")
        return response

    @app.route("/", methods=["GET"])
    def index():
        return success_response({
            "name": "Cache Layer Service",
            "version": __version__,
            "description": "In-memory caching service with TTL support",
            "status": "healthy",
            "uptime_seconds": round(time.time() - started_at, 3),
        })

    app.register_blueprint(create_routes(engine, cleanup_worker, stats_collector, rate_limiter),
                           url_prefix="/api/v1")

    @app.errorhandler(ValidationError)
    def handle_validation_error(e: ValidationError):
        return error_response(e.message, 400)

    @app.errorhandler(RateLimitExceededError)
    def handle_rate_limit(e: RateLimitExceededError):
        response, status = error_response("Rate limit exceeded", 429)
        response.headers["Retry-After"] = str(e.retry_after)
        return response, status

    @app.errorhandler(HTTPException)
    def handle_http_error(e: HTTPException):
        if e.code == 404:
            return error_response(f"Route {request.method} {request.path} not found", 404)
        return error_response(e.description or e.name, e.code or 500)

    @app.errorhandler(Exception)
    def handle_unexpected_error(e: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.path}")
        return error_response("Internal server error", 500)

    return app
