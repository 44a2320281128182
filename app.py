import signal
import sys

import logging

from cachelayer.api import create_app
from cachelayer.cleanup import CleanupWorker
from cachelayer.config import CacheConfig
from cachelayer.datastore import CacheEngine
from cachelayer.logging_config import configure_logging
from cachelayer.stats import StatsCollector

logger = logging.getLogger(__name__)


def install_shutdown_handlers(cleanup_worker: CleanupWorker, stats_collector: StatsCollector):
    def shutdown(signum, frame):
        logger.info(f"Received {signal.Signals(signum).name}, starting graceful shutdown...")
        try:
            if cleanup_worker.is_running:
                cleanup_worker.stop()
            if stats_collector.is_running:
                stats_collector.stop()

            final_cleanup = cleanup_worker.force_cleanup()
            logger.info(f"Final cleanup completed: {final_cleanup.to_dict()}")

            final_stats = stats_collector.get_system_stats()
            cache_stats = final_stats["cache"]
            logger.info(
                f"Final statistics: total_keys={cache_stats['total_keys']} "
                f"total_operations={cache_stats['hit_count'] + cache_stats['miss_count']} "
                f"hit_rate={cache_stats['hit_rate']} uptime_seconds={cache_stats['uptime_seconds']}"
            )
        except Exception:
            logger.exception("Error during shutdown")
            sys.exit(1)
        logger.info("Graceful shutdown completed")
        sys.exit(0)

    signal.signal(signal.SIGTERM, shutdown)
    signal.signal(signal.SIGINT, shutdown)


def main():
    try:
        config = CacheConfig.from_env()
        configure_logging(config.log_level)

        engine = CacheEngine(config)
        cleanup_worker = CleanupWorker(engine, config)
        stats_collector = StatsCollector(engine, cleanup_worker, config)
        app = create_app(config, engine, cleanup_worker, stats_collector)

        cleanup_worker.start()
        stats_collector.start()
        install_shutdown_handlers(cleanup_worker, stats_collector)
        logger.info("All services initialized successfully")
        logger.info(
            f"Cache server starting on {config.host}:{config.port} "
            f"(max_memory_mb={config.max_memory_mb}, default_ttl={config.default_ttl}, "
            f"eviction_policy={config.eviction_policy}, cleanup_interval_ms={config.cleanup_interval_ms})"
        )
    except Exception:
        logging.getLogger(__name__).exception("Failed to start server")
        sys.exit(1)

    app.run(host=config.host, port=config.port, debug=False, use_reloader=False, threaded=True)


if __name__ == "__main__":
    main()
