"""
Monitoring module for the stake history cache.

This module exposes Prometheus metrics for the read-through cache and the
upstream ledger fetches that fill it.
"""
import time
from typing import Any, Dict

import structlog
from prometheus_client import Counter, Gauge, Histogram

from .core import TTLCache

logger = structlog.get_logger()

# Define Prometheus metrics
CACHE_HITS = Counter('stake_cache_hits_total', 'Total number of cache hits', ['cache_type'])
CACHE_MISSES = Counter('stake_cache_misses_total', 'Total number of cache misses', ['cache_type'])
CACHE_SIZE = Gauge('stake_cache_size', 'Current number of items in cache', ['cache_type'])
UPSTREAM_LATENCY = Histogram('stake_upstream_fetch_seconds', 'Upstream ledger fetch latency in seconds',
                             ['operation'])
UPSTREAM_FAILURES = Counter('stake_upstream_failures_total', 'Total number of failed upstream fetches',
                            ['operation'])

# Cache types for metrics
HISTORY_CACHE = 'stake_history'


class CacheMonitor:
    """
    Tracks hit/miss and upstream metrics for one cache instance.
    """

    def __init__(self, cache: TTLCache, cache_type: str = HISTORY_CACHE):
        self.start_time = time.time()
        self.cache = cache
        self.cache_type = cache_type

    def record_hit(self) -> None:
        CACHE_HITS.labels(cache_type=self.cache_type).inc()

    def record_miss(self) -> None:
        CACHE_MISSES.labels(cache_type=self.cache_type).inc()

    def update_size(self) -> None:
        CACHE_SIZE.labels(cache_type=self.cache_type).set(len(self.cache))

    def record_fetch(self, operation: str, latency: float) -> None:
        """
        Record a successful upstream fetch.

        Args:
            operation: Upstream operation (history, total)
            latency: Fetch latency in seconds
        """
        UPSTREAM_LATENCY.labels(operation=operation).observe(latency)

    def record_fetch_failure(self, operation: str) -> None:
        UPSTREAM_FAILURES.labels(operation=operation).inc()

    def get_metrics_report(self) -> Dict[str, Any]:
        """
        Generate a metrics report from the cache's own statistics.

        Returns:
            Dictionary with cache metrics
        """
        cache_stats = self.cache.get_stats()
        return {
            'cache_type': self.cache_type,
            'uptime_seconds': time.time() - self.start_time,
            'cache_size': cache_stats['size'],
            'max_cache_size': cache_stats['max_size'],
            'total_hits': cache_stats['hits'],
            'total_misses': cache_stats['misses'],
            'hit_ratio': cache_stats['hit_ratio'],
        }

    def log_metrics(self) -> None:
        """Log current cache metrics."""
        report = self.get_metrics_report()
        logger.info("cache_metrics_report", **report)
