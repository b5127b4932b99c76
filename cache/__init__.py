"""
Stake History Caching Module

This module provides the in-memory TTL cache that sits between the HTTP
layer and the upstream ledger, together with its Prometheus monitoring and
a background sweeper for expired entries.
"""

from .core import CacheEntry, TTLCache
from .monitoring import CacheMonitor, HISTORY_CACHE
from .sweeper import CacheSweeper

__all__ = [
    'CacheEntry',
    'TTLCache',
    'CacheMonitor',
    'HISTORY_CACHE',
    'CacheSweeper',
]
