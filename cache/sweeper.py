"""Periodic removal of expired cache entries."""
import asyncio
from typing import Optional

import structlog

from .core import TTLCache
from .monitoring import CacheMonitor

logger = structlog.get_logger()


class CacheSweeper:
    """Runs ``TTLCache.sweep`` on a fixed interval in the background."""

    def __init__(self, cache: TTLCache, interval: float, monitor: Optional[CacheMonitor] = None):
        self.cache = cache
        self.interval = interval
        self.monitor = monitor
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start sweeping. Must be called from a running event loop."""
        if self.is_running or self.interval <= 0:
            return
        self._task = asyncio.create_task(self._sweep_loop())
        logger.info("cache_sweeper_started", interval=self.interval)

    async def stop(self) -> None:
        """Stop sweeping and wait for the loop to exit."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("cache_sweeper_stopped")

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            removed = self.cache.sweep()
            if self.monitor:
                self.monitor.update_size()
            if removed:
                logger.info("cache_sweep_completed", removed=removed, size=len(self.cache))
