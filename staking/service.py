"""
Read-through access to stake history.

``StakeHistoryService`` is the only writer of the history cache. On a miss
it fetches the full history for an address from the ledger, sorts it once,
caches the sorted sequence and then serves pages out of it. Concurrent
misses for the same address share one upstream fetch.
"""
import asyncio
import time
from typing import Dict, Optional, Tuple

import structlog

from cache.core import TTLCache
from cache.monitoring import CacheMonitor
from error_handling.errors import UpstreamCancelledError, UpstreamFailureError

from .ledger import LedgerQuery
from .models import PageRequest, PageResult, PaymentRecord, normalize_address
from .ordering import sort_by_time_desc
from .pagination import paginate

logger = structlog.get_logger()

History = Tuple[PaymentRecord, ...]

# Default history TTL: 6 minutes
HISTORY_CACHE_TTL = 360


class _Flight:
    """An upstream fetch in progress and the number of callers awaiting it."""

    __slots__ = ("task", "waiters", "abandoned")

    def __init__(self, task: "asyncio.Task[History]"):
        self.task = task
        self.waiters = 0
        self.abandoned = False

    @property
    def joinable(self) -> bool:
        return not self.abandoned and not self.task.done()


class StakeHistoryService:
    """
    Serves paginated stake history backed by a TTL cache.

    Args:
        ledger: Upstream source of stake records
        cache: Cache holding the sorted history per normalized address
        history_ttl: Seconds a fetched history stays in the cache
        upstream_timeout: Default deadline in seconds for callers waiting on
            the ledger, or None for no deadline
        monitor: Optional metrics recorder for the cache
    """

    def __init__(
        self,
        ledger: LedgerQuery,
        cache: TTLCache[History],
        history_ttl: float = HISTORY_CACHE_TTL,
        upstream_timeout: Optional[float] = None,
        monitor: Optional[CacheMonitor] = None,
    ):
        self._ledger = ledger
        self._cache = cache
        self._history_ttl = history_ttl
        self._upstream_timeout = upstream_timeout
        self._monitor = monitor
        self._inflight: Dict[str, _Flight] = {}

    async def get_page(
        self,
        address: str,
        page: int,
        page_size: int,
        timeout: Optional[float] = None,
    ) -> PageResult:
        """
        Get one page of an address's stake history, newest first.

        Args:
            address: Wallet address (any hex case)
            page: 1-based page number
            page_size: Records per page
            timeout: Deadline for this call in seconds; defaults to the
                service's upstream timeout

        Returns:
            A ``PageResult`` of kind SUCCESS, NO_DATA or PAGE_OUT_OF_RANGE

        Raises:
            InvalidParameterError: If page, page size or address is invalid
            UpstreamFailureError: If the ledger could not be queried
        """
        request = PageRequest(address=address, page=page, page_size=page_size)
        history = await self._get_history(request.address, timeout)
        result = paginate(history, request)
        logger.debug("stake_history_page_served",
                     address=request.address,
                     page=page,
                     page_size=page_size,
                     kind=result.kind.value)
        return result

    async def get_total(self, address: str, timeout: Optional[float] = None) -> int:
        """
        Get the total amount staked by an address straight from the ledger.

        Raises:
            InvalidParameterError: If the address is invalid
            UpstreamFailureError: If the ledger could not be queried
        """
        key = normalize_address(address)
        started = time.perf_counter()
        try:
            total = await asyncio.wait_for(self._ledger.fetch_total(key), self._deadline(timeout))
        except asyncio.TimeoutError as e:
            self._record_failure("total")
            raise UpstreamCancelledError("Timed out waiting for the ledger") from e
        except Exception as e:
            self._record_failure("total")
            logger.error("stake_total_fetch_failed", address=key, error=str(e))
            raise UpstreamFailureError(f"Failed to fetch stake total: {e}") from e

        if self._monitor:
            self._monitor.record_fetch("total", time.perf_counter() - started)
        return total

    def invalidate(self, address: str) -> bool:
        """Drop the cached history of an address."""
        key = normalize_address(address)
        removed = self._cache.delete(key)
        if self._monitor:
            self._monitor.update_size()
        logger.info("stake_history_invalidated", address=key, removed=removed)
        return removed

    async def _get_history(self, key: str, timeout: Optional[float]) -> History:
        history, found = self._cache.get(key)
        if found:
            if self._monitor:
                self._monitor.record_hit()
            logger.debug("stake_history_cache_hit", address=key)
            return history

        if self._monitor:
            self._monitor.record_miss()

        flight = self._inflight.get(key)
        if flight is None or not flight.joinable:
            flight = _Flight(asyncio.ensure_future(self._fetch_and_store(key)))
            self._inflight[key] = flight
            flight.task.add_done_callback(lambda _task: self._forget(key, flight))
            logger.debug("stake_history_cache_miss", address=key)
        else:
            logger.debug("stake_history_fetch_joined", address=key, waiters=flight.waiters)

        flight.waiters += 1
        try:
            return await asyncio.wait_for(asyncio.shield(flight.task), self._deadline(timeout))
        except asyncio.TimeoutError as e:
            logger.warning("stake_history_fetch_timeout", address=key, timeout=self._deadline(timeout))
            raise UpstreamCancelledError("Timed out waiting for the ledger") from e
        finally:
            self._release(key, flight)

    async def _fetch_and_store(self, key: str) -> History:
        started = time.perf_counter()
        try:
            fetched = await self._ledger.fetch_history(key)
        except Exception as e:
            self._record_failure("history")
            logger.error("stake_history_fetch_failed", address=key, error=str(e))
            raise UpstreamFailureError(f"Failed to fetch stake history: {e}") from e

        history = tuple(sort_by_time_desc(fetched))
        self._cache.set(key, history, self._history_ttl)

        if self._monitor:
            self._monitor.record_fetch("history", time.perf_counter() - started)
            self._monitor.update_size()
        logger.info("stake_history_cached", address=key, records=len(history), ttl=self._history_ttl)
        return history

    def _release(self, key: str, flight: _Flight) -> None:
        # The last caller to give up takes the fetch down with it, so an
        # abandoned fetch never populates the cache.
        flight.waiters -= 1
        if flight.waiters == 0 and not flight.task.done():
            flight.abandoned = True
            flight.task.cancel()
            logger.info("stake_history_fetch_abandoned", address=key)

    def _forget(self, key: str, flight: _Flight) -> None:
        if self._inflight.get(key) is flight:
            del self._inflight[key]

    def _record_failure(self, operation: str) -> None:
        if self._monitor:
            self._monitor.record_fetch_failure(operation)

    def _deadline(self, timeout: Optional[float]) -> Optional[float]:
        return timeout if timeout is not None else self._upstream_timeout
