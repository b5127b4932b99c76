"""Shared test fixtures."""
import asyncio
import os
import sys

import pytest

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from cache.core import TTLCache
from staking.models import PaymentRecord

ADDRESS = "0x" + "ab" * 20
OTHER_ADDRESS = "0x" + "cd" * 20


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeLedger:
    """In-memory Ledger Query that counts calls and can be held or failed."""

    def __init__(self, records=None, total=0, error=None):
        self.records = list(records or [])
        self.total = total
        self.error = error
        self.gate = None
        self.history_calls = 0
        self.total_calls = 0
        self.cancelled = False

    async def fetch_history(self, address):
        self.history_calls += 1
        if self.gate is not None:
            try:
                await self.gate.wait()
            except asyncio.CancelledError:
                self.cancelled = True
                raise
        if self.error is not None:
            raise self.error
        return list(self.records)

    async def fetch_total(self, address):
        self.total_calls += 1
        if self.error is not None:
            raise self.error
        return self.total


def make_records(times, sender="0x" + "11" * 20):
    return [PaymentRecord(sender=sender, amount=(i + 1) * 10**18, time=t) for i, t in enumerate(times)]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    """Create a test cache instance."""
    return TTLCache(default_ttl=60, max_size=100, clock=clock)


@pytest.fixture
def ledger():
    return FakeLedger(records=make_records(range(25)), total=12345)
