"""
Shared fixtures for cache tests.
"""
import asyncio

import pytest


class FakeClock:
    """Manually advanced clock in seconds."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


async def _settle(cache, key, rounds: int = 200):
    """Yield to the loop until no producer call is in flight for key."""
    for _ in range(rounds):
        if not cache.is_in_flight(key):
            break
        await asyncio.sleep(0)
    # Let done-callbacks scheduled by the finished task run
    await asyncio.sleep(0)
    await asyncio.sleep(0)


@pytest.fixture
def settle():
    return _settle
