"""
Pacing policies for calls to rate-limited providers.

Loops call ``await throttle.wait()`` between batches or chunks; the policy
decides how long that takes.
"""

import asyncio
import time


class Throttle:
    async def wait(self) -> None:
        raise NotImplementedError


class NoThrottle(Throttle):
    async def wait(self) -> None:
        return None


class FixedDelayThrottle(Throttle):
    """Sleep a constant delay on every call."""

    def __init__(self, delay: float):
        self.delay = delay

    async def wait(self) -> None:
        if self.delay > 0:
            await asyncio.sleep(self.delay)


class TokenBucketThrottle(Throttle):
    """
    Allow bursts of up to ``capacity`` calls, refilling at ``rate`` tokens
    per second. ``wait`` sleeps only when the bucket is empty.
    """

    def __init__(self, rate: float, capacity: int = 1, clock=time.monotonic):
        if rate <= 0:
            raise ValueError("rate must be positive")
        self.rate = rate
        self.capacity = capacity
        self.tokens = float(capacity)
        self.clock = clock
        self.updated = clock()
        self._lock = asyncio.Lock()

    def _refill(self) -> None:
        now = self.clock()
        self.tokens = min(self.capacity, self.tokens + (now - self.updated) * self.rate)
        self.updated = now

    async def wait(self) -> None:
        async with self._lock:
            self._refill()
            if self.tokens < 1:
                await asyncio.sleep((1 - self.tokens) / self.rate)
                self._refill()
            self.tokens -= 1
