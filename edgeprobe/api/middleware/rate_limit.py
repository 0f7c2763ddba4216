"""Per-client, per-path fixed-window rate limiting.

Counters live in the external store under `rl:{ip}:{path}:{bucket}` where
`bucket = floor(now_ms / window_ms)`, so every minute starts a fresh key and
the store's TTL takes care of cleanup.

Two write strategies:

- atomic (default): increment-with-expiry first, reject when the returned
  count exceeds the limit. No race window.
- deferred: read the count, compare, and schedule the increment as a
  detached task that completes after the response is on its way.
  Concurrent requests in the same bucket can all read the same count and
  pass, so the limit can be briefly exceeded.

Store failures never block a request unless `fail_open` is False.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Callable

from loguru import logger

from lib.circuit_breaker import CircuitBreaker
from store import RateLimitStore


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    count: int | None  # None when the store could not be consulted
    key: str

    @property
    def store_available(self) -> bool:
        return self.count is not None


class RateLimiter:
    """Fixed-window counter in front of a RateLimitStore."""

    def __init__(
        self,
        store: RateLimitStore,
        limit: int = 30,
        window: int = 60,
        deferred_write: bool = False,
        breaker: CircuitBreaker | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.limit = limit
        self.window = window
        self.deferred_write = deferred_write
        self.breaker = breaker or CircuitBreaker("rate-limit-store")
        self._clock = clock
        self._pending: set[asyncio.Task] = set()

    def bucket(self) -> int:
        return int(self._clock() * 1000) // (self.window * 1000)

    def key_for(self, ip: str, path: str) -> str:
        return f"rl:{ip}:{path}:{self.bucket()}"

    async def hit(self, ip: str, path: str) -> RateLimitResult:
        """Count one request from `ip` on `path` and decide whether it may pass."""
        key = self.key_for(ip, path)

        if not self.deferred_write:
            count = await self.breaker.call(self.store.incr(key, self.window), fallback=None)
            if count is None:
                return RateLimitResult(allowed=True, count=None, key=key)
            return RateLimitResult(allowed=count <= self.limit, count=count, key=key)

        count = await self.breaker.call(self.store.get(key), fallback=None)
        if count is None:
            return RateLimitResult(allowed=True, count=None, key=key)
        if count >= self.limit:
            return RateLimitResult(allowed=False, count=count, key=key)
        self._spawn(self._write(key))
        return RateLimitResult(allowed=True, count=count + 1, key=key)

    async def _write(self, key: str) -> None:
        await self.breaker.call(self.store.incr(key, self.window), fallback=None)

    def _spawn(self, coro) -> None:
        task = asyncio.create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for deferred counter writes to land."""
        if not self._pending:
            return
        logger.info("Draining {n} pending rate limit writes", n=len(self._pending))
        done, pending = await asyncio.wait(list(self._pending), timeout=timeout)
        if pending:
            logger.warning("{n} rate limit writes didn't finish, cancelling", n=len(pending))
            for t in pending:
                t.cancel()
