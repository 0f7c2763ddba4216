"""Lightweight async circuit breaker.

Guards calls to the rate-limit store. After `failure_threshold` consecutive
failures the breaker opens and calls are short-circuited to the fallback
until `recovery_timeout` has elapsed; the next call is then let through as
a half-open probe. Three states: closed (normal), open (failing, use
fallback), half_open (testing recovery).
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Awaitable, Callable

from loguru import logger


class CircuitBreaker:
    """Async circuit breaker with an optional per-call timeout."""

    def __init__(
        self,
        name: str,
        failure_threshold: int = 3,
        recovery_timeout: float = 30.0,
        call_timeout: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        self.failure_count = 0
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.call_timeout = call_timeout
        self.state = "closed"  # closed | open | half_open
        self.last_failure_time = 0.0
        self._clock = clock

    async def call(self, coro: Awaitable[Any], fallback: Any = None) -> Any:
        """Execute a coroutine with circuit breaker protection.

        Args:
            coro: Awaitable to execute.
            fallback: Value or callable to return when circuit is open or call fails.
        """
        if self.state == "open":
            if self._clock() - self.last_failure_time > self.recovery_timeout:
                self.state = "half_open"
                logger.info("[CB:{name}] Half-open, testing recovery", name=self.name)
            else:
                logger.debug("[CB:{name}] Circuit open, using fallback", name=self.name)
                # Close the unawaited coroutine to avoid RuntimeWarning
                if hasattr(coro, "close"):
                    coro.close()
                return fallback() if callable(fallback) else fallback

        try:
            if self.call_timeout is None:
                result = await coro
            else:
                result = await asyncio.wait_for(coro, timeout=self.call_timeout)
        except Exception as e:
            self.failure_count += 1
            self.last_failure_time = self._clock()
            if self.state == "half_open" or self.failure_count >= self.failure_threshold:
                self.state = "open"
                logger.error(
                    "[CB:{name}] Circuit opened after {n} failures: {err}",
                    name=self.name,
                    n=self.failure_count,
                    err=str(e),
                )
            else:
                logger.warning(
                    "[CB:{name}] Failure {n}/{t}: {err}",
                    name=self.name,
                    n=self.failure_count,
                    t=self.failure_threshold,
                    err=str(e),
                )
            return fallback() if callable(fallback) else fallback

        if self.state == "half_open":
            logger.info("[CB:{name}] Circuit recovered, closed", name=self.name)
        self.state = "closed"
        self.failure_count = 0
        return result
