"""Rate-limit counter store.

The protection layer only needs two operations from the store: read a
counter and atomically increment it with an expiry. `LimitsStore` provides
them on top of a `limits` async storage backend, so the same code runs
against in-process memory (`async+memory://`) or a shared Redis
(`async+redis://host:6379`).
"""

from __future__ import annotations

from typing import Protocol

from limits.aio.storage import Storage
from limits.storage import storage_from_string
from loguru import logger


class RateLimitStore(Protocol):
    """Counter store port used by the rate limiter."""

    async def get(self, key: str) -> int:
        """Current count for `key`, 0 when absent or expired."""
        ...

    async def incr(self, key: str, ttl: int) -> int:
        """Atomically add one to `key`, setting its expiry on first write."""
        ...


class LimitsStore:
    """RateLimitStore backed by a `limits` async storage URI."""

    def __init__(self, uri: str = "async+memory://"):
        if not uri.startswith("async+"):
            raise ValueError(f"Rate limit storage must be async, got {uri!r}")
        self.uri = uri
        self._storage: Storage | None = None

    def _get_storage(self) -> Storage:
        """Get or create the underlying storage (lazy, like a connection pool)."""
        if self._storage is None:
            self._storage = storage_from_string(self.uri)
            logger.info("Rate limit store created ({scheme})", scheme=self.uri.split("://")[0])
        return self._storage

    async def get(self, key: str) -> int:
        return int(await self._get_storage().get(key))

    async def incr(self, key: str, ttl: int) -> int:
        return int(await self._get_storage().incr(key, ttl))

    async def check_health(self) -> bool:
        """Ping the backend. Returns False instead of raising."""
        try:
            return bool(await self._get_storage().check())
        except Exception as e:
            logger.error("Rate limit store health check failed: {err}", err=str(e))
            return False

    async def close(self) -> None:
        """Drop the storage handle; the next call reconnects."""
        if self._storage is not None:
            self._storage = None
            logger.info("Rate limit store closed")
