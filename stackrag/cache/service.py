"""
Cache-aside service in front of embeddings and generated answers.

The backend is best-effort: any backend failure is logged and treated as a
miss (reads) or a no-op (writes). Callers never see a cache exception.
"""

import logging
import time
from collections.abc import Callable
from datetime import timedelta
from typing import Protocol

import redis.asyncio as redis

from ..core.config import Settings

logger = logging.getLogger(__name__)


class CacheBackend(Protocol):
    """The subset of the redis client API the cache service relies on."""

    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str, ex: int | None = None) -> object: ...

    async def exists(self, *keys: str) -> int: ...

    async def delete(self, *keys: str) -> int: ...


class InMemoryBackend:
    """
    Process-local backend with per-key expiry.

    Used when ``CACHE_BACKEND=memory`` (single-process deployments and local
    development). ``clock`` returns seconds and is injectable for tests.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._data: dict[str, tuple[str, float | None]] = {}

    def _live(self, key: str) -> str | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and self._clock() >= expires_at:
            del self._data[key]
            return None
        return value

    async def get(self, key: str) -> str | None:
        return self._live(key)

    def _sweep(self, now: float) -> None:
        expired = [key for key, (_, expires_at) in self._data.items() if expires_at is not None and now >= expires_at]
        for key in expired:
            del self._data[key]

    async def set(self, key: str, value: str, ex: int | None = None) -> bool:
        now = self._clock()
        self._sweep(now)
        expires_at = now + ex if ex else None
        self._data[key] = (value, expires_at)
        return True

    async def exists(self, *keys: str) -> int:
        return sum(1 for key in keys if self._live(key) is not None)

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self._data.pop(key, None) is not None:
                removed += 1
        return removed


class CacheService:
    """Best-effort string cache with TTLs."""

    def __init__(self, backend: CacheBackend, enabled: bool = True, default_ttl: timedelta = timedelta(hours=24)):
        self.backend = backend
        self.enabled = enabled
        self.default_ttl = default_ttl
        logger.info(f"CacheService initialized (enabled={enabled}, ttl={default_ttl})")

    async def get(self, key: str) -> str | None:
        """Return the cached value, or None on miss, when disabled, or on backend failure."""
        if not self.enabled:
            logger.debug(f"Cache disabled, skipping GET for key: {key}")
            return None

        try:
            value = await self.backend.get(key)
            if isinstance(value, bytes):
                value = value.decode("utf-8")
        except Exception as e:
            logger.error(f"Error getting cache value for key {key}: {e}")
            return None

        if value is None:
            logger.debug(f"Cache MISS for key: {key}")
            return None

        logger.debug(f"Cache HIT for key: {key}")
        return value

    async def set(self, key: str, value: str, ttl: timedelta | None = None) -> bool:
        """Store ``value`` under ``key``. Returns False when the write was skipped or failed."""
        if not self.enabled:
            logger.debug(f"Cache disabled, skipping SET for key: {key}")
            return False

        ttl = ttl or self.default_ttl
        seconds = max(1, int(ttl.total_seconds()))

        try:
            await self.backend.set(key, value, ex=seconds)
        except Exception as e:
            logger.error(f"Error setting cache value for key {key}: {e}")
            return False

        logger.debug(f"Cache SET for key: {key}, TTL: {seconds}s")
        return True

    async def exists(self, key: str) -> bool:
        if not self.enabled:
            return False

        try:
            return bool(await self.backend.exists(key))
        except Exception as e:
            logger.error(f"Error checking if key exists {key}: {e}")
            return False

    async def delete(self, key: str) -> None:
        if not self.enabled:
            return

        try:
            await self.backend.delete(key)
            logger.debug(f"Cache DELETE for key: {key}")
        except Exception as e:
            logger.error(f"Error deleting cache key {key}: {e}")


def build_cache(settings: Settings) -> CacheService:
    """Create the cache service described by the settings."""
    if settings.CACHE_BACKEND == "memory":
        backend: CacheBackend = InMemoryBackend()
    else:
        # No connection is opened until the first command
        backend = redis.from_url(settings.REDIS_URL, decode_responses=True)

    return CacheService(
        backend,
        enabled=settings.CACHE_ENABLED,
        default_ttl=timedelta(hours=settings.CACHE_TTL_HOURS),
    )
