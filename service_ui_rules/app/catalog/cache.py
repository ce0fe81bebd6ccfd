"""
Read-through caches for remote catalogs (default effects, flex features).

Both caches keep the last good value after it expires so a failed reload can
fall back to stale data instead of nothing.
"""

import asyncio
import json
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

import redis.asyncio as redis

from shared.logging import get_logger
from shared.metrics import MetricsCollector

Loader = Callable[[], Awaitable[Any]]

DEFAULT_TTL_SECONDS = 3600


@dataclass
class CacheEntry:
    value: Any
    stored_at: float


class ReadThroughCache:
    """In-process TTL cache owned by the host application."""

    def __init__(self, ttl_seconds: float = DEFAULT_TTL_SECONDS,
                 clock: Callable[[], float] = time.monotonic,
                 metrics: Optional[MetricsCollector] = None,
                 name: str = "catalog"):
        self.ttl_seconds = ttl_seconds
        self.logger = get_logger(f"ui_rules.cache.{name}")
        self.metrics = metrics
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def _is_fresh(self, entry: CacheEntry) -> bool:
        return (self._clock() - entry.stored_at) < self.ttl_seconds

    def _record(self, event: str):
        if self.metrics:
            self.metrics.increment_counter("catalog_cache_events_total", event=event)

    async def get(self, key: str) -> Optional[Any]:
        """Fresh value for key, or None."""
        entry = self._entries.get(key)
        if entry is None or not self._is_fresh(entry):
            return None
        return entry.value

    async def get_stale(self, key: str) -> Optional[Any]:
        """Last stored value for key regardless of age."""
        entry = self._entries.get(key)
        return entry.value if entry else None

    async def set(self, key: str, value: Any) -> None:
        self._entries[key] = CacheEntry(value=value, stored_at=self._clock())

    async def invalidate(self, key: Optional[str] = None) -> None:
        if key is None:
            self._entries.clear()
        else:
            self._entries.pop(key, None)

    async def get_or_load(self, key: str, loader: Loader) -> Any:
        """Return the cached value or load, store and return a fresh one.

        When the loader fails the stale value is returned if there is one;
        otherwise the loader's exception propagates.
        """
        cached = await self.get(key)
        if cached is not None:
            self._record("hit")
            return cached

        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            # Another caller may have loaded while we waited
            cached = await self.get(key)
            if cached is not None:
                self._record("hit")
                return cached

            self._record("miss")
            try:
                value = await loader()
            except Exception as e:
                stale = await self.get_stale(key)
                if stale is None:
                    raise
                self.logger.warning("Loader failed, using stale cached value", key=key, error=str(e))
                self._record("stale")
                return stale

            await self.set(key, value)
            return value


class RedisReadThroughCache(ReadThroughCache):
    """Redis-backed variant shared between service replicas."""

    KEY_PREFIX = "ui_rules:catalog:"
    STALE_PREFIX = "ui_rules:catalog:stale:"

    def __init__(self, redis_url: str, ttl_seconds: float = DEFAULT_TTL_SECONDS,
                 metrics: Optional[MetricsCollector] = None,
                 client: Optional[redis.Redis] = None):
        super().__init__(ttl_seconds=ttl_seconds, metrics=metrics, name="redis")
        self.redis_url = redis_url
        self.redis: Optional[redis.Redis] = client

    async def start(self):
        """Connect to Redis."""
        if self.redis is None:
            self.redis = redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                health_check_interval=30
            )
        await self.redis.ping()
        self.logger.info("Redis catalog cache started")

    async def stop(self):
        if self.redis is not None:
            await self.redis.close()
            self.logger.info("Redis catalog cache stopped")

    async def get(self, key: str) -> Optional[Any]:
        try:
            cached = await self.redis.get(f"{self.KEY_PREFIX}{key}")
            return json.loads(cached) if cached else None
        except Exception as e:
            self.logger.error("Error reading cached catalog", key=key, error=str(e))
            return None

    async def get_stale(self, key: str) -> Optional[Any]:
        try:
            cached = await self.redis.get(f"{self.STALE_PREFIX}{key}")
            return json.loads(cached) if cached else None
        except Exception as e:
            self.logger.error("Error reading stale catalog", key=key, error=str(e))
            return None

    async def set(self, key: str, value: Any) -> None:
        payload = json.dumps(value)
        try:
            await self.redis.setex(f"{self.KEY_PREFIX}{key}", max(1, int(self.ttl_seconds)), payload)
            await self.redis.set(f"{self.STALE_PREFIX}{key}", payload)
        except Exception as e:
            self.logger.error("Error caching catalog", key=key, error=str(e))

    async def invalidate(self, key: Optional[str] = None) -> None:
        try:
            if key is not None:
                await self.redis.delete(f"{self.KEY_PREFIX}{key}")
                return
            keys = [k async for k in self.redis.scan_iter(match=f"{self.KEY_PREFIX}*")
                    if not k.startswith(self.STALE_PREFIX)]
            if keys:
                await self.redis.delete(*keys)
        except Exception as e:
            self.logger.error("Error invalidating catalog cache", key=key, error=str(e))


def create_cache(backend: str, ttl_seconds: float, redis_url: Optional[str] = None,
                 metrics: Optional[MetricsCollector] = None) -> ReadThroughCache:
    """Build the cache the configuration asks for."""
    if backend == "redis":
        if not redis_url:
            raise ValueError("redis cache backend requires a redis_url")
        return RedisReadThroughCache(redis_url, ttl_seconds=ttl_seconds, metrics=metrics)
    if backend != "memory":
        raise ValueError(f"Unknown cache backend: {backend}")
    return ReadThroughCache(ttl_seconds=ttl_seconds, metrics=metrics)
