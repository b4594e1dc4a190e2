"""Key-value storage tiers: in-process (short-lived) and Redis (durable)."""

from __future__ import annotations

import abc
import logging
import math
import time
from typing import TYPE_CHECKING

import redis.asyncio as redis

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)


class KeyValueStore(abc.ABC):
    """String-valued store with optional per-key expiry."""

    name: str = "store"

    @abc.abstractmethod
    async def get(self, key: str) -> str | None:
        """Return the stored value or None."""

    @abc.abstractmethod
    async def set(self, key: str, value: str, ttl: float | None = None) -> None:
        """Store *value*; *ttl* overrides the store's default lifetime."""

    @abc.abstractmethod
    async def delete(self, *keys: str) -> int:
        """Remove *keys*; returns how many existed."""

    @abc.abstractmethod
    async def keys(self, prefix: str = "") -> list[str]:
        """List live keys starting with *prefix*."""

    async def close(self) -> None:
        """Release connections, if any."""


class MemoryStore(KeyValueStore):
    """Per-process store; the session tier of the fare cache."""

    def __init__(
        self,
        *,
        ttl: float | None = None,
        name: str = "memory",
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.name = name
        self._ttl = ttl
        self._clock = clock
        self._data: dict[str, tuple[str, float | None]] = {}

    def _live(self, key: str) -> str | None:
        item = self._data.get(key)
        if item is None:
            return None
        value, expires_at = item
        if expires_at is not None and self._clock() >= expires_at:
            del self._data[key]
            return None
        return value

    async def get(self, key: str) -> str | None:
        return self._live(key)

    async def set(self, key: str, value: str, ttl: float | None = None) -> None:
        lifetime = ttl if ttl is not None else self._ttl
        expires_at = self._clock() + lifetime if lifetime is not None else None
        self._data[key] = (value, expires_at)

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self._live(key) is not None:
                removed += 1
            self._data.pop(key, None)
        return removed

    async def keys(self, prefix: str = "") -> list[str]:
        return [k for k in list(self._data) if k.startswith(prefix) and self._live(k)]


class RedisStore(KeyValueStore):
    """Durable tier backed by Redis.

    Redis outages degrade to cache misses (logged) rather than failing the
    fare lookup.
    """

    def __init__(
        self,
        client: redis.Redis,
        *,
        namespace: str = "",
        ttl: float | None = None,
        name: str = "redis",
    ) -> None:
        self.name = name
        self._redis = client
        self._namespace = namespace
        self._ttl = ttl

    @classmethod
    def from_url(
        cls, url: str, *, namespace: str = "", ttl: float | None = None
    ) -> RedisStore:
        client = redis.from_url(url, decode_responses=True)
        logger.info("Redis fare store initialised: %s", url)
        return cls(client, namespace=namespace, ttl=ttl)

    def _key(self, key: str) -> str:
        return f"{self._namespace}{key}"

    async def get(self, key: str) -> str | None:
        try:
            return await self._redis.get(self._key(key))
        except redis.RedisError as exc:
            logger.warning("Redis GET %s failed: %s", key, exc)
            return None

    async def set(self, key: str, value: str, ttl: float | None = None) -> None:
        lifetime = ttl if ttl is not None else self._ttl
        expiry = math.ceil(lifetime) if lifetime is not None else None
        try:
            await self._redis.set(self._key(key), value, ex=expiry)
        except redis.RedisError as exc:
            logger.warning("Redis SET %s failed: %s", key, exc)

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        try:
            return await self._redis.delete(*(self._key(k) for k in keys))
        except redis.RedisError as exc:
            logger.warning("Redis DEL of %d keys failed: %s", len(keys), exc)
            return 0

    async def keys(self, prefix: str = "") -> list[str]:
        offset = len(self._namespace)
        try:
            return [
                key[offset:]
                async for key in self._redis.scan_iter(match=f"{self._key(prefix)}*")
            ]
        except redis.RedisError as exc:
            logger.warning("Redis SCAN %s* failed: %s", prefix, exc)
            return []

    async def close(self) -> None:
        """Gracefully close the Redis connection pool."""
        await self._redis.aclose()
        logger.info("Redis fare store closed")
