# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Read cache abstraction for computed mastery standings.

The partition engine receives a cache instance instead of reaching for
module-level state, so tests can pass NullCache or an InMemoryTTLCache
driven by a fake clock. Values must be JSON-serializable.

Implementations:
- NullCache: never stores anything
- InMemoryTTLCache: per-process dict with TTL, injectable clock
- RedisMasteryCache: shared cache on top of RedisClient

A stale read for up to the TTL is accepted behaviour.
"""

import time
from abc import ABC, abstractmethod
from typing import Any, Callable

from src.infrastructure.cache.redis_client import RedisClient, RedisError
from src.utils.logging import get_logger

logger = get_logger(__name__)


class MasteryCache(ABC):
    """Abstract key-value cache with per-entry TTL."""

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Return the cached value or None when missing or expired."""
        ...

    @abstractmethod
    async def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        """Store a value, optionally expiring after ttl_seconds."""
        ...

    @abstractmethod
    async def invalidate(self, *keys: str) -> None:
        """Remove the given keys."""
        ...

    @abstractmethod
    async def invalidate_prefix(self, prefix: str) -> None:
        """Remove every key starting with prefix."""
        ...


class NullCache(MasteryCache):
    """Cache that stores nothing."""

    async def get(self, key: str) -> Any | None:
        return None

    async def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        return None

    async def invalidate(self, *keys: str) -> None:
        return None

    async def invalidate_prefix(self, prefix: str) -> None:
        return None


class InMemoryTTLCache(MasteryCache):
    """Process-local TTL cache.

    Attributes:
        default_ttl_seconds: TTL applied when set() is called without one.
    """

    def __init__(
        self,
        default_ttl_seconds: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the cache.

        Args:
            default_ttl_seconds: TTL for entries stored without an explicit one.
                None means entries never expire.
            clock: Monotonic clock in seconds.
        """
        self.default_ttl_seconds = default_ttl_seconds
        self._clock = clock
        self._entries: dict[str, tuple[Any, float | None]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    async def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            return None

        value, expires_at = entry
        if expires_at is not None and self._clock() >= expires_at:
            del self._entries[key]
            return None
        return value

    async def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        ttl = ttl_seconds if ttl_seconds is not None else self.default_ttl_seconds
        expires_at = self._clock() + ttl if ttl is not None else None
        self._entries[key] = (value, expires_at)

    async def invalidate(self, *keys: str) -> None:
        for key in keys:
            self._entries.pop(key, None)

    async def invalidate_prefix(self, prefix: str) -> None:
        for key in [k for k in self._entries if k.startswith(prefix)]:
            del self._entries[key]


class RedisMasteryCache(MasteryCache):
    """Cache backed by Redis.

    Redis failures are logged and treated as cache misses; the cache never
    decides whether a computation succeeds.
    """

    def __init__(self, client: RedisClient, default_ttl_seconds: int | None = None) -> None:
        """Initialize the cache.

        Args:
            client: Connected Redis client.
            default_ttl_seconds: TTL for entries stored without an explicit one.
        """
        self._client = client
        self.default_ttl_seconds = default_ttl_seconds

    async def get(self, key: str) -> Any | None:
        try:
            return await self._client.get(key)
        except RedisError as e:
            logger.warning("Cache read failed", key=key, error=str(e))
            return None

    async def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        ttl = ttl_seconds if ttl_seconds is not None else self.default_ttl_seconds
        try:
            await self._client.set(key, value, expire_seconds=ttl)
        except RedisError as e:
            logger.warning("Cache write failed", key=key, error=str(e))

    async def invalidate(self, *keys: str) -> None:
        try:
            await self._client.delete(*keys)
        except RedisError as e:
            logger.warning("Cache invalidation failed", keys=list(keys), error=str(e))

    async def invalidate_prefix(self, prefix: str) -> None:
        try:
            await self._client.delete_pattern(f"{prefix}*")
        except RedisError as e:
            logger.warning("Cache invalidation failed", prefix=prefix, error=str(e))
