# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Cache infrastructure.

Example:
    from src.infrastructure.cache import RedisMasteryCache, get_redis, init_redis

    await init_redis(settings)
    cache = RedisMasteryCache(get_redis(), default_ttl_seconds=60)

    # Cleanup at shutdown
    await close_redis()
"""

from src.infrastructure.cache.mastery_cache import (
    InMemoryTTLCache,
    MasteryCache,
    NullCache,
    RedisMasteryCache,
)
from src.infrastructure.cache.redis_client import (
    RedisClient,
    RedisError,
    close_redis,
    get_redis,
    init_redis,
)

__all__ = [
    "MasteryCache",
    "NullCache",
    "InMemoryTTLCache",
    "RedisMasteryCache",
    "RedisClient",
    "RedisError",
    "close_redis",
    "get_redis",
    "init_redis",
]
