# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Service wiring and lifecycle for the mastery engine.

Startup configures logging, opens the database pool and connects Redis,
then builds the mastery services over the SQL stores. Redis is optional:
when it cannot be reached the standings cache falls back to an
in-process TTL cache. Shutdown closes Redis and the database pool.

Usage:
    from src.runtime import mastery_runtime

    async with mastery_runtime() as services:
        record = await services.calculator.update_from_assessment_result(
            student_id, result
        )
        board = await services.partitions.get_partition(PartitionQuery(kind="global"))
"""

from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncGenerator

from src.core.config.settings import Settings, get_settings
from src.domains.mastery.analytics import MasteryAnalyticsService
from src.domains.mastery.calculator import MasteryCalculator
from src.domains.mastery.partition import MasteryPartitionEngine
from src.domains.mastery.snapshots import MasterySnapshotService
from src.domains.mastery.stores import (
    SqlAssessmentHistory,
    SqlCurriculumLookup,
    SqlMasteryRecordStore,
    SqlRosterProvider,
    SqlSnapshotStore,
)
from src.infrastructure.cache.mastery_cache import (
    InMemoryTTLCache,
    MasteryCache,
    RedisMasteryCache,
)
from src.infrastructure.cache.redis_client import (
    RedisError,
    close_redis,
    get_redis,
    init_redis,
)
from src.infrastructure.database.connection import (
    close_database,
    get_sessionmaker,
    init_database,
)
from src.utils.logging import get_logger, setup_logging

logger = get_logger(__name__)


@dataclass
class MasteryServices:
    """Mastery services sharing one sessionmaker and one standings cache."""

    calculator: MasteryCalculator
    analytics: MasteryAnalyticsService
    partitions: MasteryPartitionEngine
    snapshots: MasterySnapshotService
    cache: MasteryCache


async def _connect_cache(settings: Settings, use_redis: bool) -> MasteryCache:
    ttl = settings.mastery.partition_cache_ttl_seconds
    if not use_redis:
        return InMemoryTTLCache(default_ttl_seconds=ttl)

    try:
        await init_redis(settings)
    except RedisError as e:
        logger.warning("Redis unavailable, using in-process cache", error=str(e))
        await close_redis()
        return InMemoryTTLCache(default_ttl_seconds=ttl)

    logger.info("Redis connection initialized")
    return RedisMasteryCache(get_redis(), default_ttl_seconds=ttl)


def build_services(settings: Settings, cache: MasteryCache) -> MasteryServices:
    """Build the mastery services over the initialized database."""
    sessionmaker = get_sessionmaker()
    records = SqlMasteryRecordStore(sessionmaker)
    roster = SqlRosterProvider(sessionmaker)

    partitions = MasteryPartitionEngine(
        store=records,
        roster=roster,
        cache=cache,
        settings=settings.mastery,
    )
    return MasteryServices(
        calculator=MasteryCalculator(
            store=records,
            curriculum=SqlCurriculumLookup(sessionmaker),
            roster=roster,
            settings=settings.mastery,
            cache=cache,
        ),
        analytics=MasteryAnalyticsService(
            store=records,
            roster=roster,
            history=SqlAssessmentHistory(sessionmaker),
            settings=settings.mastery,
        ),
        partitions=partitions,
        snapshots=MasterySnapshotService(
            engine=partitions,
            store=SqlSnapshotStore(sessionmaker),
            settings=settings.mastery,
        ),
        cache=cache,
    )


@asynccontextmanager
async def mastery_runtime(
    settings: Settings | None = None,
    use_redis: bool = True,
) -> AsyncGenerator[MasteryServices, None]:
    """Start the mastery engine and yield its services.

    Args:
        settings: Application settings; defaults to get_settings().
        use_redis: Connect Redis for the standings cache.

    Raises:
        DatabaseError: If the database pool cannot be created.
    """
    settings = settings or get_settings()
    setup_logging(settings)
    logger.info(
        "Starting mastery engine",
        environment=settings.environment,
        debug=settings.debug,
    )

    await init_database(settings)
    logger.info("Database connection initialized")

    try:
        cache = await _connect_cache(settings, use_redis)
        yield build_services(settings, cache)
    finally:
        if use_redis:
            await close_redis()
        await close_database()
        logger.info("Mastery engine stopped")
