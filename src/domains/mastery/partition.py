# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Mastery partition engine (leaderboards).

Groups mastery records by a partition (global, subject, topic, class or
cognitive level), scores each student, ranks them and returns a bounded
top slice plus the requester's own rank when it falls outside the slice.

Ranking:
- A student's score is the mean overall mastery of their records in the
  partition, or the mean of one level for cognitive_level partitions,
  rounded to one decimal.
- Students are ordered by score descending, then student_id ascending.
- Ranks use competition ranking: 1 + number of students with a strictly
  greater score, so tied students share a rank.

The full ranked standings of a partition are cached; slicing, requester
lookup and display names are resolved per call.

Usage:
    engine = MasteryPartitionEngine(store=store, roster=roster, cache=cache)
    result = await engine.get_partition(
        PartitionQuery(kind="subject", scope_id=subject_id, limit=10,
                       requesting_user_id=student_id)
    )
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Sequence

from src.core.config.settings import MasterySettings, get_settings
from src.domains.mastery.aggregation import group_by_student, mean, mean_levels
from src.domains.mastery.exceptions import MasteryError, ValidationError
from src.domains.mastery.levels import LevelScores, MasteryLevel, get_mastery_level
from src.domains.mastery.ports import MasteryRecordStore, RosterProvider
from src.domains.mastery.queries import (
    SCOPED_KINDS,
    PartitionKind,
    PartitionQuery,
    standings_cache_key,
)
from src.domains.mastery.records import RecordFilter
from src.infrastructure.cache.mastery_cache import MasteryCache, NullCache
from src.utils.datetime import utc_now
from src.utils.logging import get_logger

logger = get_logger(__name__)

SCORE_PRECISION = 1


@dataclass(frozen=True)
class Standing:
    """Ranked position of one student in a partition."""

    rank: int
    student_id: str
    score: float
    levels: LevelScores
    record_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "rank": self.rank,
            "student_id": self.student_id,
            "score": self.score,
            "levels": self.levels.to_dict(),
            "record_count": self.record_count,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Standing":
        return cls(
            rank=int(data["rank"]),
            student_id=data["student_id"],
            score=float(data["score"]),
            levels=LevelScores.from_dict(data["levels"]),
            record_count=int(data["record_count"]),
        )


@dataclass
class PartitionEntry:
    """One leaderboard row."""

    rank: int
    student_id: str
    display_name: str
    overall_mastery: float
    mastery_level: MasteryLevel
    per_level_averages: LevelScores

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for API response."""
        return {
            "rank": self.rank,
            "student_id": self.student_id,
            "display_name": self.display_name,
            "overall_mastery": self.overall_mastery,
            "mastery_level": self.mastery_level.value,
            "per_level_averages": self.per_level_averages.to_dict(),
        }


@dataclass
class RequestingUserEntry:
    """Requester's own position when outside the returned slice."""

    rank: int
    entry: PartitionEntry

    def to_dict(self) -> dict[str, Any]:
        return {"rank": self.rank, "entry": self.entry.to_dict()}


@dataclass
class PartitionResult:
    """Bounded leaderboard for one partition."""

    partition_key: str
    entries: list[PartitionEntry] = field(default_factory=list)
    total_count: int = 0
    requesting_user_entry: RequestingUserEntry | None = None
    generated_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for API response."""
        return {
            "partition_key": self.partition_key,
            "entries": [entry.to_dict() for entry in self.entries],
            "total_count": self.total_count,
            "requesting_user_entry": (
                self.requesting_user_entry.to_dict() if self.requesting_user_entry else None
            ),
            "generated_at": self.generated_at.isoformat(),
        }


@dataclass
class PartitionFailure:
    """Failure of one query within a batch."""

    partition_key: str
    error_type: str
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "partition_key": self.partition_key,
            "error_type": self.error_type,
            "message": self.message,
        }


def rank_students(scores: Sequence[tuple[str, float, LevelScores, int]]) -> list[Standing]:
    """Order scored students and assign competition ranks.

    Args:
        scores: (student_id, rounded score, level averages, record count) tuples.

    Returns:
        Standings sorted by score descending then student_id ascending.
    """
    ordered = sorted(scores, key=lambda item: (-item[1], item[0]))

    standings: list[Standing] = []
    rank = 0
    previous_score: float | None = None
    for position, (student_id, score, levels, record_count) in enumerate(ordered, start=1):
        if score != previous_score:
            rank = position
            previous_score = score
        standings.append(
            Standing(
                rank=rank,
                student_id=student_id,
                score=score,
                levels=levels,
                record_count=record_count,
            )
        )
    return standings


class MasteryPartitionEngine:
    """Computes ranked mastery leaderboards.

    Attributes:
        settings: Limits and cache TTL.
    """

    def __init__(
        self,
        store: MasteryRecordStore,
        roster: RosterProvider,
        cache: MasteryCache | None = None,
        settings: MasterySettings | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            store: Mastery record store (read only).
            roster: Class rosters and display names.
            cache: Standings cache; defaults to no caching.
            settings: Mastery settings; defaults to application settings.
        """
        self._store = store
        self._roster = roster
        self._cache = cache if cache is not None else NullCache()
        self.settings = settings if settings is not None else get_settings().mastery

    async def get_partition(self, query: PartitionQuery) -> PartitionResult:
        """Build the leaderboard for one partition.

        Args:
            query: Partition query.

        Returns:
            The top slice, total count and requester position.

        Raises:
            ValidationError: If the query is incomplete or its limit is out
                of range. Raised before any store or cache access.
            StoreUnavailableError: If the store or roster cannot be reached.
        """
        limit = self.validate_query(query)
        partition_key = query.partition_key

        standings = await self._get_standings(query)
        top = standings[:limit]

        requester: Standing | None = None
        if query.requesting_user_id is not None and all(
            standing.student_id != query.requesting_user_id for standing in top
        ):
            requester = next(
                (s for s in standings if s.student_id == query.requesting_user_id),
                None,
            )

        named_ids = [standing.student_id for standing in top]
        if requester is not None:
            named_ids.append(requester.student_id)
        display_names = await self._roster.get_display_names(named_ids) if named_ids else {}

        result = PartitionResult(
            partition_key=partition_key,
            entries=[self._to_entry(standing, display_names) for standing in top],
            total_count=len(standings),
        )
        if requester is not None:
            result.requesting_user_entry = RequestingUserEntry(
                rank=requester.rank,
                entry=self._to_entry(requester, display_names),
            )

        logger.debug(
            "Partition computed",
            partition_key=partition_key,
            total_count=result.total_count,
            returned=len(result.entries),
        )
        return result

    async def get_multiple_partitions(
        self,
        queries: Sequence[PartitionQuery],
    ) -> dict[str, PartitionResult | PartitionFailure]:
        """Build several leaderboards concurrently.

        A failing query yields a PartitionFailure under its own key and
        does not affect the others. For duplicate keys the last query wins.

        Args:
            queries: Partition queries.

        Returns:
            Mapping of partition key to result or failure.
        """

        async def safe_get(query: PartitionQuery) -> PartitionResult | PartitionFailure:
            """Compute one partition with error isolation."""
            try:
                return await self.get_partition(query)
            except MasteryError as e:
                logger.warning(
                    "Partition query failed",
                    partition_key=query.partition_key,
                    error_type=type(e).__name__,
                    error=str(e),
                )
                return PartitionFailure(
                    partition_key=query.partition_key,
                    error_type=type(e).__name__,
                    message=str(e),
                )
            except Exception as e:
                logger.error(
                    "Unexpected partition failure",
                    partition_key=query.partition_key,
                    error=str(e),
                    exc_info=True,
                )
                return PartitionFailure(
                    partition_key=query.partition_key,
                    error_type=type(e).__name__,
                    message=str(e),
                )

        outcomes = await asyncio.gather(*[safe_get(query) for query in queries])

        results: dict[str, PartitionResult | PartitionFailure] = {}
        for query, outcome in zip(queries, outcomes):
            results[query.partition_key] = outcome
        return results

    def validate_query(self, query: PartitionQuery) -> int:
        """Check scope completeness and limit bounds.

        Returns:
            The effective limit.

        Raises:
            ValidationError: If a scope field is missing or the limit is
                outside 1..max_partition_limit.
        """
        self.validate_scope(query)

        limit = query.limit if query.limit is not None else self.settings.default_partition_limit
        if limit < 1:
            raise ValidationError(f"limit must be at least 1, got {limit}")
        if limit > self.settings.max_partition_limit:
            raise ValidationError(
                f"limit must not exceed {self.settings.max_partition_limit}, got {limit}"
            )
        return limit

    def validate_scope(self, query: PartitionQuery) -> None:
        """Check that scoped kinds carry their scope.

        Raises:
            ValidationError: If scope_id or cognitive_level is missing.
        """
        if query.kind in SCOPED_KINDS and not query.scope_id:
            raise ValidationError(f"{query.kind.value} partition requires scope_id")
        if query.kind == PartitionKind.COGNITIVE_LEVEL and query.cognitive_level is None:
            raise ValidationError("cognitive_level partition requires cognitive_level")

    async def compute_standings(self, query: PartitionQuery) -> list[Standing]:
        """Rank every student in the partition, bypassing the cache.

        The query limit is ignored.

        Raises:
            ValidationError: If the query scope is incomplete.
            StoreUnavailableError: If the store or roster cannot be reached.
        """
        self.validate_scope(query)
        return await self._compute_standings(query)

    async def _get_standings(self, query: PartitionQuery) -> list[Standing]:
        cache_key = standings_cache_key(query.partition_key)

        cached = await self._cache.get(cache_key)
        if cached is not None:
            return [Standing.from_dict(item) for item in cached]

        standings = await self._compute_standings(query)
        await self._cache.set(
            cache_key,
            [standing.to_dict() for standing in standings],
            ttl_seconds=self.settings.partition_cache_ttl_seconds,
        )
        return standings

    async def _compute_standings(self, query: PartitionQuery) -> list[Standing]:
        record_filter = await self._build_filter(query)
        if record_filter.student_ids is not None and not record_filter.student_ids:
            return []

        records = await self._store.find_many(record_filter)

        scored: list[tuple[str, float, LevelScores, int]] = []
        for student_id, student_records in group_by_student(records).items():
            levels = mean_levels(student_records)
            if query.kind == PartitionKind.COGNITIVE_LEVEL:
                raw_score = levels.get(query.cognitive_level)
            else:
                raw_score = mean(record.overall_mastery for record in student_records)
            scored.append(
                (
                    student_id,
                    round(raw_score, SCORE_PRECISION),
                    levels.rounded(SCORE_PRECISION),
                    len(student_records),
                )
            )

        return rank_students(scored)

    async def _build_filter(self, query: PartitionQuery) -> RecordFilter:
        if query.kind == PartitionKind.SUBJECT:
            return RecordFilter(subject_id=query.scope_id)
        if query.kind == PartitionKind.TOPIC:
            return RecordFilter(topic_id=query.scope_id)
        if query.kind == PartitionKind.CLASS:
            student_ids = await self._roster.list_active_student_ids(query.scope_id)
            return RecordFilter(student_ids=tuple(student_ids))
        return RecordFilter()

    @staticmethod
    def _to_entry(standing: Standing, display_names: dict[str, str]) -> PartitionEntry:
        return PartitionEntry(
            rank=standing.rank,
            student_id=standing.student_id,
            display_name=display_names.get(standing.student_id) or standing.student_id,
            overall_mastery=standing.score,
            mastery_level=get_mastery_level(standing.score),
            per_level_averages=standing.levels,
        )
