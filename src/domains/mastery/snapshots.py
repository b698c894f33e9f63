# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Leaderboard snapshots, history and rank trends.

A snapshot freezes the full ranked standings of one partition at a point
in time. Snapshots are keyed by the same partition key as live
leaderboards, so history and trends are looked up with an ordinary
PartitionQuery.

Standings for a snapshot are always recomputed from the record store;
the standings cache is never read, so a snapshot reflects the records at
taken_at.

Usage:
    snapshots = MasterySnapshotService(engine=engine, store=SqlSnapshotStore(sessionmaker))

    await snapshots.create_snapshot(PartitionQuery(kind="class", scope_id=class_id))
    trend = await snapshots.get_rank_trend(
        PartitionQuery(kind="class", scope_id=class_id), student_id
    )
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable

from src.core.config.settings import MasterySettings
from src.domains.mastery.aggregation import mean
from src.domains.mastery.exceptions import ValidationError
from src.domains.mastery.levels import CognitiveLevel
from src.domains.mastery.partition import MasteryPartitionEngine, Standing
from src.domains.mastery.ports import SnapshotStore
from src.domains.mastery.queries import PartitionKind, PartitionQuery
from src.utils.datetime import days_ago, format_iso, utc_now
from src.utils.logging import get_logger

logger = get_logger(__name__)

TOP_PERFORMER_COUNT = 3
SCORE_PRECISION = 1


@dataclass
class PartitionSnapshot:
    """Ranked standings of one partition at taken_at."""

    partition_key: str
    kind: PartitionKind
    taken_at: datetime
    standings: list[Standing] = field(default_factory=list)
    scope_id: str | None = None
    cognitive_level: CognitiveLevel | None = None
    id: str | None = None

    @property
    def student_count(self) -> int:
        return len(self.standings)

    def find(self, student_id: str) -> Standing | None:
        """Standing of a student, or None when not ranked."""
        return next((s for s in self.standings if s.student_id == student_id), None)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for API response."""
        return {
            "id": self.id,
            "partition_key": self.partition_key,
            "kind": self.kind.value,
            "scope_id": self.scope_id,
            "cognitive_level": self.cognitive_level.value if self.cognitive_level else None,
            "taken_at": format_iso(self.taken_at),
            "student_count": self.student_count,
            "standings": [standing.to_dict() for standing in self.standings],
        }


@dataclass
class RankTrendPoint:
    """A student's position in one snapshot. rank is None when unranked."""

    taken_at: datetime
    rank: int | None
    score: float | None
    total_students: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "taken_at": format_iso(self.taken_at),
            "rank": self.rank,
            "score": self.score,
            "total_students": self.total_students,
        }


@dataclass
class RankTrend:
    """A student's rank across the snapshots of a partition, oldest first.

    Attributes:
        rank_change: First ranked position minus last ranked position;
            positive means the student moved up. None with fewer than two
            ranked snapshots.
    """

    student_id: str
    partition_key: str
    points: list[RankTrendPoint] = field(default_factory=list)
    rank_change: int | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for API response."""
        return {
            "student_id": self.student_id,
            "partition_key": self.partition_key,
            "points": [point.to_dict() for point in self.points],
            "rank_change": self.rank_change,
        }


@dataclass
class PartitionTrendPoint:
    """Summary of one snapshot."""

    taken_at: datetime
    total_students: int
    average_score: float
    top_standings: list[Standing] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "taken_at": format_iso(self.taken_at),
            "total_students": self.total_students,
            "average_score": self.average_score,
            "top_standings": [standing.to_dict() for standing in self.top_standings],
        }


@dataclass
class PartitionTrend:
    """Snapshot summaries of a partition, oldest first."""

    partition_key: str
    points: list[PartitionTrendPoint] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "partition_key": self.partition_key,
            "points": [point.to_dict() for point in self.points],
        }


def build_rank_trend(
    snapshots: list[PartitionSnapshot],
    student_id: str,
    partition_key: str,
) -> RankTrend:
    """Follow one student through snapshots ordered oldest first."""
    points = []
    for snapshot in snapshots:
        standing = snapshot.find(student_id)
        points.append(
            RankTrendPoint(
                taken_at=snapshot.taken_at,
                rank=standing.rank if standing else None,
                score=standing.score if standing else None,
                total_students=snapshot.student_count,
            )
        )

    ranks = [point.rank for point in points if point.rank is not None]
    rank_change = ranks[0] - ranks[-1] if len(ranks) >= 2 else None

    return RankTrend(
        student_id=student_id,
        partition_key=partition_key,
        points=points,
        rank_change=rank_change,
    )


def summarize_snapshot(snapshot: PartitionSnapshot) -> PartitionTrendPoint:
    """Student count, average score and top performers of a snapshot."""
    return PartitionTrendPoint(
        taken_at=snapshot.taken_at,
        total_students=snapshot.student_count,
        average_score=round(mean(s.score for s in snapshot.standings), SCORE_PRECISION),
        top_standings=snapshot.standings[:TOP_PERFORMER_COUNT],
    )


class MasterySnapshotService:
    """Captures partition standings and reads them back over time.

    Attributes:
        settings: History limit, trend window and retention.
    """

    def __init__(
        self,
        engine: MasteryPartitionEngine,
        store: SnapshotStore,
        settings: MasterySettings | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize the service.

        Args:
            engine: Partition engine used to rank students.
            store: Snapshot persistence.
            settings: Mastery settings; defaults to the engine's settings.
            clock: Source of the current time.
        """
        self._engine = engine
        self._store = store
        self.settings = settings if settings is not None else engine.settings
        self._clock = clock

    async def create_snapshot(self, query: PartitionQuery) -> PartitionSnapshot:
        """Rank the partition now and store the full standings.

        The query limit and requester are ignored.

        Raises:
            ValidationError: If the query scope is incomplete.
            StoreUnavailableError: If a backing store cannot be reached.
        """
        standings = await self._engine.compute_standings(query)

        snapshot = await self._store.save(
            PartitionSnapshot(
                partition_key=query.partition_key,
                kind=query.kind,
                scope_id=query.scope_id,
                cognitive_level=query.cognitive_level,
                taken_at=self._clock(),
                standings=standings,
            )
        )

        logger.info(
            "Partition snapshot created",
            partition_key=snapshot.partition_key,
            snapshot_id=snapshot.id,
            student_count=snapshot.student_count,
        )
        return snapshot

    async def get_history(
        self,
        query: PartitionQuery,
        since: datetime | None = None,
        until: datetime | None = None,
        limit: int | None = None,
    ) -> list[PartitionSnapshot]:
        """Snapshots of a partition, newest first.

        Args:
            query: Partition whose snapshots are returned.
            since: Inclusive lower bound on taken_at.
            until: Inclusive upper bound on taken_at.
            limit: Maximum snapshots; defaults to snapshot_history_limit.

        Raises:
            ValidationError: If the scope is incomplete, the window is
                inverted or the limit is out of range.
        """
        self._engine.validate_scope(query)
        if since is not None and until is not None and since > until:
            raise ValidationError("since must not be later than until")

        limit = limit if limit is not None else self.settings.snapshot_history_limit
        if not 1 <= limit <= self.settings.max_partition_limit:
            raise ValidationError(
                f"limit must be within 1..{self.settings.max_partition_limit}, got {limit}"
            )

        return await self._store.list_snapshots(
            query.partition_key,
            since=since,
            until=until,
            limit=limit,
            newest_first=True,
        )

    async def get_rank_trend(
        self,
        query: PartitionQuery,
        student_id: str,
        days: int | None = None,
    ) -> RankTrend:
        """A student's rank in each snapshot of the trailing window.

        Raises:
            ValidationError: If the scope is incomplete or days < 1.
        """
        snapshots = await self._window(query, days)
        return build_rank_trend(snapshots, student_id, query.partition_key)

    async def get_partition_trend(
        self,
        query: PartitionQuery,
        days: int | None = None,
    ) -> PartitionTrend:
        """Per-snapshot summaries over the trailing window."""
        snapshots = await self._window(query, days)
        return PartitionTrend(
            partition_key=query.partition_key,
            points=[summarize_snapshot(snapshot) for snapshot in snapshots],
        )

    async def prune_snapshots(self, retention_days: int | None = None) -> int:
        """Delete snapshots older than the retention period.

        Returns:
            Number of snapshots deleted.
        """
        retention_days = (
            retention_days if retention_days is not None else self.settings.snapshot_retention_days
        )
        if retention_days < 1:
            raise ValidationError(f"retention_days must be at least 1, got {retention_days}")

        cutoff = days_ago(retention_days, self._clock())
        deleted = await self._store.delete_before(cutoff)

        logger.info("Partition snapshots pruned", cutoff=format_iso(cutoff), deleted=deleted)
        return deleted

    async def _window(self, query: PartitionQuery, days: int | None) -> list[PartitionSnapshot]:
        self._engine.validate_scope(query)
        days = days if days is not None else self.settings.snapshot_trend_days
        if days < 1:
            raise ValidationError(f"days must be at least 1, got {days}")

        now = self._clock()
        return await self._store.list_snapshots(
            query.partition_key,
            since=days_ago(days, now),
            until=now,
            newest_first=False,
        )
