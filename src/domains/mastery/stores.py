# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""SQLAlchemy implementations of the mastery collaborator interfaces.

Every store takes an async_sessionmaker and opens its own session per
call; concurrent partition tasks must not share an AsyncSession.
Driver failures surface as StoreUnavailableError.

Usage:
    from src.infrastructure.database import get_sessionmaker
    from src.domains.mastery.stores import SqlMasteryRecordStore

    store = SqlMasteryRecordStore(get_sessionmaker())
    records = await store.find_many(RecordFilter(subject_id=subject_id))
"""

import asyncio
import math
from contextlib import asynccontextmanager
from dataclasses import replace
from datetime import datetime
from typing import AsyncIterator, Sequence

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.domains.mastery.exceptions import StoreUnavailableError
from src.domains.mastery.levels import CognitiveLevel, LevelScores
from src.domains.mastery.partition import Standing
from src.domains.mastery.ports import (
    AssessmentHistory,
    CurriculumLookup,
    MasteryRecordStore,
    RosterProvider,
    SnapshotStore,
)
from src.domains.mastery.queries import PartitionKind
from src.domains.mastery.records import AssessmentOutcome, MasteryRecord, RecordFilter
from src.domains.mastery.snapshots import PartitionSnapshot
from src.infrastructure.database.models import (
    AssessmentResult,
    ClassStudent,
    StandingsSnapshot,
    Subject,
    Topic,
    TopicMastery,
    User,
)
from src.utils.datetime import ensure_utc
from src.utils.logging import get_logger

logger = get_logger(__name__)


@asynccontextmanager
async def _store_errors(operation: str) -> AsyncIterator[None]:
    """Translate driver errors into StoreUnavailableError."""
    try:
        yield
    except (SQLAlchemyError, OSError, asyncio.TimeoutError) as e:
        logger.error("Store operation failed", operation=operation, error=str(e))
        raise StoreUnavailableError(f"Store operation '{operation}' failed", e) from e


def _to_record(row: TopicMastery) -> MasteryRecord:
    """Map an ORM row to a domain record."""
    return MasteryRecord(
        id=row.id,
        student_id=row.student_id,
        topic_id=row.topic_id,
        subject_id=row.subject_id,
        levels=LevelScores(
            remember=row.remember_level,
            understand=row.understand_level,
            apply=row.apply_level,
            analyze=row.analyze_level,
            evaluate=row.evaluate_level,
            create=row.create_level,
        ),
        overall_mastery=row.overall_mastery,
        last_assessment_date=ensure_utc(row.last_assessment_date),
        created_at=ensure_utc(row.created_at),
        updated_at=ensure_utc(row.updated_at),
    )


def _apply_record(row: TopicMastery, record: MasteryRecord) -> None:
    """Copy the mutable state of a domain record onto an ORM row."""
    row.subject_id = record.subject_id
    row.remember_level = record.levels.remember
    row.understand_level = record.levels.understand
    row.apply_level = record.levels.apply
    row.analyze_level = record.levels.analyze
    row.evaluate_level = record.levels.evaluate
    row.create_level = record.levels.create
    row.overall_mastery = record.overall_mastery
    row.last_assessment_date = record.last_assessment_date or record.updated_at
    row.updated_at = record.updated_at


def _to_outcome(row: AssessmentResult) -> AssessmentOutcome:
    """Map an assessment row to an outcome, skipping uncovered or non-finite levels."""
    columns: dict[CognitiveLevel, tuple[float | None, float | None]] = {
        CognitiveLevel.REMEMBER: (row.remember_score, row.remember_max),
        CognitiveLevel.UNDERSTAND: (row.understand_score, row.understand_max),
        CognitiveLevel.APPLY: (row.apply_score, row.apply_max),
        CognitiveLevel.ANALYZE: (row.analyze_score, row.analyze_max),
        CognitiveLevel.EVALUATE: (row.evaluate_score, row.evaluate_max),
        CognitiveLevel.CREATE: (row.create_score, row.create_max),
    }
    scores: dict[CognitiveLevel, float] = {}
    max_scores: dict[CognitiveLevel, float] = {}
    for level, (score, max_score) in columns.items():
        if score is None or max_score is None:
            continue
        if math.isfinite(score) and math.isfinite(max_score):
            scores[level] = score
            max_scores[level] = max_score

    return AssessmentOutcome(
        student_id=row.student_id,
        topic_id=row.topic_id,
        subject_id=row.subject_id,
        scores=scores,
        max_scores=max_scores,
        completed_at=ensure_utc(row.completed_at),
    )


class SqlMasteryRecordStore(MasteryRecordStore):
    """Mastery records in the topic_masteries table."""

    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]) -> None:
        self._sessionmaker = sessionmaker

    async def find_many(self, record_filter: RecordFilter) -> list[MasteryRecord]:
        if record_filter.student_ids is not None and not record_filter.student_ids:
            return []

        stmt = select(TopicMastery)
        if record_filter.student_ids is not None:
            stmt = stmt.where(TopicMastery.student_id.in_(record_filter.student_ids))
        if record_filter.subject_id is not None:
            stmt = stmt.where(TopicMastery.subject_id == record_filter.subject_id)
        if record_filter.topic_id is not None:
            stmt = stmt.where(TopicMastery.topic_id == record_filter.topic_id)
        stmt = stmt.order_by(TopicMastery.created_at, TopicMastery.id)

        async with _store_errors("find_many"):
            async with self._sessionmaker() as session:
                result = await session.execute(stmt)
                return [_to_record(row) for row in result.scalars().all()]

    async def find_first(self, student_id: str, topic_id: str) -> MasteryRecord | None:
        stmt = select(TopicMastery).where(
            TopicMastery.student_id == student_id,
            TopicMastery.topic_id == topic_id,
        )

        async with _store_errors("find_first"):
            async with self._sessionmaker() as session:
                row = (await session.execute(stmt)).scalar_one_or_none()
                return _to_record(row) if row is not None else None

    async def upsert(self, record: MasteryRecord) -> MasteryRecord:
        async with _store_errors("upsert"):
            try:
                return await self._write(record)
            except IntegrityError:
                # A concurrent insert for the same (student, topic) committed first
                logger.info(
                    "Upsert raced with concurrent insert, applying as update",
                    student_id=record.student_id,
                    topic_id=record.topic_id,
                )
                return await self._write(record)

    async def _write(self, record: MasteryRecord) -> MasteryRecord:
        async with self._sessionmaker() as session:
            async with session.begin():
                row = (
                    await session.execute(
                        select(TopicMastery).where(
                            TopicMastery.student_id == record.student_id,
                            TopicMastery.topic_id == record.topic_id,
                        )
                    )
                ).scalar_one_or_none()

                if row is None:
                    row = TopicMastery(
                        student_id=record.student_id,
                        topic_id=record.topic_id,
                        created_at=record.created_at,
                    )
                    session.add(row)
                _apply_record(row, record)

            return _to_record(row)


class SqlRosterProvider(RosterProvider):
    """Roster lookups over users and class_students."""

    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]) -> None:
        self._sessionmaker = sessionmaker

    async def list_active_student_ids(self, class_id: str) -> list[str]:
        stmt = (
            select(ClassStudent.student_id)
            .join(User, User.id == ClassStudent.student_id)
            .where(
                ClassStudent.class_id == class_id,
                ClassStudent.status == "active",
                User.status == "active",
            )
            .order_by(ClassStudent.enrolled_at, ClassStudent.student_id)
        )

        async with _store_errors("list_active_student_ids"):
            async with self._sessionmaker() as session:
                result = await session.execute(stmt)
                return list(result.scalars().all())

    async def get_display_names(self, student_ids: Sequence[str]) -> dict[str, str]:
        if not student_ids:
            return {}

        stmt = select(User).where(User.id.in_(list(student_ids)))

        async with _store_errors("get_display_names"):
            async with self._sessionmaker() as session:
                users = (await session.execute(stmt)).scalars().all()
                return {user.id: user.display_name for user in users if user.display_name}

    async def student_exists(self, student_id: str) -> bool:
        stmt = select(User.id).where(User.id == student_id, User.user_type == "student")

        async with _store_errors("student_exists"):
            async with self._sessionmaker() as session:
                return (await session.execute(stmt)).scalar_one_or_none() is not None


class SqlCurriculumLookup(CurriculumLookup):
    """Subject and topic existence checks."""

    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]) -> None:
        self._sessionmaker = sessionmaker

    async def subject_exists(self, subject_id: str) -> bool:
        stmt = select(Subject.id).where(Subject.id == subject_id)

        async with _store_errors("subject_exists"):
            async with self._sessionmaker() as session:
                return (await session.execute(stmt)).scalar_one_or_none() is not None

    async def topic_in_subject(self, topic_id: str, subject_id: str) -> bool:
        stmt = select(Topic.id).where(Topic.id == topic_id, Topic.subject_id == subject_id)

        async with _store_errors("topic_in_subject"):
            async with self._sessionmaker() as session:
                return (await session.execute(stmt)).scalar_one_or_none() is not None


class SqlAssessmentHistory(AssessmentHistory):
    """Assessment results from the assessment_results table."""

    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]) -> None:
        self._sessionmaker = sessionmaker

    async def list_results(
        self,
        student_id: str,
        since: datetime,
        subject_id: str | None = None,
    ) -> list[AssessmentOutcome]:
        stmt = select(AssessmentResult).where(
            AssessmentResult.student_id == student_id,
            AssessmentResult.completed_at >= since,
        )
        if subject_id is not None:
            stmt = stmt.where(AssessmentResult.subject_id == subject_id)
        stmt = stmt.order_by(AssessmentResult.completed_at, AssessmentResult.id)

        async with _store_errors("list_results"):
            async with self._sessionmaker() as session:
                rows = (await session.execute(stmt)).scalars().all()
                return [_to_outcome(row) for row in rows]


def _to_snapshot(row: StandingsSnapshot) -> PartitionSnapshot:
    """Map a snapshot row to a domain snapshot."""
    return PartitionSnapshot(
        id=row.id,
        partition_key=row.partition_key,
        kind=PartitionKind(row.kind),
        scope_id=row.scope_id,
        cognitive_level=CognitiveLevel(row.cognitive_level) if row.cognitive_level else None,
        taken_at=ensure_utc(row.taken_at),
        standings=[Standing.from_dict(item) for item in row.standings],
    )


class SqlSnapshotStore(SnapshotStore):
    """Partition snapshots in the partition_snapshots table."""

    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]) -> None:
        self._sessionmaker = sessionmaker

    async def save(self, snapshot: PartitionSnapshot) -> PartitionSnapshot:
        row = StandingsSnapshot(
            partition_key=snapshot.partition_key,
            kind=snapshot.kind.value,
            scope_id=snapshot.scope_id,
            cognitive_level=snapshot.cognitive_level.value if snapshot.cognitive_level else None,
            student_count=snapshot.student_count,
            standings=[standing.to_dict() for standing in snapshot.standings],
            taken_at=snapshot.taken_at,
        )

        async with _store_errors("save_snapshot"):
            async with self._sessionmaker() as session:
                async with session.begin():
                    session.add(row)
                    await session.flush()
                    snapshot_id = row.id

        return replace(snapshot, id=snapshot_id)

    async def list_snapshots(
        self,
        partition_key: str,
        since: datetime | None = None,
        until: datetime | None = None,
        limit: int | None = None,
        newest_first: bool = True,
    ) -> list[PartitionSnapshot]:
        stmt = select(StandingsSnapshot).where(StandingsSnapshot.partition_key == partition_key)
        if since is not None:
            stmt = stmt.where(StandingsSnapshot.taken_at >= since)
        if until is not None:
            stmt = stmt.where(StandingsSnapshot.taken_at <= until)
        if newest_first:
            stmt = stmt.order_by(StandingsSnapshot.taken_at.desc(), StandingsSnapshot.id.desc())
        else:
            stmt = stmt.order_by(StandingsSnapshot.taken_at, StandingsSnapshot.id)
        if limit is not None:
            stmt = stmt.limit(limit)

        async with _store_errors("list_snapshots"):
            async with self._sessionmaker() as session:
                rows = (await session.execute(stmt)).scalars().all()
                return [_to_snapshot(row) for row in rows]

    async def delete_before(self, cutoff: datetime) -> int:
        stmt = delete(StandingsSnapshot).where(StandingsSnapshot.taken_at < cutoff)

        async with _store_errors("delete_snapshots"):
            async with self._sessionmaker() as session:
                async with session.begin():
                    result = await session.execute(stmt)
                return result.rowcount or 0
