# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""In-memory collaborators and fixtures for mastery domain unit tests."""

from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Sequence

import pytest

from src.domains.mastery.exceptions import StoreUnavailableError
from src.domains.mastery.levels import LevelScores
from src.domains.mastery.ports import (
    AssessmentHistory,
    CurriculumLookup,
    MasteryRecordStore,
    RosterProvider,
    SnapshotStore,
)
from src.domains.mastery.records import AssessmentOutcome, MasteryRecord, RecordFilter
from src.domains.mastery.snapshots import PartitionSnapshot

FIXED_NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)


class InMemoryRecordStore(MasteryRecordStore):
    """Record store keeping rows in insertion order and counting calls."""

    def __init__(self, records: Sequence[MasteryRecord] = ()) -> None:
        self.records: list[MasteryRecord] = list(records)
        self.calls: list[tuple[str, Any]] = []
        self.fail_with: Exception | None = None

    def _check(self, operation: str, argument: Any) -> None:
        self.calls.append((operation, argument))
        if self.fail_with is not None:
            raise self.fail_with

    async def find_many(self, record_filter: RecordFilter) -> list[MasteryRecord]:
        self._check("find_many", record_filter)
        return [
            record
            for record in self.records
            if (record_filter.student_ids is None or record.student_id in record_filter.student_ids)
            and (record_filter.subject_id is None or record.subject_id == record_filter.subject_id)
            and (record_filter.topic_id is None or record.topic_id == record_filter.topic_id)
        ]

    async def find_first(self, student_id: str, topic_id: str) -> MasteryRecord | None:
        self._check("find_first", (student_id, topic_id))
        for record in self.records:
            if record.student_id == student_id and record.topic_id == topic_id:
                return record
        return None

    async def upsert(self, record: MasteryRecord) -> MasteryRecord:
        self._check("upsert", record)
        for index, existing in enumerate(self.records):
            if existing.student_id == record.student_id and existing.topic_id == record.topic_id:
                stored = replace(record, id=existing.id)
                self.records[index] = stored
                return stored
        stored = replace(record, id=record.id or f"rec-{len(self.records) + 1}")
        self.records.append(stored)
        return stored


class InMemoryRoster(RosterProvider):
    """Roster with class membership and display names."""

    def __init__(
        self,
        classes: dict[str, list[str]] | None = None,
        names: dict[str, str] | None = None,
        students: set[str] | None = None,
    ) -> None:
        self.classes = classes or {}
        self.names = names or {}
        self.students = students if students is not None else set(self.names)
        self.calls: list[tuple[str, Any]] = []
        self.fail_with: Exception | None = None

    def _check(self, operation: str, argument: Any) -> None:
        self.calls.append((operation, argument))
        if self.fail_with is not None:
            raise self.fail_with

    async def list_active_student_ids(self, class_id: str) -> list[str]:
        self._check("list_active_student_ids", class_id)
        return list(self.classes.get(class_id, []))

    async def get_display_names(self, student_ids: Sequence[str]) -> dict[str, str]:
        self._check("get_display_names", list(student_ids))
        return {sid: self.names[sid] for sid in student_ids if sid in self.names}

    async def student_exists(self, student_id: str) -> bool:
        self._check("student_exists", student_id)
        return student_id in self.students


class InMemoryCurriculum(CurriculumLookup):
    """Curriculum mapping topic ids to their subject."""

    def __init__(self, topics: dict[str, str] | None = None) -> None:
        self.topics = topics or {}
        self.subjects = set(self.topics.values())

    async def subject_exists(self, subject_id: str) -> bool:
        return subject_id in self.subjects

    async def topic_in_subject(self, topic_id: str, subject_id: str) -> bool:
        return self.topics.get(topic_id) == subject_id


class InMemoryHistory(AssessmentHistory):
    """Assessment history filtered by student, time and subject."""

    def __init__(self, results: Sequence[AssessmentOutcome] = ()) -> None:
        self.results = list(results)
        self.fail_with: Exception | None = None

    async def list_results(
        self,
        student_id: str,
        since: datetime,
        subject_id: str | None = None,
    ) -> list[AssessmentOutcome]:
        if self.fail_with is not None:
            raise self.fail_with
        selected = [
            result
            for result in self.results
            if result.student_id == student_id
            and result.completed_at is not None
            and result.completed_at >= since
            and (subject_id is None or result.subject_id == subject_id)
        ]
        return sorted(selected, key=lambda result: result.completed_at)


class InMemorySnapshotStore(SnapshotStore):
    """Snapshot store keeping every saved snapshot."""

    def __init__(self, snapshots: Sequence[PartitionSnapshot] = ()) -> None:
        self.snapshots: list[PartitionSnapshot] = list(snapshots)
        self.calls: list[tuple[str, Any]] = []

    async def save(self, snapshot: PartitionSnapshot) -> PartitionSnapshot:
        self.calls.append(("save", snapshot.partition_key))
        stored = replace(snapshot, id=f"snap-{len(self.snapshots) + 1}")
        self.snapshots.append(stored)
        return stored

    async def list_snapshots(
        self,
        partition_key: str,
        since: datetime | None = None,
        until: datetime | None = None,
        limit: int | None = None,
        newest_first: bool = True,
    ) -> list[PartitionSnapshot]:
        self.calls.append(("list_snapshots", partition_key))
        selected = sorted(
            (
                snapshot
                for snapshot in self.snapshots
                if snapshot.partition_key == partition_key
                and (since is None or snapshot.taken_at >= since)
                and (until is None or snapshot.taken_at <= until)
            ),
            key=lambda snapshot: snapshot.taken_at,
            reverse=newest_first,
        )
        return selected[:limit] if limit is not None else selected

    async def delete_before(self, cutoff: datetime) -> int:
        self.calls.append(("delete_before", cutoff))
        kept = [snapshot for snapshot in self.snapshots if snapshot.taken_at >= cutoff]
        deleted = len(self.snapshots) - len(kept)
        self.snapshots = kept
        return deleted


@pytest.fixture
def fixed_now() -> datetime:
    """Reference time used by clocks and record factories."""
    return FIXED_NOW


@pytest.fixture
def fixed_clock(fixed_now: datetime) -> Callable[[], datetime]:
    """Clock frozen at fixed_now."""
    return lambda: fixed_now


@pytest.fixture
def make_record() -> Callable[..., MasteryRecord]:
    """Factory for mastery records."""

    def _make(
        student_id: str,
        overall: float,
        topic_id: str = "topic-1",
        subject_id: str = "subject-1",
        levels: LevelScores | None = None,
    ) -> MasteryRecord:
        return MasteryRecord(
            student_id=student_id,
            topic_id=topic_id,
            subject_id=subject_id,
            levels=levels if levels is not None else LevelScores(*([overall] * 6)),
            overall_mastery=overall,
            last_assessment_date=FIXED_NOW - timedelta(days=1),
            created_at=FIXED_NOW - timedelta(days=10),
            updated_at=FIXED_NOW - timedelta(days=1),
        )

    return _make


@pytest.fixture
def make_outcome() -> Callable[..., AssessmentOutcome]:
    """Factory for assessment outcomes."""

    def _make(
        student_id: str = "student-1",
        topic_id: str = "topic-1",
        subject_id: str = "subject-1",
        scores: dict[str, float] | None = None,
        max_scores: dict[str, float] | None = None,
        completed_at: datetime | None = None,
    ) -> AssessmentOutcome:
        return AssessmentOutcome(
            student_id=student_id,
            topic_id=topic_id,
            subject_id=subject_id,
            scores=scores or {},
            max_scores=max_scores or {},
            completed_at=completed_at,
        )

    return _make


@pytest.fixture
def store_down() -> StoreUnavailableError:
    """Error raised by a collaborator whose backend is unreachable."""
    return StoreUnavailableError("Store operation 'find_many' failed", ConnectionError("refused"))


@pytest.fixture
def record_store() -> InMemoryRecordStore:
    """Empty in-memory record store."""
    return InMemoryRecordStore()


@pytest.fixture
def roster() -> InMemoryRoster:
    """Roster with one class of three named students."""
    return InMemoryRoster(
        classes={"class-1": ["student-1", "student-2", "student-3"]},
        names={"student-1": "Ada Lovelace", "student-2": "Alan Turing", "student-3": "Grace Hopper"},
    )


@pytest.fixture
def curriculum() -> InMemoryCurriculum:
    """Curriculum with two topics in subject-1 and one in subject-2."""
    return InMemoryCurriculum(
        topics={"topic-1": "subject-1", "topic-2": "subject-1", "topic-3": "subject-2"}
    )


@pytest.fixture
def history() -> InMemoryHistory:
    """Empty assessment history."""
    return InMemoryHistory()


@pytest.fixture
def snapshot_store() -> InMemorySnapshotStore:
    """Empty in-memory snapshot store."""
    return InMemorySnapshotStore()
