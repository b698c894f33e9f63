# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Collaborator interfaces consumed by the mastery engine.

The calculator, analytics, partition engine and snapshot service depend
on these abstract classes. SQLAlchemy implementations live in
src.domains.mastery.stores; tests supply in-memory ones.

Implementations raise StoreUnavailableError when their backend cannot
be reached.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import TYPE_CHECKING, Sequence

from src.domains.mastery.records import AssessmentOutcome, MasteryRecord, RecordFilter

if TYPE_CHECKING:
    from src.domains.mastery.snapshots import PartitionSnapshot


class MasteryRecordStore(ABC):
    """Persisted per-student-per-topic mastery records."""

    @abstractmethod
    async def find_many(self, record_filter: RecordFilter) -> list[MasteryRecord]:
        """Return records matching the filter in a stable load order."""
        ...

    @abstractmethod
    async def find_first(self, student_id: str, topic_id: str) -> MasteryRecord | None:
        """Return the record for (student_id, topic_id), if any."""
        ...

    @abstractmethod
    async def upsert(self, record: MasteryRecord) -> MasteryRecord:
        """Insert or replace the record for (student_id, topic_id).

        Returns:
            The stored record, with its id populated.
        """
        ...


class RosterProvider(ABC):
    """Student and class membership lookups."""

    @abstractmethod
    async def list_active_student_ids(self, class_id: str) -> list[str]:
        """Ids of students actively enrolled in a class."""
        ...

    @abstractmethod
    async def get_display_names(self, student_ids: Sequence[str]) -> dict[str, str]:
        """Display names for the given students; unknown ids are omitted."""
        ...

    @abstractmethod
    async def student_exists(self, student_id: str) -> bool:
        ...


class CurriculumLookup(ABC):
    """Subject and topic lookups."""

    @abstractmethod
    async def subject_exists(self, subject_id: str) -> bool:
        ...

    @abstractmethod
    async def topic_in_subject(self, topic_id: str, subject_id: str) -> bool:
        """True when the topic exists and belongs to the subject."""
        ...


class AssessmentHistory(ABC):
    """Completed assessment results."""

    @abstractmethod
    async def list_results(
        self,
        student_id: str,
        since: datetime,
        subject_id: str | None = None,
    ) -> list[AssessmentOutcome]:
        """Results completed at or after since, oldest first."""
        ...


class SnapshotStore(ABC):
    """Point-in-time partition standings."""

    @abstractmethod
    async def save(self, snapshot: "PartitionSnapshot") -> "PartitionSnapshot":
        """Persist a snapshot.

        Returns:
            The stored snapshot, with its id populated.
        """
        ...

    @abstractmethod
    async def list_snapshots(
        self,
        partition_key: str,
        since: datetime | None = None,
        until: datetime | None = None,
        limit: int | None = None,
        newest_first: bool = True,
    ) -> list["PartitionSnapshot"]:
        """Snapshots of one partition taken within [since, until].

        Args:
            partition_key: Partition the snapshots belong to.
            since: Inclusive lower bound on taken_at.
            until: Inclusive upper bound on taken_at.
            limit: Maximum number of snapshots returned.
            newest_first: Order by taken_at descending when True.
        """
        ...

    @abstractmethod
    async def delete_before(self, cutoff: datetime) -> int:
        """Delete snapshots taken strictly before cutoff; return the count."""
        ...
