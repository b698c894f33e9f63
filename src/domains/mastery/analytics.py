# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Mastery analytics service.

Read-only rollups over mastery records for a student or a class:
averages, per-subject and per-level breakdowns, mastery gaps and growth
over a trailing window.

When the store is unreachable the service logs the failure and returns
a zero-valued result of the same shape with status "degraded", so
callers can tell a failure apart from a student with no data yet
(status "empty").

Usage:
    from src.domains.mastery import MasteryAnalyticsService

    service = MasteryAnalyticsService(store=store, roster=roster, history=history)

    student = await service.get_student_analytics(student_id, subject_id=subject_id)
    klass = await service.get_class_analytics(class_id)
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable

from src.core.config.settings import MasterySettings, get_settings
from src.domains.mastery.aggregation import (
    group_by_student,
    group_records,
    mean,
    mean_levels,
    mean_overall,
)
from src.domains.mastery.exceptions import StoreUnavailableError
from src.domains.mastery.levels import (
    COGNITIVE_LEVELS,
    CognitiveLevel,
    LevelScores,
    MasteryLevel,
    get_mastery_level,
)
from src.domains.mastery.ports import AssessmentHistory, MasteryRecordStore, RosterProvider
from src.domains.mastery.records import AssessmentOutcome, MasteryRecord, RecordFilter
from src.utils.datetime import days_ago, ensure_utc, utc_now
from src.utils.logging import get_logger

logger = get_logger(__name__)

SCORE_PRECISION = 1


class AnalyticsStatus(str, Enum):
    """Whether an analytics object reflects data, no data, or a failure."""

    OK = "ok"
    EMPTY = "empty"
    DEGRADED = "degraded"


@dataclass
class Growth:
    """Change between the earliest and latest result in the window."""

    overall: float = 0.0
    levels: LevelScores = field(default_factory=LevelScores)
    period_days: int = 0
    results_considered: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "overall": self.overall,
            "levels": self.levels.to_dict(),
            "period_days": self.period_days,
            "results_considered": self.results_considered,
        }


@dataclass
class SubjectMastery:
    """Mastery rollup for one subject."""

    subject_id: str
    overall_mastery: float
    levels: LevelScores
    topic_count: int
    mastery_level: MasteryLevel

    def to_dict(self) -> dict[str, Any]:
        return {
            "subject_id": self.subject_id,
            "overall_mastery": self.overall_mastery,
            "levels": self.levels.to_dict(),
            "topic_count": self.topic_count,
            "mastery_level": self.mastery_level.value,
        }


@dataclass
class MasteryGap:
    """Topic where a student is below the proficiency threshold."""

    topic_id: str
    subject_id: str
    current_mastery: float
    level_gaps: list[CognitiveLevel] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "topic_id": self.topic_id,
            "subject_id": self.subject_id,
            "current_mastery": self.current_mastery,
            "level_gaps": [level.value for level in self.level_gaps],
        }


@dataclass
class StudentAnalytics:
    """Mastery analytics for one student."""

    student_id: str
    subject_id: str | None = None
    status: AnalyticsStatus = AnalyticsStatus.EMPTY
    overall_mastery: float = 0.0
    mastery_level: MasteryLevel = MasteryLevel.NOVICE
    topic_count: int = 0
    level_breakdown: LevelScores = field(default_factory=LevelScores)
    subject_breakdown: list[SubjectMastery] = field(default_factory=list)
    mastery_gaps: list[MasteryGap] = field(default_factory=list)
    growth: Growth = field(default_factory=Growth)
    generated_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for API response."""
        return {
            "student_id": self.student_id,
            "subject_id": self.subject_id,
            "status": self.status.value,
            "overall_mastery": self.overall_mastery,
            "mastery_level": self.mastery_level.value,
            "topic_count": self.topic_count,
            "level_breakdown": self.level_breakdown.to_dict(),
            "subject_breakdown": [s.to_dict() for s in self.subject_breakdown],
            "mastery_gaps": [g.to_dict() for g in self.mastery_gaps],
            "growth": self.growth.to_dict(),
            "generated_at": self.generated_at.isoformat(),
        }


@dataclass
class TopicMasterySummary:
    """Class-wide mastery of one topic."""

    topic_id: str
    subject_id: str
    average_mastery: float
    levels: LevelScores
    student_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "topic_id": self.topic_id,
            "subject_id": self.subject_id,
            "average_mastery": self.average_mastery,
            "levels": self.levels.to_dict(),
            "student_count": self.student_count,
        }


@dataclass
class StudentMasterySummary:
    """One student's mastery within a class."""

    student_id: str
    display_name: str
    overall_mastery: float
    levels: LevelScores
    mastery_level: MasteryLevel

    def to_dict(self) -> dict[str, Any]:
        return {
            "student_id": self.student_id,
            "display_name": self.display_name,
            "overall_mastery": self.overall_mastery,
            "levels": self.levels.to_dict(),
            "mastery_level": self.mastery_level.value,
        }


@dataclass
class StrugglingStudent:
    """Student below threshold on a class gap topic."""

    student_id: str
    display_name: str
    mastery: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "student_id": self.student_id,
            "display_name": self.display_name,
            "mastery": self.mastery,
        }


@dataclass
class ClassMasteryGap:
    """Topic where the class average is below the proficiency threshold."""

    topic_id: str
    subject_id: str
    average_mastery: float
    level_gaps: list[CognitiveLevel] = field(default_factory=list)
    struggling_students: list[StrugglingStudent] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "topic_id": self.topic_id,
            "subject_id": self.subject_id,
            "average_mastery": self.average_mastery,
            "level_gaps": [level.value for level in self.level_gaps],
            "struggling_students": [s.to_dict() for s in self.struggling_students],
        }


def _empty_distribution() -> dict[MasteryLevel, int]:
    return {level: 0 for level in MasteryLevel}


@dataclass
class ClassAnalytics:
    """Mastery analytics for one class."""

    class_id: str
    subject_id: str | None = None
    status: AnalyticsStatus = AnalyticsStatus.EMPTY
    student_count: int = 0
    assessed_student_count: int = 0
    overall_mastery: float = 0.0
    mastery_level: MasteryLevel = MasteryLevel.NOVICE
    level_breakdown: LevelScores = field(default_factory=LevelScores)
    mastery_distribution: dict[MasteryLevel, int] = field(default_factory=_empty_distribution)
    topic_mastery: list[TopicMasterySummary] = field(default_factory=list)
    student_mastery: list[StudentMasterySummary] = field(default_factory=list)
    mastery_gaps: list[ClassMasteryGap] = field(default_factory=list)
    generated_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for API response."""
        return {
            "class_id": self.class_id,
            "subject_id": self.subject_id,
            "status": self.status.value,
            "student_count": self.student_count,
            "assessed_student_count": self.assessed_student_count,
            "overall_mastery": self.overall_mastery,
            "mastery_level": self.mastery_level.value,
            "level_breakdown": self.level_breakdown.to_dict(),
            "mastery_distribution": {
                level.value: count for level, count in self.mastery_distribution.items()
            },
            "topic_mastery": [t.to_dict() for t in self.topic_mastery],
            "student_mastery": [s.to_dict() for s in self.student_mastery],
            "mastery_gaps": [g.to_dict() for g in self.mastery_gaps],
            "generated_at": self.generated_at.isoformat(),
        }


def calculate_growth(
    results: list[AssessmentOutcome],
    period_days: int,
) -> Growth:
    """Growth between the earliest and latest scored results.

    Args:
        results: Assessment results inside the window, any order.
        period_days: Window length, reported back on the result.

    Returns:
        Latest minus earliest for the overall percentage and each level.
        All zeros with fewer than two scored results; a level missing
        from either endpoint has zero growth.
    """
    scored = [
        result
        for result in results
        if result.completed_at is not None and result.overall_percentage() is not None
    ]
    scored.sort(key=lambda result: ensure_utc(result.completed_at))

    if len(scored) < 2:
        return Growth(period_days=period_days, results_considered=len(scored))

    earliest, latest = scored[0], scored[-1]
    earliest_levels = earliest.level_percentages()
    latest_levels = latest.level_percentages()

    level_growth = {
        level: latest_levels[level] - earliest_levels[level]
        for level in COGNITIVE_LEVELS
        if level in earliest_levels and level in latest_levels
    }

    return Growth(
        overall=round(latest.overall_percentage() - earliest.overall_percentage(), SCORE_PRECISION),
        levels=LevelScores.from_mapping(level_growth).rounded(SCORE_PRECISION),
        period_days=period_days,
        results_considered=len(scored),
    )


class MasteryAnalyticsService:
    """Student and class mastery rollups.

    Attributes:
        settings: Proficiency threshold and growth window.
    """

    def __init__(
        self,
        store: MasteryRecordStore,
        roster: RosterProvider,
        history: AssessmentHistory,
        settings: MasterySettings | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize the analytics service.

        Args:
            store: Mastery record store (read only).
            roster: Class rosters and display names.
            history: Completed assessment results, for growth.
            settings: Mastery settings; defaults to application settings.
            clock: Source of the current time.
        """
        self._store = store
        self._roster = roster
        self._history = history
        self.settings = settings if settings is not None else get_settings().mastery
        self._clock = clock

    async def get_student_analytics(
        self,
        student_id: str,
        subject_id: str | None = None,
    ) -> StudentAnalytics:
        """Get mastery analytics for a student.

        Args:
            student_id: Student to analyze.
            subject_id: Restrict to one subject.

        Returns:
            StudentAnalytics; zero-valued with status "degraded" when the
            store cannot be reached.
        """
        window_days = self.settings.growth_window_days
        since = days_ago(window_days, self._clock())

        try:
            records = await self._store.find_many(
                RecordFilter(student_ids=(student_id,), subject_id=subject_id)
            )
            results = await self._history.list_results(student_id, since, subject_id)
        except StoreUnavailableError as e:
            logger.error(
                "Student analytics degraded",
                student_id=student_id,
                subject_id=subject_id,
                error=str(e),
            )
            return StudentAnalytics(
                student_id=student_id,
                subject_id=subject_id,
                status=AnalyticsStatus.DEGRADED,
                growth=Growth(period_days=window_days),
            )

        growth = calculate_growth(results, window_days)
        if not records:
            return StudentAnalytics(
                student_id=student_id,
                subject_id=subject_id,
                status=AnalyticsStatus.EMPTY,
                growth=growth,
            )

        overall = round(mean_overall(records), SCORE_PRECISION)
        return StudentAnalytics(
            student_id=student_id,
            subject_id=subject_id,
            status=AnalyticsStatus.OK,
            overall_mastery=overall,
            mastery_level=get_mastery_level(overall),
            topic_count=len(records),
            level_breakdown=mean_levels(records).rounded(SCORE_PRECISION),
            subject_breakdown=self._subject_breakdown(records),
            mastery_gaps=self._student_gaps(records),
            growth=growth,
        )

    async def get_class_analytics(
        self,
        class_id: str,
        subject_id: str | None = None,
    ) -> ClassAnalytics:
        """Get mastery analytics for a class.

        Args:
            class_id: Class to analyze.
            subject_id: Restrict to one subject.

        Returns:
            ClassAnalytics; zero-valued with status "degraded" when the
            store or roster cannot be reached.
        """
        try:
            student_ids = await self._roster.list_active_student_ids(class_id)
            records: list[MasteryRecord] = []
            if student_ids:
                records = await self._store.find_many(
                    RecordFilter(student_ids=tuple(student_ids), subject_id=subject_id)
                )
            by_student = group_by_student(records)
            display_names = (
                await self._roster.get_display_names(list(by_student)) if by_student else {}
            )
        except StoreUnavailableError as e:
            logger.error(
                "Class analytics degraded",
                class_id=class_id,
                subject_id=subject_id,
                error=str(e),
            )
            return ClassAnalytics(
                class_id=class_id,
                subject_id=subject_id,
                status=AnalyticsStatus.DEGRADED,
            )

        if not records:
            return ClassAnalytics(
                class_id=class_id,
                subject_id=subject_id,
                status=AnalyticsStatus.EMPTY,
                student_count=len(student_ids),
            )

        student_mastery = [
            self._student_summary(sid, student_records, display_names)
            for sid, student_records in by_student.items()
        ]
        student_mastery.sort(key=lambda s: (-s.overall_mastery, s.student_id))

        distribution = _empty_distribution()
        for summary in student_mastery:
            distribution[summary.mastery_level] += 1

        overall = round(mean(s.overall_mastery for s in student_mastery), SCORE_PRECISION)
        return ClassAnalytics(
            class_id=class_id,
            subject_id=subject_id,
            status=AnalyticsStatus.OK,
            student_count=len(student_ids),
            assessed_student_count=len(student_mastery),
            overall_mastery=overall,
            mastery_level=get_mastery_level(overall),
            level_breakdown=LevelScores.mean(
                [s.levels for s in student_mastery]
            ).rounded(SCORE_PRECISION),
            mastery_distribution=distribution,
            topic_mastery=self._topic_summaries(records),
            student_mastery=student_mastery,
            mastery_gaps=self._class_gaps(records, display_names),
        )

    def _subject_breakdown(self, records: list[MasteryRecord]) -> list[SubjectMastery]:
        breakdown = []
        for subject_id, subject_records in group_records(records, lambda r: r.subject_id).items():
            overall = round(mean_overall(subject_records), SCORE_PRECISION)
            breakdown.append(
                SubjectMastery(
                    subject_id=subject_id,
                    overall_mastery=overall,
                    levels=mean_levels(subject_records).rounded(SCORE_PRECISION),
                    topic_count=len(subject_records),
                    mastery_level=get_mastery_level(overall),
                )
            )
        return breakdown

    def _student_gaps(self, records: list[MasteryRecord]) -> list[MasteryGap]:
        threshold = self.settings.proficiency_threshold
        gaps = [
            MasteryGap(
                topic_id=record.topic_id,
                subject_id=record.subject_id,
                current_mastery=record.overall_mastery,
                level_gaps=record.levels.below(threshold),
            )
            for record in records
            if record.overall_mastery < threshold
        ]
        gaps.sort(key=lambda gap: (gap.current_mastery, gap.topic_id))
        return gaps

    @staticmethod
    def _student_summary(
        student_id: str,
        records: list[MasteryRecord],
        display_names: dict[str, str],
    ) -> StudentMasterySummary:
        overall = round(mean_overall(records), SCORE_PRECISION)
        return StudentMasterySummary(
            student_id=student_id,
            display_name=display_names.get(student_id) or student_id,
            overall_mastery=overall,
            levels=mean_levels(records).rounded(SCORE_PRECISION),
            mastery_level=get_mastery_level(overall),
        )

    @staticmethod
    def _topic_summaries(records: list[MasteryRecord]) -> list[TopicMasterySummary]:
        summaries = [
            TopicMasterySummary(
                topic_id=topic_id,
                subject_id=topic_records[0].subject_id,
                average_mastery=round(mean_overall(topic_records), SCORE_PRECISION),
                levels=mean_levels(topic_records).rounded(SCORE_PRECISION),
                student_count=len(topic_records),
            )
            for topic_id, topic_records in group_records(records, lambda r: r.topic_id).items()
        ]
        # Weakest topics first
        summaries.sort(key=lambda t: (t.average_mastery, t.topic_id))
        return summaries

    def _class_gaps(
        self,
        records: list[MasteryRecord],
        display_names: dict[str, str],
    ) -> list[ClassMasteryGap]:
        threshold = self.settings.proficiency_threshold
        gaps: list[ClassMasteryGap] = []

        for topic_id, topic_records in group_records(records, lambda r: r.topic_id).items():
            average = mean_overall(topic_records)
            if average >= threshold:
                continue

            struggling = [
                StrugglingStudent(
                    student_id=record.student_id,
                    display_name=display_names.get(record.student_id) or record.student_id,
                    mastery=record.overall_mastery,
                )
                for record in topic_records
                if record.overall_mastery < threshold
            ]
            struggling.sort(key=lambda s: (s.mastery, s.student_id))

            gaps.append(
                ClassMasteryGap(
                    topic_id=topic_id,
                    subject_id=topic_records[0].subject_id,
                    average_mastery=round(average, SCORE_PRECISION),
                    level_gaps=mean_levels(topic_records).below(threshold),
                    struggling_students=struggling,
                )
            )

        gaps.sort(key=lambda gap: (gap.average_mastery, gap.topic_id))
        return gaps
