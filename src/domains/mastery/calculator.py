# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Mastery calculator.

Turns a completed assessment into an updated per-topic mastery record.
Each assessed cognitive level is blended into the stored score with the
configured recent_weight, so the newest result dominates without
erasing history:

    new = stored * (1 - recent_weight) + percentage * recent_weight

Overall mastery is the weighted mean of the six levels. The whole new
record is computed before the single upsert, so a failed write never
leaves a partial update behind.

Usage:
    calculator = MasteryCalculator(
        store=SqlMasteryRecordStore(sessionmaker),
        curriculum=SqlCurriculumLookup(sessionmaker),
        roster=SqlRosterProvider(sessionmaker),
        cache=cache,
    )
    record = await calculator.update_from_assessment_result(student_id, outcome)
"""

from datetime import datetime
from typing import Callable

from src.core.config.settings import MasterySettings, get_settings
from src.domains.mastery.exceptions import NotFoundError, ValidationError
from src.domains.mastery.levels import CognitiveLevel, LevelScores, clamp_score, level_weights
from src.domains.mastery.ports import CurriculumLookup, MasteryRecordStore, RosterProvider
from src.domains.mastery.queries import affected_cache_keys, class_cache_prefix
from src.domains.mastery.records import AssessmentOutcome, MasteryRecord
from src.infrastructure.cache.mastery_cache import MasteryCache, NullCache
from src.utils.datetime import ensure_utc, utc_now
from src.utils.logging import get_logger

logger = get_logger(__name__)

SCORE_PRECISION = 2


class MasteryCalculator:
    """Derives and persists mastery records from assessment results.

    The calculator is the only writer of mastery records.

    Attributes:
        settings: Blend ratio and level weights.
    """

    def __init__(
        self,
        store: MasteryRecordStore,
        curriculum: CurriculumLookup,
        roster: RosterProvider,
        settings: MasterySettings | None = None,
        cache: MasteryCache | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize the calculator.

        Args:
            store: Mastery record store.
            curriculum: Subject and topic lookups.
            roster: Student lookups.
            settings: Mastery settings; defaults to application settings.
            cache: Standings cache to invalidate after writes.
            clock: Source of the current time.
        """
        self._store = store
        self._curriculum = curriculum
        self._roster = roster
        self.settings = settings if settings is not None else get_settings().mastery
        self._weights = level_weights(self.settings)
        self._cache = cache if cache is not None else NullCache()
        self._clock = clock

    async def update_from_assessment_result(
        self,
        student_id: str,
        result: AssessmentOutcome,
    ) -> MasteryRecord:
        """Fold one assessment result into the student's topic mastery.

        Args:
            student_id: Student the update is for; must match the result.
            result: Completed assessment outcome.

        Returns:
            The stored mastery record.

        Raises:
            ValidationError: If the result has no assessed level, carries a
                non-finite score or belongs to another student.
            NotFoundError: If the student, subject or topic does not exist.
            StoreUnavailableError: If a backing store cannot be reached.
        """
        if result.student_id != student_id:
            raise ValidationError(
                f"Assessment result belongs to student {result.student_id}, not {student_id}"
            )

        non_finite = result.non_finite_levels()
        if non_finite:
            raise ValidationError(
                "Assessment result has non-finite scores for levels: "
                + ", ".join(level.value for level in non_finite)
            )

        percentages = result.level_percentages()
        if not percentages:
            raise ValidationError("Assessment result has no scored cognitive level")

        await self._verify_references(student_id, result)

        existing = await self._store.find_first(student_id, result.topic_id)
        record = self._build_record(existing, result, percentages)

        stored = await self._store.upsert(record)

        await self._invalidate_standings(stored)

        logger.info(
            "Mastery updated",
            student_id=student_id,
            topic_id=stored.topic_id,
            overall_mastery=stored.overall_mastery,
            created=existing is None,
        )
        return stored

    async def get_topic_mastery(self, student_id: str, topic_id: str) -> MasteryRecord:
        """Get the student's mastery record for a topic.

        Raises:
            NotFoundError: If the student has no record for the topic.
            StoreUnavailableError: If the store cannot be reached.
        """
        record = await self._store.find_first(student_id, topic_id)
        if record is None:
            raise NotFoundError(f"No mastery record for student {student_id} on topic {topic_id}")
        return record

    def blend_levels(
        self,
        stored: LevelScores | None,
        percentages: dict[CognitiveLevel, float],
    ) -> LevelScores:
        """Combine stored level scores with new percentages.

        Args:
            stored: Current level scores, or None for a first assessment.
            percentages: Percentage per assessed level.

        Returns:
            New level scores, clamped and rounded. Levels not assessed keep
            their stored value (0 for a first assessment).
        """
        levels = stored if stored is not None else LevelScores()
        recent_weight = self.settings.recent_weight

        for level, percentage in percentages.items():
            if stored is None:
                value = percentage
            else:
                value = stored.get(level) * (1 - recent_weight) + percentage * recent_weight
            levels = levels.with_level(level, value)

        return levels.clamped().rounded(SCORE_PRECISION)

    def compute_overall(self, levels: LevelScores) -> float:
        """Weighted overall mastery of the level scores."""
        return round(clamp_score(levels.weighted_average(self._weights)), SCORE_PRECISION)

    async def _verify_references(self, student_id: str, result: AssessmentOutcome) -> None:
        if not await self._roster.student_exists(student_id):
            raise NotFoundError(f"Student {student_id} not found")
        if not await self._curriculum.subject_exists(result.subject_id):
            raise NotFoundError(f"Subject {result.subject_id} not found")
        if not await self._curriculum.topic_in_subject(result.topic_id, result.subject_id):
            raise NotFoundError(
                f"Topic {result.topic_id} not found in subject {result.subject_id}"
            )

    def _build_record(
        self,
        existing: MasteryRecord | None,
        result: AssessmentOutcome,
        percentages: dict[CognitiveLevel, float],
    ) -> MasteryRecord:
        now = self._clock()
        levels = self.blend_levels(existing.levels if existing else None, percentages)
        completed_at = ensure_utc(result.completed_at) or now
        if existing is not None and existing.last_assessment_date is not None:
            completed_at = max(completed_at, ensure_utc(existing.last_assessment_date))

        return MasteryRecord(
            id=existing.id if existing else None,
            student_id=result.student_id,
            topic_id=result.topic_id,
            subject_id=result.subject_id,
            levels=levels,
            overall_mastery=self.compute_overall(levels),
            last_assessment_date=completed_at,
            created_at=existing.created_at if existing else now,
            updated_at=max(now, existing.created_at) if existing else now,
        )

    async def _invalidate_standings(self, record: MasteryRecord) -> None:
        await self._cache.invalidate(*affected_cache_keys(record.subject_id, record.topic_id))
        await self._cache.invalidate_prefix(class_cache_prefix())
