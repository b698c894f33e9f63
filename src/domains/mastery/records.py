# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Mastery record and assessment outcome types.

MasteryRecord is the persisted per-student-per-topic state. The
calculator is the only component that produces new records; analytics
and partitioning treat them as read-only.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from src.domains.mastery.levels import (
    COGNITIVE_LEVELS,
    CognitiveLevel,
    LevelScores,
    MasteryLevel,
    clamp_score,
    get_mastery_level,
)
from src.utils.datetime import format_iso, utc_now


class AssessmentOutcome(BaseModel):
    """Result of one completed assessment, as delivered to the calculator.

    Attributes:
        student_id: Student who took the assessment.
        topic_id: Assessed topic.
        subject_id: Subject the topic belongs to.
        scores: Raw score per cognitive level.
        max_scores: Maximum attainable score per cognitive level.
        completed_at: Completion time; None means "now" to the calculator.
    """

    model_config = ConfigDict(allow_inf_nan=False)

    student_id: str
    topic_id: str
    subject_id: str
    scores: dict[CognitiveLevel, float] = Field(default_factory=dict)
    max_scores: dict[CognitiveLevel, float] = Field(default_factory=dict)
    completed_at: datetime | None = None

    def present_levels(self) -> list[CognitiveLevel]:
        """Levels carrying both a score and a positive max score."""
        return [
            level
            for level in COGNITIVE_LEVELS
            if level in self.scores and self.max_scores.get(level, 0) > 0
        ]

    def non_finite_levels(self) -> list[CognitiveLevel]:
        """Levels whose score or max score is NaN or infinite."""
        return [
            level
            for level in COGNITIVE_LEVELS
            if not math.isfinite(self.scores.get(level, 0.0))
            or not math.isfinite(self.max_scores.get(level, 0.0))
        ]

    def level_percentages(self) -> dict[CognitiveLevel, float]:
        """Percentage per present level, clamped to 0-100."""
        return {
            level: clamp_score(self.scores[level] / self.max_scores[level] * 100)
            for level in self.present_levels()
        }

    def overall_percentage(self) -> float | None:
        """Sum of scores over sum of max scores, or None without present levels."""
        present = self.present_levels()
        if not present:
            return None
        total_max = sum(self.max_scores[level] for level in present)
        total_score = sum(self.scores[level] for level in present)
        return clamp_score(total_score / total_max * 100)


@dataclass
class MasteryRecord:
    """Mastery of one student on one topic."""

    student_id: str
    topic_id: str
    subject_id: str
    levels: LevelScores = field(default_factory=LevelScores)
    overall_mastery: float = 0.0
    last_assessment_date: datetime | None = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)
    id: str | None = None

    @property
    def mastery_level(self) -> MasteryLevel:
        return get_mastery_level(self.overall_mastery)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for API response."""
        return {
            "id": self.id,
            "student_id": self.student_id,
            "topic_id": self.topic_id,
            "subject_id": self.subject_id,
            "levels": self.levels.to_dict(),
            "overall_mastery": self.overall_mastery,
            "mastery_level": self.mastery_level.value,
            "last_assessment_date": format_iso(self.last_assessment_date),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass(frozen=True)
class RecordFilter:
    """Selection criteria for MasteryRecordStore.find_many.

    Every set field narrows the selection. student_ids=None means any
    student; an empty tuple matches nothing.
    """

    student_ids: tuple[str, ...] | None = None
    subject_id: str | None = None
    topic_id: str | None = None
