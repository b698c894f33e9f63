# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Mastery record and assessment result models.

TopicMastery holds one row per (student, topic) with a score for each
Bloom's Taxonomy level. AssessmentResult rows are written by the grading
workflow and read here for growth calculation.

StandingsSnapshot rows keep the full ranked standings of a partition at a
point in time for leaderboard history and rank trends.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Float, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from src.infrastructure.database.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from src.utils.datetime import utc_now


class TopicMastery(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Per-student, per-topic cognitive mastery."""

    __tablename__ = "topic_masteries"

    student_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    topic_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("topics.id", ondelete="CASCADE"),
        nullable=False,
    )
    subject_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("subjects.id", ondelete="CASCADE"),
        nullable=False,
    )

    remember_level: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    understand_level: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    apply_level: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    analyze_level: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    evaluate_level: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    create_level: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    overall_mastery: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    last_assessment_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
    )

    __table_args__ = (
        UniqueConstraint("student_id", "topic_id", name="uq_topic_masteries_student_topic"),
        Index("ix_topic_masteries_subject_id", "subject_id"),
        Index("ix_topic_masteries_topic_id", "topic_id"),
        Index("ix_topic_masteries_student_id", "student_id"),
    )


class AssessmentResult(UUIDPrimaryKeyMixin, Base):
    """Completed assessment result with per-level raw and max scores.

    A level column pair left NULL means the assessment did not cover it.
    """

    __tablename__ = "assessment_results"

    student_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    topic_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("topics.id", ondelete="CASCADE"),
        nullable=False,
    )
    subject_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("subjects.id", ondelete="CASCADE"),
        nullable=False,
    )

    remember_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    remember_max: Mapped[float | None] = mapped_column(Float, nullable=True)
    understand_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    understand_max: Mapped[float | None] = mapped_column(Float, nullable=True)
    apply_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    apply_max: Mapped[float | None] = mapped_column(Float, nullable=True)
    analyze_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    analyze_max: Mapped[float | None] = mapped_column(Float, nullable=True)
    evaluate_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    evaluate_max: Mapped[float | None] = mapped_column(Float, nullable=True)
    create_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    create_max: Mapped[float | None] = mapped_column(Float, nullable=True)

    completed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
    )

    __table_args__ = (
        Index("ix_assessment_results_student_completed", "student_id", "completed_at"),
    )


class StandingsSnapshot(UUIDPrimaryKeyMixin, Base):
    """Ranked standings of one partition captured at taken_at.

    standings holds the serialized Standing list, best rank first.
    """

    __tablename__ = "partition_snapshots"

    partition_key: Mapped[str] = mapped_column(String(255), nullable=False)
    kind: Mapped[str] = mapped_column(String(30), nullable=False)
    scope_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    cognitive_level: Mapped[str | None] = mapped_column(String(20), nullable=True)
    student_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    standings: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    taken_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
    )

    __table_args__ = (
        Index("ix_partition_snapshots_key_taken_at", "partition_key", "taken_at"),
        Index("ix_partition_snapshots_taken_at", "taken_at"),
    )
