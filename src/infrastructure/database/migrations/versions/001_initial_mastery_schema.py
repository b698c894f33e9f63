# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Initial mastery schema.

Creates the roster and curriculum tables the mastery engine references,
the topic_masteries table (one row per student and topic) and the
assessment_results table used for growth calculation.

Revision ID: 001_initial_mastery_schema
Revises:
Create Date: 2025-11-02
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "001_initial_mastery_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

LEVELS = ("remember", "understand", "apply", "analyze", "evaluate", "create")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    """Create curriculum, roster and mastery tables."""

    # =========================================================================
    # Curriculum
    # =========================================================================
    op.create_table(
        "subjects",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("code", sa.String(50), nullable=False, unique=True),
        sa.Column("name", sa.String(255), nullable=False),
        *_timestamps(),
    )

    op.create_table(
        "topics",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "subject_id",
            sa.String(36),
            sa.ForeignKey("subjects.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("code", sa.String(50), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_topics_subject_id", "topics", ["subject_id"])

    # =========================================================================
    # Roster
    # =========================================================================
    op.create_table(
        "users",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("first_name", sa.String(100), nullable=True),
        sa.Column("last_name", sa.String(100), nullable=True),
        sa.Column("user_type", sa.String(20), nullable=False, server_default="student"),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        *_timestamps(),
    )

    op.create_table(
        "classes",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("code", sa.String(50), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        *_timestamps(),
    )

    op.create_table(
        "class_students",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "class_id",
            sa.String(36),
            sa.ForeignKey("classes.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "student_id",
            sa.String(36),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("enrolled_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("class_id", "student_id", name="uq_class_students_class_student"),
    )
    op.create_index("ix_class_students_class_id", "class_students", ["class_id"])
    op.create_index("ix_class_students_student_id", "class_students", ["student_id"])

    # =========================================================================
    # Mastery
    # =========================================================================
    op.create_table(
        "topic_masteries",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "student_id",
            sa.String(36),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "topic_id",
            sa.String(36),
            sa.ForeignKey("topics.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "subject_id",
            sa.String(36),
            sa.ForeignKey("subjects.id", ondelete="CASCADE"),
            nullable=False,
        ),
        *[
            sa.Column(f"{level}_level", sa.Float, nullable=False, server_default="0")
            for level in LEVELS
        ],
        sa.Column("overall_mastery", sa.Float, nullable=False, server_default="0"),
        sa.Column("last_assessment_date", sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("student_id", "topic_id", name="uq_topic_masteries_student_topic"),
    )
    op.create_index("ix_topic_masteries_subject_id", "topic_masteries", ["subject_id"])
    op.create_index("ix_topic_masteries_topic_id", "topic_masteries", ["topic_id"])
    op.create_index("ix_topic_masteries_student_id", "topic_masteries", ["student_id"])

    op.create_table(
        "assessment_results",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "student_id",
            sa.String(36),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "topic_id",
            sa.String(36),
            sa.ForeignKey("topics.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "subject_id",
            sa.String(36),
            sa.ForeignKey("subjects.id", ondelete="CASCADE"),
            nullable=False,
        ),
        *[
            column
            for level in LEVELS
            for column in (
                sa.Column(f"{level}_score", sa.Float, nullable=True),
                sa.Column(f"{level}_max", sa.Float, nullable=True),
            )
        ],
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_assessment_results_student_completed",
        "assessment_results",
        ["student_id", "completed_at"],
    )


def downgrade() -> None:
    """Drop mastery, roster and curriculum tables."""
    op.drop_table("assessment_results")
    op.drop_table("topic_masteries")
    op.drop_table("class_students")
    op.drop_table("classes")
    op.drop_table("users")
    op.drop_table("topics")
    op.drop_table("subjects")
