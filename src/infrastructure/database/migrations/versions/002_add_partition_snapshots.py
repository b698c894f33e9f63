# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Add partition snapshots.

Stores the ranked standings of a leaderboard partition at a point in
time, for leaderboard history and per-student rank trends.

Revision ID: 002_add_partition_snapshots
Revises: 001_initial_mastery_schema
Create Date: 2026-10-18
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "002_add_partition_snapshots"
down_revision: Union[str, None] = "001_initial_mastery_schema"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create partition_snapshots table."""
    op.create_table(
        "partition_snapshots",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("partition_key", sa.String(255), nullable=False),
        sa.Column("kind", sa.String(30), nullable=False),
        sa.Column("scope_id", sa.String(36), nullable=True),
        sa.Column("cognitive_level", sa.String(20), nullable=True),
        sa.Column("student_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("standings", sa.JSON, nullable=False),
        sa.Column("taken_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_partition_snapshots_key_taken_at",
        "partition_snapshots",
        ["partition_key", "taken_at"],
    )
    op.create_index("ix_partition_snapshots_taken_at", "partition_snapshots", ["taken_at"])


def downgrade() -> None:
    """Drop partition_snapshots table."""
    op.drop_table("partition_snapshots")
