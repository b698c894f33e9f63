# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""SQLAlchemy ORM models."""

from src.infrastructure.database.models.base import (
    Base,
    TimestampMixin,
    UUIDPrimaryKeyMixin,
    generate_id,
)
from src.infrastructure.database.models.curriculum import Subject, Topic
from src.infrastructure.database.models.mastery import (
    AssessmentResult,
    StandingsSnapshot,
    TopicMastery,
)
from src.infrastructure.database.models.school import Class, ClassStudent, User

__all__ = [
    "Base",
    "TimestampMixin",
    "UUIDPrimaryKeyMixin",
    "generate_id",
    "Subject",
    "Topic",
    "User",
    "Class",
    "ClassStudent",
    "TopicMastery",
    "AssessmentResult",
    "StandingsSnapshot",
]
