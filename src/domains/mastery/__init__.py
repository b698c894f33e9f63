# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Mastery domain services.

This module provides:
- MasteryCalculator: folds assessment results into per-topic mastery records
- MasteryAnalyticsService: student and class rollups, gaps and growth
- MasteryPartitionEngine: ranked leaderboards per partition
- MasterySnapshotService: stored standings, history and rank trends

Usage:
    from src.domains.mastery import (
        MasteryPartitionEngine,
        PartitionQuery,
        SqlMasteryRecordStore,
        SqlRosterProvider,
    )
    from src.infrastructure.database import get_sessionmaker

    sessionmaker = get_sessionmaker()
    engine = MasteryPartitionEngine(
        store=SqlMasteryRecordStore(sessionmaker),
        roster=SqlRosterProvider(sessionmaker),
    )
    results = await engine.get_multiple_partitions([
        PartitionQuery(kind="global", limit=10),
        PartitionQuery(kind="class", scope_id=class_id, requesting_user_id=student_id),
    ])
"""

from src.domains.mastery.analytics import (
    AnalyticsStatus,
    ClassAnalytics,
    ClassMasteryGap,
    Growth,
    MasteryAnalyticsService,
    MasteryGap,
    StrugglingStudent,
    StudentAnalytics,
    StudentMasterySummary,
    SubjectMastery,
    TopicMasterySummary,
    calculate_growth,
)
from src.domains.mastery.calculator import MasteryCalculator
from src.domains.mastery.exceptions import (
    MasteryError,
    NotFoundError,
    StoreUnavailableError,
    ValidationError,
)
from src.domains.mastery.levels import (
    COGNITIVE_LEVELS,
    CognitiveLevel,
    LevelScores,
    MasteryLevel,
    get_mastery_level,
)
from src.domains.mastery.partition import (
    MasteryPartitionEngine,
    PartitionEntry,
    PartitionFailure,
    PartitionResult,
    RequestingUserEntry,
    Standing,
)
from src.domains.mastery.ports import (
    AssessmentHistory,
    CurriculumLookup,
    MasteryRecordStore,
    RosterProvider,
    SnapshotStore,
)
from src.domains.mastery.queries import PartitionKind, PartitionQuery
from src.domains.mastery.records import AssessmentOutcome, MasteryRecord, RecordFilter
from src.domains.mastery.snapshots import (
    MasterySnapshotService,
    PartitionSnapshot,
    PartitionTrend,
    PartitionTrendPoint,
    RankTrend,
    RankTrendPoint,
    build_rank_trend,
    summarize_snapshot,
)
from src.domains.mastery.stores import (
    SqlAssessmentHistory,
    SqlCurriculumLookup,
    SqlMasteryRecordStore,
    SqlRosterProvider,
    SqlSnapshotStore,
)

__all__ = [
    # Services
    "MasteryCalculator",
    "MasteryAnalyticsService",
    "MasteryPartitionEngine",
    "MasterySnapshotService",
    # Levels
    "COGNITIVE_LEVELS",
    "CognitiveLevel",
    "LevelScores",
    "MasteryLevel",
    "get_mastery_level",
    # Records and queries
    "AssessmentOutcome",
    "MasteryRecord",
    "RecordFilter",
    "PartitionKind",
    "PartitionQuery",
    # Results
    "PartitionEntry",
    "PartitionFailure",
    "PartitionResult",
    "RequestingUserEntry",
    "Standing",
    "PartitionSnapshot",
    "RankTrend",
    "RankTrendPoint",
    "PartitionTrend",
    "PartitionTrendPoint",
    "build_rank_trend",
    "summarize_snapshot",
    "AnalyticsStatus",
    "StudentAnalytics",
    "ClassAnalytics",
    "SubjectMastery",
    "MasteryGap",
    "ClassMasteryGap",
    "StrugglingStudent",
    "StudentMasterySummary",
    "TopicMasterySummary",
    "Growth",
    "calculate_growth",
    # Collaborators
    "MasteryRecordStore",
    "RosterProvider",
    "CurriculumLookup",
    "AssessmentHistory",
    "SnapshotStore",
    "SqlMasteryRecordStore",
    "SqlRosterProvider",
    "SqlCurriculumLookup",
    "SqlAssessmentHistory",
    "SqlSnapshotStore",
    # Errors
    "MasteryError",
    "ValidationError",
    "NotFoundError",
    "StoreUnavailableError",
]
