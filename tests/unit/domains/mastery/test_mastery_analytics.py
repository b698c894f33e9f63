# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the mastery analytics service."""

from datetime import timedelta

import pytest

from src.domains.mastery.analytics import (
    AnalyticsStatus,
    MasteryAnalyticsService,
    calculate_growth,
)
from src.domains.mastery.levels import CognitiveLevel, LevelScores, MasteryLevel


@pytest.fixture
def service(record_store, roster, history, mastery_settings, fixed_clock):
    """Create analytics service over in-memory collaborators."""
    return MasteryAnalyticsService(
        store=record_store,
        roster=roster,
        history=history,
        settings=mastery_settings,
        clock=fixed_clock,
    )


@pytest.fixture
def student_records(make_record):
    """Three topic records for student-1 across two subjects."""
    return [
        make_record("student-1", 80.0, topic_id="topic-1", subject_id="subject-1"),
        make_record(
            "student-1",
            50.0,
            topic_id="topic-2",
            subject_id="subject-1",
            levels=LevelScores(
                remember=80.0, understand=60.0, apply=40.0, analyze=30.0, evaluate=75.0, create=20.0
            ),
        ),
        make_record("student-1", 65.0, topic_id="topic-3", subject_id="subject-2"),
    ]


class TestStudentAnalytics:
    """Tests for student rollups."""

    @pytest.mark.asyncio
    async def test_overall_and_breakdowns(self, service, record_store, student_records) -> None:
        """Test overall mean, subject breakdown and level breakdown."""
        record_store.records.extend(student_records)

        analytics = await service.get_student_analytics("student-1")

        assert analytics.status == AnalyticsStatus.OK
        assert analytics.overall_mastery == 65.0
        assert analytics.mastery_level == MasteryLevel.DEVELOPING
        assert analytics.topic_count == 3
        assert analytics.level_breakdown.remember == pytest.approx(75.0)

        by_subject = {s.subject_id: s for s in analytics.subject_breakdown}
        assert by_subject["subject-1"].overall_mastery == 65.0
        assert by_subject["subject-1"].topic_count == 2
        assert by_subject["subject-2"].overall_mastery == 65.0
        assert by_subject["subject-2"].topic_count == 1

    @pytest.mark.asyncio
    async def test_gaps_sorted_worst_first(self, service, record_store, student_records) -> None:
        """Test topics below threshold are listed ascending with their weak levels."""
        record_store.records.extend(student_records)

        analytics = await service.get_student_analytics("student-1")

        assert [g.topic_id for g in analytics.mastery_gaps] == ["topic-2", "topic-3"]
        assert analytics.mastery_gaps[0].current_mastery == 50.0
        assert analytics.mastery_gaps[0].level_gaps == [
            CognitiveLevel.UNDERSTAND,
            CognitiveLevel.APPLY,
            CognitiveLevel.ANALYZE,
            CognitiveLevel.CREATE,
        ]

    @pytest.mark.asyncio
    async def test_subject_filter(self, service, record_store, student_records) -> None:
        """Test analytics restricted to one subject."""
        record_store.records.extend(student_records)

        analytics = await service.get_student_analytics("student-1", subject_id="subject-2")

        assert analytics.subject_id == "subject-2"
        assert analytics.topic_count == 1
        assert analytics.overall_mastery == 65.0

    @pytest.mark.asyncio
    async def test_growth_over_window(
        self, service, record_store, history, student_records, make_outcome, fixed_now
    ) -> None:
        """Test growth is latest minus earliest result in the window."""
        record_store.records.extend(student_records)
        history.results.extend(
            [
                make_outcome(
                    scores={"remember": 1},
                    max_scores={"remember": 10},
                    completed_at=fixed_now - timedelta(days=45),
                ),
                make_outcome(
                    scores={"remember": 5, "apply": 4},
                    max_scores={"remember": 10, "apply": 10},
                    completed_at=fixed_now - timedelta(days=20),
                ),
                make_outcome(
                    scores={"remember": 9, "create": 3},
                    max_scores={"remember": 10, "create": 5},
                    completed_at=fixed_now - timedelta(days=2),
                ),
                make_outcome(
                    scores={"remember": 7},
                    max_scores={"remember": 10},
                    completed_at=fixed_now - timedelta(days=10),
                ),
            ]
        )

        analytics = await service.get_student_analytics("student-1")

        # 45% -> 80%
        assert analytics.growth.overall == 35.0
        assert analytics.growth.levels.remember == 40.0
        assert analytics.growth.levels.apply == 0.0
        assert analytics.growth.levels.create == 0.0
        assert analytics.growth.results_considered == 3
        assert analytics.growth.period_days == 30

    @pytest.mark.asyncio
    async def test_single_result_has_zero_growth(
        self, service, record_store, history, student_records, make_outcome, fixed_now
    ) -> None:
        """Test fewer than two results give zero growth everywhere."""
        record_store.records.extend(student_records)
        history.results.append(
            make_outcome(
                scores={"remember": 9},
                max_scores={"remember": 10},
                completed_at=fixed_now - timedelta(days=1),
            )
        )

        analytics = await service.get_student_analytics("student-1")

        assert analytics.growth.overall == 0
        assert analytics.growth.levels == LevelScores()
        assert analytics.growth.results_considered == 1

    @pytest.mark.asyncio
    async def test_no_records_is_empty(self, service) -> None:
        """Test a student without records gets a zero-valued empty result."""
        analytics = await service.get_student_analytics("student-1")

        assert analytics.status == AnalyticsStatus.EMPTY
        assert analytics.overall_mastery == 0.0
        assert analytics.subject_breakdown == []
        assert analytics.mastery_gaps == []
        assert analytics.growth.overall == 0

    @pytest.mark.asyncio
    async def test_store_failure_degrades(self, service, record_store, store_down) -> None:
        """Test an unreachable store returns a degraded zero-valued result."""
        record_store.fail_with = store_down

        analytics = await service.get_student_analytics("student-1", subject_id="subject-1")

        assert analytics.status == AnalyticsStatus.DEGRADED
        assert analytics.student_id == "student-1"
        assert analytics.subject_id == "subject-1"
        assert analytics.overall_mastery == 0.0
        assert analytics.level_breakdown == LevelScores()
        assert analytics.growth.period_days == 30

    @pytest.mark.asyncio
    async def test_history_failure_degrades(
        self, service, record_store, history, student_records, store_down
    ) -> None:
        """Test an unreachable assessment history also degrades."""
        record_store.records.extend(student_records)
        history.fail_with = store_down

        analytics = await service.get_student_analytics("student-1")

        assert analytics.status == AnalyticsStatus.DEGRADED
        assert analytics.overall_mastery == 0.0

    @pytest.mark.asyncio
    async def test_to_dict(self, service, record_store, student_records) -> None:
        """Test conversion to dictionary."""
        record_store.records.extend(student_records)

        data = (await service.get_student_analytics("student-1")).to_dict()

        assert data["status"] == "ok"
        assert data["mastery_level"] == "developing"
        assert data["mastery_gaps"][0]["level_gaps"] == ["understand", "apply", "analyze", "create"]
        assert data["growth"]["overall"] == 0


class TestClassAnalytics:
    """Tests for class rollups."""

    @pytest.fixture
    def class_records(self, make_record):
        """Records for two of the three class students plus an outsider."""
        return [
            make_record("student-1", 90.0, topic_id="topic-1"),
            make_record("student-1", 80.0, topic_id="topic-2"),
            make_record("student-2", 40.0, topic_id="topic-1"),
            make_record("outsider", 10.0, topic_id="topic-1"),
        ]

    @pytest.mark.asyncio
    async def test_class_rollup(self, service, record_store, class_records) -> None:
        """Test counts, averages and distribution."""
        record_store.records.extend(class_records)

        analytics = await service.get_class_analytics("class-1")

        assert analytics.status == AnalyticsStatus.OK
        assert analytics.student_count == 3
        assert analytics.assessed_student_count == 2
        assert analytics.overall_mastery == 62.5
        assert analytics.mastery_level == MasteryLevel.DEVELOPING
        assert analytics.level_breakdown.create == 62.5
        assert analytics.mastery_distribution[MasteryLevel.ADVANCED] == 1
        assert analytics.mastery_distribution[MasteryLevel.NOVICE] == 1
        assert analytics.mastery_distribution[MasteryLevel.EXPERT] == 0

    @pytest.mark.asyncio
    async def test_student_mastery_with_names(self, service, record_store, class_records) -> None:
        """Test per-student summaries carry display names, best first."""
        record_store.records.extend(class_records)

        analytics = await service.get_class_analytics("class-1")

        assert [(s.display_name, s.overall_mastery) for s in analytics.student_mastery] == [
            ("Ada Lovelace", 85.0),
            ("Alan Turing", 40.0),
        ]

    @pytest.mark.asyncio
    async def test_topic_mastery_and_gaps(self, service, record_store, class_records) -> None:
        """Test topic averages and gaps with struggling students."""
        record_store.records.extend(class_records)

        analytics = await service.get_class_analytics("class-1")

        topics = {t.topic_id: t for t in analytics.topic_mastery}
        assert topics["topic-1"].average_mastery == 65.0
        assert topics["topic-1"].student_count == 2
        assert topics["topic-2"].average_mastery == 80.0
        assert analytics.topic_mastery[0].topic_id == "topic-1"

        assert len(analytics.mastery_gaps) == 1
        gap = analytics.mastery_gaps[0]
        assert gap.topic_id == "topic-1"
        assert gap.level_gaps == list(CognitiveLevel)
        assert [(s.student_id, s.display_name, s.mastery) for s in gap.struggling_students] == [
            ("student-2", "Alan Turing", 40.0)
        ]

    @pytest.mark.asyncio
    async def test_gap_just_below_threshold(self, service, record_store, make_record) -> None:
        """Test a topic averaging just under the threshold is a gap for class and student."""
        record_store.records.extend(
            [
                make_record("student-1", 69.96, topic_id="topic-1"),
                make_record("student-2", 69.96, topic_id="topic-1"),
            ]
        )

        class_analytics = await service.get_class_analytics("class-1")
        student_analytics = await service.get_student_analytics("student-1")

        assert [gap.topic_id for gap in class_analytics.mastery_gaps] == ["topic-1"]
        gap = class_analytics.mastery_gaps[0]
        assert gap.average_mastery == 70.0
        assert [s.student_id for s in gap.struggling_students] == ["student-1", "student-2"]
        assert [g.topic_id for g in student_analytics.mastery_gaps] == ["topic-1"]

    @pytest.mark.asyncio
    async def test_topic_at_threshold_is_not_a_gap(self, service, record_store, make_record) -> None:
        """Test a topic averaging exactly the threshold is not a gap."""
        record_store.records.append(make_record("student-1", 70.0, topic_id="topic-1"))

        analytics = await service.get_class_analytics("class-1")

        assert analytics.mastery_gaps == []

    @pytest.mark.asyncio
    async def test_subject_filter(self, service, record_store, class_records, make_record) -> None:
        """Test class analytics restricted to one subject."""
        record_store.records.extend(class_records)
        record_store.records.append(
            make_record("student-3", 95.0, topic_id="topic-3", subject_id="subject-2")
        )

        analytics = await service.get_class_analytics("class-1", subject_id="subject-2")

        assert analytics.assessed_student_count == 1
        assert analytics.overall_mastery == 95.0
        assert analytics.mastery_gaps == []

    @pytest.mark.asyncio
    async def test_empty_class(self, service, record_store) -> None:
        """Test a class without students is empty and loads no records."""
        analytics = await service.get_class_analytics("class-9")

        assert analytics.status == AnalyticsStatus.EMPTY
        assert analytics.student_count == 0
        assert record_store.calls == []
        assert sum(analytics.mastery_distribution.values()) == 0

    @pytest.mark.asyncio
    async def test_class_without_records(self, service) -> None:
        """Test enrolled students without records give an empty result."""
        analytics = await service.get_class_analytics("class-1")

        assert analytics.status == AnalyticsStatus.EMPTY
        assert analytics.student_count == 3
        assert analytics.overall_mastery == 0.0

    @pytest.mark.asyncio
    async def test_roster_failure_degrades(self, service, roster, store_down) -> None:
        """Test an unreachable roster returns a degraded result."""
        roster.fail_with = store_down

        analytics = await service.get_class_analytics("class-1")

        assert analytics.status == AnalyticsStatus.DEGRADED
        assert analytics.student_count == 0
        assert analytics.to_dict()["status"] == "degraded"


class TestCalculateGrowth:
    """Tests for the growth helper."""

    def test_results_without_scores_ignored(self, make_outcome, fixed_now) -> None:
        """Test results lacking a scored level do not count."""
        results = [
            make_outcome(scores={"apply": 1}, max_scores={"apply": 0}, completed_at=fixed_now),
            make_outcome(
                scores={"apply": 5}, max_scores={"apply": 10}, completed_at=fixed_now - timedelta(days=1)
            ),
        ]

        growth = calculate_growth(results, 30)

        assert growth.overall == 0
        assert growth.results_considered == 1

    def test_unsorted_results(self, make_outcome, fixed_now) -> None:
        """Test endpoints are chosen by completion time, not input order."""
        results = [
            make_outcome(scores={"apply": 9}, max_scores={"apply": 10}, completed_at=fixed_now),
            make_outcome(
                scores={"apply": 6}, max_scores={"apply": 10}, completed_at=fixed_now - timedelta(days=5)
            ),
        ]

        growth = calculate_growth(results, 7)

        assert growth.overall == 30.0
        assert growth.levels.apply == 30.0
        assert growth.period_days == 7
