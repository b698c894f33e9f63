# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for cognitive levels, level scores and mastery bands."""

import pytest

from src.domains.mastery.levels import (
    COGNITIVE_LEVELS,
    CognitiveLevel,
    LevelScores,
    MasteryLevel,
    clamp_score,
    get_mastery_level,
    level_weights,
)
from src.domains.mastery.records import AssessmentOutcome


class TestMasteryLevel:
    """Tests for score to mastery band mapping."""

    @pytest.mark.parametrize(
        "score,expected",
        [
            (100.0, MasteryLevel.EXPERT),
            (90.0, MasteryLevel.EXPERT),
            (89.9, MasteryLevel.ADVANCED),
            (80.0, MasteryLevel.ADVANCED),
            (70.0, MasteryLevel.PROFICIENT),
            (69.99, MasteryLevel.DEVELOPING),
            (60.0, MasteryLevel.DEVELOPING),
            (59.9, MasteryLevel.NOVICE),
            (0.0, MasteryLevel.NOVICE),
        ],
    )
    def test_band_boundaries(self, score: float, expected: MasteryLevel) -> None:
        """Test each band starts at its lower bound."""
        assert get_mastery_level(score) == expected

    def test_clamp_score(self) -> None:
        """Test scores are clamped to 0-100."""
        assert clamp_score(-5) == 0.0
        assert clamp_score(150) == 100.0
        assert clamp_score(42.5) == 42.5


class TestLevelScores:
    """Tests for the per-level score record."""

    def test_levels_in_taxonomy_order(self) -> None:
        """Test iteration follows Bloom's Taxonomy order."""
        scores = LevelScores(1, 2, 3, 4, 5, 6)

        assert [level for level, _ in scores.for_each_level()] == list(COGNITIVE_LEVELS)
        assert [value for _, value in scores.for_each_level()] == [1, 2, 3, 4, 5, 6]
        assert COGNITIVE_LEVELS[0] == CognitiveLevel.REMEMBER
        assert COGNITIVE_LEVELS[-1] == CognitiveLevel.CREATE

    def test_get_and_with_level(self) -> None:
        """Test single level access and replacement."""
        scores = LevelScores(analyze=40.0)

        updated = scores.with_level(CognitiveLevel.ANALYZE, 75.0)

        assert scores.get(CognitiveLevel.ANALYZE) == 40.0
        assert updated.get(CognitiveLevel.ANALYZE) == 75.0
        assert updated.remember == 0.0

    def test_mean_of_empty_sequence_is_zero(self) -> None:
        """Test mean of nothing yields zero scores."""
        assert LevelScores.mean([]) == LevelScores()

    def test_mean_per_level(self) -> None:
        """Test per-level mean of several score records."""
        result = LevelScores.mean([LevelScores(remember=80, create=20), LevelScores(remember=60, create=40)])

        assert result.remember == 70.0
        assert result.create == 30.0
        assert result.apply == 0.0

    def test_weighted_average(self, mastery_settings) -> None:
        """Test weighted mean uses configured weights."""
        scores = LevelScores(remember=100.0)

        assert scores.weighted_average(level_weights(mastery_settings)) == pytest.approx(10.0)

    def test_weighted_average_rejects_zero_weights(self) -> None:
        """Test zero weight sum is an error."""
        with pytest.raises(ValueError):
            LevelScores(remember=50).weighted_average(LevelScores())

    def test_clamped_and_rounded(self) -> None:
        """Test clamping and rounding apply to every level."""
        scores = LevelScores(remember=120.0, understand=-3.0, apply=33.333)

        result = scores.clamped().rounded(1)

        assert result.remember == 100.0
        assert result.understand == 0.0
        assert result.apply == 33.3

    def test_below_threshold(self) -> None:
        """Test levels under a threshold are listed in order."""
        scores = LevelScores(remember=90, understand=50, apply=70, analyze=69.9, evaluate=80, create=10)

        assert scores.below(70) == [
            CognitiveLevel.UNDERSTAND,
            CognitiveLevel.ANALYZE,
            CognitiveLevel.CREATE,
        ]

    def test_dict_conversion(self) -> None:
        """Test conversion to and from level-name dictionaries."""
        scores = LevelScores(remember=1, understand=2, apply=3, analyze=4, evaluate=5, create=6)

        data = scores.to_dict()

        assert data == {
            "remember": 1,
            "understand": 2,
            "apply": 3,
            "analyze": 4,
            "evaluate": 5,
            "create": 6,
        }
        assert LevelScores.from_dict(data) == scores


class TestAssessmentOutcome:
    """Tests for assessment percentage calculation."""

    def test_present_levels_require_positive_max(self) -> None:
        """Test a level counts only with a score and a positive max."""
        outcome = AssessmentOutcome(
            student_id="s",
            topic_id="t",
            subject_id="sub",
            scores={"remember": 5, "apply": 3, "create": 1},
            max_scores={"remember": 10, "apply": 0, "analyze": 10},
        )

        assert outcome.present_levels() == [CognitiveLevel.REMEMBER]
        assert outcome.level_percentages() == {CognitiveLevel.REMEMBER: 50.0}

    def test_percentages_are_clamped(self) -> None:
        """Test over-max scores clamp to 100."""
        outcome = AssessmentOutcome(
            student_id="s",
            topic_id="t",
            subject_id="sub",
            scores={"evaluate": 12},
            max_scores={"evaluate": 10},
        )

        assert outcome.level_percentages()[CognitiveLevel.EVALUATE] == 100.0
        assert outcome.overall_percentage() == 100.0

    def test_overall_percentage_uses_totals(self) -> None:
        """Test overall percentage is total score over total max."""
        outcome = AssessmentOutcome(
            student_id="s",
            topic_id="t",
            subject_id="sub",
            scores={"remember": 9, "create": 1},
            max_scores={"remember": 10, "create": 10},
        )

        assert outcome.overall_percentage() == 50.0

    def test_overall_percentage_without_levels(self) -> None:
        """Test no present level yields no overall percentage."""
        outcome = AssessmentOutcome(student_id="s", topic_id="t", subject_id="sub")

        assert outcome.overall_percentage() is None
