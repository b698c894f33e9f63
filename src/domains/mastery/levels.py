# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Bloom's Taxonomy levels and mastery bands.

LevelScores is the fixed record carrying one score per cognitive level.
Code iterates levels through for_each_level() instead of looking scores
up by string key.
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import TYPE_CHECKING, Iterator, Mapping, Sequence

if TYPE_CHECKING:
    from src.core.config.settings import MasterySettings

MIN_SCORE = 0.0
MAX_SCORE = 100.0


class CognitiveLevel(str, Enum):
    """Bloom's Taxonomy cognitive levels, lowest to highest."""

    REMEMBER = "remember"
    UNDERSTAND = "understand"
    APPLY = "apply"
    ANALYZE = "analyze"
    EVALUATE = "evaluate"
    CREATE = "create"


COGNITIVE_LEVELS: tuple[CognitiveLevel, ...] = tuple(CognitiveLevel)


class MasteryLevel(str, Enum):
    """Categorical label for a 0-100 mastery score."""

    NOVICE = "novice"
    DEVELOPING = "developing"
    PROFICIENT = "proficient"
    ADVANCED = "advanced"
    EXPERT = "expert"


# Lower bound of each band, checked highest first
MASTERY_LEVEL_BANDS: tuple[tuple[float, MasteryLevel], ...] = (
    (90.0, MasteryLevel.EXPERT),
    (80.0, MasteryLevel.ADVANCED),
    (70.0, MasteryLevel.PROFICIENT),
    (60.0, MasteryLevel.DEVELOPING),
)


def get_mastery_level(score: float) -> MasteryLevel:
    """Map a 0-100 score onto its mastery band.

    Args:
        score: Mastery score.

    Returns:
        The MasteryLevel whose band contains the score.
    """
    for lower_bound, level in MASTERY_LEVEL_BANDS:
        if score >= lower_bound:
            return level
    return MasteryLevel.NOVICE


def clamp_score(value: float) -> float:
    """Clamp a score into the 0-100 range."""
    return max(MIN_SCORE, min(MAX_SCORE, float(value)))


@dataclass(frozen=True)
class LevelScores:
    """One numeric value per cognitive level.

    Used for mastery scores, per-level averages, growth deltas and
    level weights alike.
    """

    remember: float = 0.0
    understand: float = 0.0
    apply: float = 0.0
    analyze: float = 0.0
    evaluate: float = 0.0
    create: float = 0.0

    def for_each_level(self) -> Iterator[tuple[CognitiveLevel, float]]:
        """Yield (level, value) pairs in taxonomy order."""
        yield CognitiveLevel.REMEMBER, self.remember
        yield CognitiveLevel.UNDERSTAND, self.understand
        yield CognitiveLevel.APPLY, self.apply
        yield CognitiveLevel.ANALYZE, self.analyze
        yield CognitiveLevel.EVALUATE, self.evaluate
        yield CognitiveLevel.CREATE, self.create

    def get(self, level: CognitiveLevel) -> float:
        """Return the value for a single level."""
        for candidate, value in self.for_each_level():
            if candidate == level:
                return value
        raise KeyError(level)

    def with_level(self, level: CognitiveLevel, value: float) -> "LevelScores":
        """Return a copy with one level replaced."""
        return replace(self, **{CognitiveLevel(level).value: value})

    def total(self) -> float:
        """Sum of all level values."""
        return sum(value for _, value in self.for_each_level())

    def weighted_average(self, weights: "LevelScores") -> float:
        """Weighted mean of the levels.

        Args:
            weights: Weight per level; must have a positive sum.

        Returns:
            Sum of weight * value divided by the sum of weights.
        """
        weight_total = weights.total()
        if weight_total <= 0:
            raise ValueError("Level weights must have a positive sum")
        weighted = sum(
            value * weights.get(level) for level, value in self.for_each_level()
        )
        return weighted / weight_total

    def clamped(self) -> "LevelScores":
        """Copy with every value clamped to 0-100."""
        return LevelScores.from_mapping(
            {level: clamp_score(value) for level, value in self.for_each_level()}
        )

    def rounded(self, ndigits: int = 1) -> "LevelScores":
        """Copy with every value rounded."""
        return LevelScores.from_mapping(
            {level: round(value, ndigits) for level, value in self.for_each_level()}
        )

    def below(self, threshold: float) -> list[CognitiveLevel]:
        """Levels whose value is strictly below threshold, in taxonomy order."""
        return [level for level, value in self.for_each_level() if value < threshold]

    def to_dict(self) -> dict[str, float]:
        """Convert to a level-name keyed dictionary."""
        return {level.value: value for level, value in self.for_each_level()}

    @classmethod
    def from_mapping(cls, values: Mapping[CognitiveLevel, float]) -> "LevelScores":
        """Build from a level-keyed mapping; missing levels are 0."""
        return cls(**{CognitiveLevel(level).value: float(value) for level, value in values.items()})

    @classmethod
    def from_dict(cls, values: Mapping[str, float]) -> "LevelScores":
        """Build from a level-name keyed dictionary (e.g. a cached payload)."""
        return cls.from_mapping({CognitiveLevel(name): value for name, value in values.items()})

    @classmethod
    def mean(cls, items: Sequence["LevelScores"]) -> "LevelScores":
        """Per-level arithmetic mean; all zeros for an empty sequence."""
        if not items:
            return cls()
        count = len(items)
        return cls.from_mapping(
            {
                level: sum(item.get(level) for item in items) / count
                for level in COGNITIVE_LEVELS
            }
        )


def level_weights(settings: "MasterySettings") -> LevelScores:
    """Build the overall-mastery weights from settings."""
    return LevelScores(
        remember=settings.remember_weight,
        understand=settings.understand_weight,
        apply=settings.apply_weight,
        analyze=settings.analyze_weight,
        evaluate=settings.evaluate_weight,
        create=settings.create_weight,
    )
