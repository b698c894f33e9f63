# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Grouping and averaging helpers shared by analytics and partitioning."""

from typing import Callable, Hashable, Iterable, TypeVar

from src.domains.mastery.levels import LevelScores
from src.domains.mastery.records import MasteryRecord

K = TypeVar("K", bound=Hashable)


def mean(values: Iterable[float]) -> float:
    """Arithmetic mean; 0.0 for no values."""
    items = list(values)
    if not items:
        return 0.0
    return sum(items) / len(items)


def group_records(
    records: Iterable[MasteryRecord],
    key: Callable[[MasteryRecord], K],
) -> dict[K, list[MasteryRecord]]:
    """Group records by key, keeping first-seen key order and load order within groups."""
    groups: dict[K, list[MasteryRecord]] = {}
    for record in records:
        groups.setdefault(key(record), []).append(record)
    return groups


def group_by_student(records: Iterable[MasteryRecord]) -> dict[str, list[MasteryRecord]]:
    return group_records(records, lambda record: record.student_id)


def mean_overall(records: list[MasteryRecord]) -> float:
    """Mean overall mastery of the records."""
    return mean(record.overall_mastery for record in records)


def mean_levels(records: list[MasteryRecord]) -> LevelScores:
    """Per-level mean of the records."""
    return LevelScores.mean([record.levels for record in records])
