# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Partition queries and their stable keys.

A partition key ("global", "subject:<id>", "class:<id>", ...) identifies
one leaderboard. It keys the batch result map and, with the
"partition:" prefix, the standings cache.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict

from src.domains.mastery.levels import CognitiveLevel

STANDINGS_CACHE_PREFIX = "partition:"


class PartitionKind(str, Enum):
    """Dimension a leaderboard is partitioned by."""

    GLOBAL = "global"
    SUBJECT = "subject"
    TOPIC = "topic"
    CLASS = "class"
    COGNITIVE_LEVEL = "cognitive_level"


# Kinds that are scoped by scope_id
SCOPED_KINDS = frozenset({PartitionKind.SUBJECT, PartitionKind.TOPIC, PartitionKind.CLASS})


class PartitionQuery(BaseModel):
    """Request for one leaderboard.

    Scope completeness and limit bounds are checked by the partition
    engine, so an incomplete query can still be built and reported as a
    per-key failure in a batch.

    Attributes:
        kind: Partition dimension.
        scope_id: Subject, topic or class id for scoped kinds.
        cognitive_level: Level to rank by for cognitive_level partitions.
        limit: Maximum entries returned; None uses the configured default.
        requesting_user_id: Student whose own rank is reported when outside the slice.
    """

    model_config = ConfigDict(frozen=True)

    kind: PartitionKind
    scope_id: str | None = None
    cognitive_level: CognitiveLevel | None = None
    limit: int | None = None
    requesting_user_id: str | None = None

    @property
    def partition_key(self) -> str:
        return build_partition_key(self.kind, self.scope_id, self.cognitive_level)


def build_partition_key(
    kind: PartitionKind,
    scope_id: str | None = None,
    cognitive_level: CognitiveLevel | None = None,
) -> str:
    """Build the stable key of a partition.

    Args:
        kind: Partition dimension.
        scope_id: Scope identifier for subject/topic/class partitions.
        cognitive_level: Level for cognitive_level partitions.

    Returns:
        "global", "<kind>:<scope_id>" or "cognitive_level:<level>". A
        missing scope yields the bare kind.
    """
    kind = PartitionKind(kind)
    if kind == PartitionKind.GLOBAL:
        return kind.value
    if kind == PartitionKind.COGNITIVE_LEVEL:
        if cognitive_level is None:
            return kind.value
        return f"{kind.value}:{CognitiveLevel(cognitive_level).value}"
    if scope_id is None:
        return kind.value
    return f"{kind.value}:{scope_id}"


def standings_cache_key(partition_key: str) -> str:
    """Cache key holding the ranked standings of a partition."""
    return f"{STANDINGS_CACHE_PREFIX}{partition_key}"


def affected_cache_keys(subject_id: str, topic_id: str) -> list[str]:
    """Standings keys a record for (subject_id, topic_id) participates in.

    Class partitions depend on rosters, so they are dropped by prefix
    (see class_cache_prefix) rather than listed here.
    """
    partition_keys = [
        build_partition_key(PartitionKind.GLOBAL),
        build_partition_key(PartitionKind.SUBJECT, subject_id),
        build_partition_key(PartitionKind.TOPIC, topic_id),
    ]
    partition_keys.extend(
        build_partition_key(PartitionKind.COGNITIVE_LEVEL, cognitive_level=level)
        for level in CognitiveLevel
    )
    return [standings_cache_key(key) for key in partition_keys]


def class_cache_prefix() -> str:
    """Cache key prefix shared by every class partition."""
    return standings_cache_key(f"{PartitionKind.CLASS.value}:")
