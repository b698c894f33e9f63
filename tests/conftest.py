# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pytest configuration and shared fixtures.

This module provides fixtures used across all test types:
- Unit tests
- Integration tests
"""

from collections.abc import Generator
from typing import Any

import pytest

from src.core.config.settings import MasterySettings, clear_settings_cache


# =============================================================================
# Environment Fixtures
# =============================================================================


@pytest.fixture(scope="session")
def test_environment() -> dict[str, str]:
    """Provide test environment variables.

    Returns:
        Dictionary of environment variables for testing.
    """
    return {
        "ENVIRONMENT": "test",
        "DEBUG": "true",
        "LOG_LEVEL": "DEBUG",
        "DATABASE_URL": "sqlite+aiosqlite:///:memory:",
        "REDIS_HOST": "localhost",
        "REDIS_PORT": "6379",
    }


@pytest.fixture(autouse=True)
def reset_settings_cache() -> Generator[None, None, None]:
    """Drop cached settings so environment patches take effect per test."""
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def mastery_settings() -> MasterySettings:
    """Provide mastery settings with default tuning."""
    return MasterySettings(
        recent_weight=0.6,
        remember_weight=0.10,
        understand_weight=0.15,
        apply_weight=0.15,
        analyze_weight=0.20,
        evaluate_weight=0.20,
        create_weight=0.20,
        proficiency_threshold=70.0,
        growth_window_days=30,
        default_partition_limit=10,
        max_partition_limit=500,
        partition_cache_ttl_seconds=60,
        snapshot_history_limit=10,
        snapshot_trend_days=90,
        snapshot_retention_days=365,
    )


# =============================================================================
# Marker Configuration
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )


# =============================================================================
# Helper Fixtures
# =============================================================================


@pytest.fixture
def sample_student_id() -> str:
    """Provide a sample student ID for testing."""
    return "550e8400-e29b-41d4-a716-446655440001"


@pytest.fixture
def sample_subject_id() -> str:
    """Provide a sample subject ID for testing."""
    return "550e8400-e29b-41d4-a716-446655440010"


@pytest.fixture
def sample_topic_id() -> str:
    """Provide a sample topic ID for testing."""
    return "550e8400-e29b-41d4-a716-446655440020"


@pytest.fixture
def sample_assessment_data(
    sample_student_id: str,
    sample_subject_id: str,
    sample_topic_id: str,
) -> dict[str, Any]:
    """Provide sample assessment result data for testing."""
    return {
        "student_id": sample_student_id,
        "topic_id": sample_topic_id,
        "subject_id": sample_subject_id,
        "scores": {"remember": 8, "apply": 6},
        "max_scores": {"remember": 10, "apply": 10},
    }
