"""Mastery Engine.

Cognitive-mastery aggregation for an education platform: per-topic mastery
records, student and class analytics, and ranked leaderboard partitions.

Copyright (C) 2025 Global Digital Labs (gdlabs.io)
SPDX-License-Identifier: LGPL-3.0-or-later
"""

__version__ = "1.0.0"
