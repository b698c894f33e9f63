# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pytest fixtures for database integration tests.

Runs against a file-backed SQLite database through aiosqlite so the
SQL stores can be exercised without a PostgreSQL server. Set
TEST_DATABASE_URL to run the same tests against another database.
"""

import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from src.infrastructure.database.connection import create_sessionmaker
from src.infrastructure.database.models import (
    Base,
    Class,
    ClassStudent,
    Subject,
    Topic,
    User,
)


@pytest.fixture
def db_url(tmp_path: Path) -> str:
    """Get database URL for tests."""
    return os.environ.get("TEST_DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'mastery.db'}")


@pytest_asyncio.fixture(scope="function")
async def db_engine(db_url: str) -> AsyncGenerator[AsyncEngine, None]:
    """Create async engine with a fresh schema."""
    engine = create_async_engine(db_url, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_sessionmaker(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create the sessionmaker used by the SQL stores."""
    return create_sessionmaker(db_engine)


@pytest_asyncio.fixture(scope="function")
async def seeded_ids(db_sessionmaker: async_sessionmaker[AsyncSession]) -> dict[str, Any]:
    """Seed a subject with two topics, a second subject and a class roster.

    Roster of class "7A":
    - ada, alan: active students
    - grace: enrollment withdrawn
    - linus: suspended user
    - tim: teacher, not enrolled
    """
    enrolled_at = datetime(2026, 1, 10, tzinfo=timezone.utc)

    math = Subject(code="MATH", name="Mathematics")
    science = Subject(code="SCI", name="Science")
    users = {
        "ada": User(first_name="Ada", last_name="Lovelace"),
        "alan": User(first_name="Alan", last_name="Turing"),
        "grace": User(first_name="Grace", last_name="Hopper"),
        "linus": User(first_name="Linus", status="suspended"),
        "nameless": User(),
        "tim": User(first_name="Tim", last_name="Berners-Lee", user_type="teacher"),
    }
    klass = Class(code="7A", name="Class 7A")

    async with db_sessionmaker() as session:
        async with session.begin():
            session.add_all([math, science, klass, *users.values()])
            await session.flush()

            fractions = Topic(subject_id=math.id, code="FRAC", name="Fractions")
            algebra = Topic(subject_id=math.id, code="ALG", name="Algebra")
            cells = Topic(subject_id=science.id, code="CELL", name="Cells")
            session.add_all([fractions, algebra, cells])

            session.add_all(
                [
                    ClassStudent(class_id=klass.id, student_id=users["ada"].id, enrolled_at=enrolled_at),
                    ClassStudent(class_id=klass.id, student_id=users["alan"].id, enrolled_at=enrolled_at),
                    ClassStudent(
                        class_id=klass.id,
                        student_id=users["grace"].id,
                        status="withdrawn",
                        enrolled_at=enrolled_at,
                    ),
                    ClassStudent(class_id=klass.id, student_id=users["linus"].id, enrolled_at=enrolled_at),
                ]
            )
            await session.flush()

            return {
                "math": math.id,
                "science": science.id,
                "fractions": fractions.id,
                "algebra": algebra.id,
                "cells": cells.id,
                "class": klass.id,
                **{name: user.id for name, user in users.items()},
            }
