# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pytest configuration and shared fixtures.

This module provides fixtures used across all test types:
- Unit tests (mocked sessions, fake connections)
- Integration tests (SQLite database, FastAPI test client)
"""

from collections.abc import AsyncGenerator, Generator
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.core.config import clear_settings_cache
from src.infrastructure.database.connection import create_engine_for_url
from src.infrastructure.database.models import (
    Base,
    Episode,
    Learner,
    Program,
    Question,
    Quiz,
)
from src.infrastructure.events import EventBus, reset_event_bus


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
        "JWT_SECRET_KEY": "test-secret-key-for-testing-only",
        "JWT_ALGORITHM": "HS256",
        "ACCESS_TOKEN_EXPIRE_MINUTES": "30",
        "DISCUSSION_REDIS_FANOUT": "false",
    }


@pytest.fixture(autouse=True)
def _isolated_event_bus() -> Generator[None, None, None]:
    """Give every test a fresh process event bus."""
    reset_event_bus()
    yield
    reset_event_bus()


# =============================================================================
# Marker Configuration
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test (uses a database)"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )


# =============================================================================
# Unit Test Fixtures
# =============================================================================


@pytest.fixture
def mock_db() -> AsyncMock:
    """Create a mock async database session."""
    db = AsyncMock()
    db.add = MagicMock()
    db.add_all = MagicMock()
    db.delete = AsyncMock()
    db.flush = AsyncMock()
    db.commit = AsyncMock()
    db.rollback = AsyncMock()
    db.refresh = AsyncMock()
    db.execute = AsyncMock()
    return db


@pytest.fixture
def event_bus() -> EventBus:
    """Provide an isolated event bus."""
    return EventBus()


@pytest.fixture
def recorded_events(event_bus: EventBus) -> list[tuple[str, dict[str, Any]]]:
    """Record every event published on the event_bus fixture."""
    events: list[tuple[str, dict[str, Any]]] = []

    async def record(event) -> None:
        events.append((event.event_type, event.payload))

    event_bus.subscribe("*", record)
    return events


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    """Async URL of a fresh SQLite database file."""
    return f"sqlite+aiosqlite:///{tmp_path / 'questlms_test.db'}"


@pytest.fixture
def sync_database_url(database_url: str) -> str:
    """Sync URL of the same database, for schema setup."""
    return database_url.replace("+aiosqlite", "")


@pytest.fixture
def create_schema(sync_database_url: str) -> Generator[None, None, None]:
    """Create every table before the test and drop them afterwards."""
    engine = create_engine(sync_database_url)
    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)
    yield
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest_asyncio.fixture
async def db_sessionmaker(
    database_url: str,
    create_schema: None,
) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Sessionmaker bound to the test database, configured like the app's."""
    engine = create_engine_for_url(database_url)
    yield async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(
    db_sessionmaker: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Async session on the test database."""
    async with db_sessionmaker() as session:
        yield session


@pytest_asyncio.fixture
async def learning_data(db_session: AsyncSession) -> dict[str, Any]:
    """Seed a learner, an admin and a program with 2 episodes and a 2-question quiz."""
    learner = Learner(name="Ada Learner", email="ada@questlms.dev", role="STUDENT")
    other = Learner(name="Bo Learner", email="bo@questlms.dev", role="STUDENT")
    admin = Learner(name="Cy Admin", email="cy@questlms.dev", role="ADMIN")
    program = Program(title="Orbital Mechanics", description="Basics", reward_points=600)
    db_session.add_all([learner, other, admin, program])
    await db_session.flush()

    episodes = [
        Episode(program_id=program.id, title="Kepler", order=1, duration=300),
        Episode(program_id=program.id, title="Hohmann", order=2, duration=420),
    ]
    quiz = Quiz(program_id=program.id)
    quiz.questions = [
        Question(text="2 + 2?", options=["3", "4", "5"], answer=1, order=0),
        Question(text="Capital of France?", options=["Paris", "Rome"], answer=0, order=1),
    ]
    db_session.add_all([*episodes, quiz])
    await db_session.commit()

    return {
        "learner": learner,
        "other": other,
        "admin": admin,
        "program": program,
        "episodes": episodes,
        "quiz": quiz,
    }


# =============================================================================
# Settings Fixtures
# =============================================================================


@pytest.fixture
def app_settings_env(
    monkeypatch: pytest.MonkeyPatch,
    test_environment: dict[str, str],
    database_url: str,
) -> Generator[None, None, None]:
    """Point the settings at the test database and test secrets."""
    for key, value in test_environment.items():
        monkeypatch.setenv(key, value)
    monkeypatch.setenv("DATABASE_URL", database_url)
    clear_settings_cache()
    yield
    clear_settings_cache()
