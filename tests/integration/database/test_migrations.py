# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Integration tests for the migration runner.

Runs the revisions against a throwaway SQLite database.
"""

import pytest
from sqlalchemy import create_engine, inspect

from src.infrastructure.database.migrations.runner import (
    MIGRATIONS,
    _get_pending_migrations,
    get_migration_status,
    run_migrations,
)


class TestPendingMigrations:
    """Test revision selection."""

    def test_fresh_database_needs_everything(self):
        assert _get_pending_migrations(None) == MIGRATIONS

    def test_latest_version_needs_nothing(self):
        assert _get_pending_migrations(MIGRATIONS[-1]) == []

    def test_unknown_versions_are_refused(self):
        assert _get_pending_migrations("999_unknown") == []
        assert _get_pending_migrations(None, target_revision="999_unknown") == []


@pytest.mark.integration
class TestRunMigrations:
    """Test applying migrations."""

    @pytest.mark.asyncio
    async def test_upgrade_creates_schema_once(self, database_url, sync_database_url):
        applied = await run_migrations(database_url)
        assert applied == ["001_initial_schema"]

        assert await run_migrations(database_url) == []

        engine = create_engine(sync_database_url)
        try:
            tables = set(inspect(engine).get_table_names())
        finally:
            engine.dispose()

        assert {
            "learners",
            "programs",
            "episodes",
            "episode_progress",
            "quizzes",
            "questions",
            "quiz_results",
            "enrollments",
            "discussion_messages",
            "alembic_version",
        } <= tables

    @pytest.mark.asyncio
    async def test_status_reports_pending_then_up_to_date(self, database_url):
        before = await get_migration_status(database_url)
        assert before["current_version"] is None
        assert before["is_up_to_date"] is False

        await run_migrations(database_url)

        after = await get_migration_status(database_url)
        assert after == {
            "current_version": "001_initial_schema",
            "latest_version": "001_initial_schema",
            "pending_migrations": [],
            "is_up_to_date": True,
        }
