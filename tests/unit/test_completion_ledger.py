# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the completion ledger and program statistics."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from src.core.exceptions import ProgramNotFoundError
from src.domains.progress import CompletionLedger, ProgressSnapshot, ProgressStatsService
from src.domains.progress.ledger import progress_percentage


def _count(value: int) -> MagicMock:
    result = MagicMock()
    result.scalar_one.return_value = value
    result.scalar_one_or_none.return_value = value
    return result


class TestProgressPercentage:
    """Tests for the rounding rule."""

    @pytest.mark.parametrize(
        ("completed", "total", "expected"),
        [
            (0, 3, 0),
            (1, 3, 33),
            (2, 3, 67),
            (3, 3, 100),
            (1, 8, 13),
            (1, 2, 50),
            (0, 0, 0),
        ],
    )
    def test_rounds_half_up(self, completed: int, total: int, expected: int) -> None:
        assert progress_percentage(completed, total) == expected

    def test_clamps_out_of_range_counts(self) -> None:
        assert progress_percentage(5, 3) == 100
        assert progress_percentage(-1, 3) == 0


class TestProgressSnapshot:
    """Tests for ProgressSnapshot."""

    def test_two_episodes_one_quiz(self) -> None:
        snapshot = ProgressSnapshot(
            episode_count=2,
            quiz_count=1,
            completed_episodes=1,
            passed_quizzes=0,
        )

        assert snapshot.total_items == 3
        assert snapshot.completed_items == 1
        assert snapshot.percentage == 33
        assert snapshot.is_complete is False

    def test_passed_quizzes_never_exceed_quiz_count(self) -> None:
        snapshot = ProgressSnapshot(
            episode_count=2,
            quiz_count=1,
            completed_episodes=2,
            passed_quizzes=3,
        )

        assert snapshot.completed_items == 3
        assert snapshot.percentage == 100
        assert snapshot.is_complete is True

    def test_empty_program_is_never_complete(self) -> None:
        snapshot = ProgressSnapshot(0, 0, 0, 0)

        assert snapshot.percentage == 0
        assert snapshot.is_complete is False


class TestCompletionLedger:
    """Tests for CompletionLedger.compute."""

    @pytest.mark.asyncio
    async def test_compute_reads_four_counts(self, mock_db: AsyncMock) -> None:
        mock_db.execute.side_effect = [_count(2), _count(1), _count(2), _count(1)]

        snapshot = await CompletionLedger(mock_db).compute("learner-1", "program-1")

        assert snapshot == ProgressSnapshot(
            episode_count=2,
            quiz_count=1,
            completed_episodes=2,
            passed_quizzes=1,
        )
        assert mock_db.execute.await_count == 4

    @pytest.mark.asyncio
    async def test_compute_treats_null_counts_as_zero(self, mock_db: AsyncMock) -> None:
        mock_db.execute.side_effect = [_count(None), _count(None), _count(None), _count(None)]

        snapshot = await CompletionLedger(mock_db).compute("learner-1", "program-1")

        assert snapshot.total_items == 0


class TestProgressStatsService:
    """Tests for ProgressStatsService."""

    @pytest.mark.asyncio
    async def test_unknown_program_raises(self, mock_db: AsyncMock) -> None:
        mock_db.execute.return_value = _count(None)

        with pytest.raises(ProgramNotFoundError):
            await ProgressStatsService(mock_db).get_program_stats("missing")

    @pytest.mark.asyncio
    async def test_program_stats(self, mock_db: AsyncMock) -> None:
        sums = MagicMock()
        sums.one.return_value = (7, 9)
        mock_db.execute.side_effect = [
            _count("program-1"),
            _count(4),
            _count(1),
            sums,
            _count(2),
        ]

        stats = await ProgressStatsService(mock_db).get_program_stats("program-1")

        assert stats.total_enrolled == 4
        assert stats.completion_rate == 25
        assert stats.avg_score == 78
        assert stats.active_today == 2

    @pytest.mark.asyncio
    async def test_program_without_attempts(self, mock_db: AsyncMock) -> None:
        sums = MagicMock()
        sums.one.return_value = (None, None)
        mock_db.execute.side_effect = [_count("program-1"), _count(0), _count(0), sums, _count(0)]

        stats = await ProgressStatsService(mock_db).get_program_stats("program-1")

        assert stats.completion_rate == 0
        assert stats.avg_score == 0
