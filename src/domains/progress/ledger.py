# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Completion ledger: derives enrollment progress from stored completion facts.

A program contributes one item per episode and one per quiz. A learner
has completed an episode once it carries a completion mark, and a quiz
once at least one attempt passed. Repeated passing attempts of the same
quiz count once.

    total     = episodes + quizzes
    completed = completed_episodes + min(passed_quizzes, quizzes)
    progress  = round(100 * completed / total), or 0 when total is 0

Rounding is half-up (2/3 -> 67, 1/8 -> 13). The ledger only reads; the
enrollment service decides what to do with the figure.
"""

from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.infrastructure.database.models import Episode, EpisodeProgress, Quiz, QuizResult


def progress_percentage(completed_items: int, total_items: int) -> int:
    """Convert an item count into a whole percentage, rounding half up.

    Args:
        completed_items: Number of finished items.
        total_items: Number of items in the program.

    Returns:
        Percentage in [0, 100]. Zero for an empty program.
    """
    if total_items <= 0:
        return 0
    completed_items = max(0, min(completed_items, total_items))
    return (200 * completed_items + total_items) // (2 * total_items)


@dataclass(frozen=True)
class ProgressSnapshot:
    """Counts behind a learner's progress in one program."""

    episode_count: int
    quiz_count: int
    completed_episodes: int
    passed_quizzes: int

    @property
    def total_items(self) -> int:
        return self.episode_count + self.quiz_count

    @property
    def completed_items(self) -> int:
        return self.completed_episodes + min(self.passed_quizzes, self.quiz_count)

    @property
    def percentage(self) -> int:
        return progress_percentage(self.completed_items, self.total_items)

    @property
    def is_complete(self) -> bool:
        return self.total_items > 0 and self.percentage >= 100


class CompletionLedger:
    """Read-only aggregation over episode marks and quiz results.

    Attributes:
        db: Async database session.
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def compute(self, learner_id: str, program_id: str) -> ProgressSnapshot:
        """Compute the learner's progress snapshot for a program.

        Args:
            learner_id: Learner identifier.
            program_id: Program identifier.

        Returns:
            ProgressSnapshot with the four underlying counts.
        """
        episode_count = await self._scalar(
            select(func.count(Episode.id)).where(Episode.program_id == program_id)
        )
        quiz_count = await self._scalar(
            select(func.count(Quiz.id)).where(Quiz.program_id == program_id)
        )
        completed_episodes = await self._scalar(
            select(func.count(EpisodeProgress.id))
            .join(Episode, Episode.id == EpisodeProgress.episode_id)
            .where(
                EpisodeProgress.learner_id == learner_id,
                EpisodeProgress.completed.is_(True),
                Episode.program_id == program_id,
            )
        )
        passed_quizzes = await self._scalar(
            select(func.count(func.distinct(QuizResult.quiz_id)))
            .join(Quiz, Quiz.id == QuizResult.quiz_id)
            .where(
                QuizResult.learner_id == learner_id,
                QuizResult.passed.is_(True),
                Quiz.program_id == program_id,
            )
        )

        return ProgressSnapshot(
            episode_count=episode_count,
            quiz_count=quiz_count,
            completed_episodes=completed_episodes,
            passed_quizzes=passed_quizzes,
        )

    async def _scalar(self, query) -> int:
        result = await self.db.execute(query)
        return int(result.scalar_one() or 0)
