# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Per-program statistics for the admin dashboard."""

import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.exceptions import ProgramNotFoundError
from src.domains.progress.ledger import progress_percentage
from src.infrastructure.database.models import Enrollment, Program, Quiz, QuizResult
from src.models.stats import ProgramStatsResponse
from src.utils.datetime import hours_ago

logger = logging.getLogger(__name__)

ACTIVE_WINDOW_HOURS = 24


class ProgressStatsService:
    """Aggregates enrollment and quiz figures for one program.

    Attributes:
        db: Async database session.
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get_program_stats(self, program_id: str) -> ProgramStatsResponse:
        """Compute dashboard figures for a program.

        Args:
            program_id: Program identifier.

        Returns:
            Enrollment count, completion rate, average quiz score and
            the number of learners active in the last 24 hours.

        Raises:
            ProgramNotFoundError: If the program does not exist.
        """
        exists = await self.db.execute(select(Program.id).where(Program.id == program_id))
        if exists.scalar_one_or_none() is None:
            raise ProgramNotFoundError(f"Program {program_id} not found")

        total_enrolled = await self._count(
            select(func.count(Enrollment.id)).where(Enrollment.program_id == program_id)
        )
        completed = await self._count(
            select(func.count(Enrollment.id)).where(
                Enrollment.program_id == program_id,
                Enrollment.completed.is_(True),
            )
        )

        result = await self.db.execute(
            select(func.sum(QuizResult.score), func.sum(QuizResult.total))
            .join(Quiz, Quiz.id == QuizResult.quiz_id)
            .where(Quiz.program_id == program_id, QuizResult.total > 0)
        )
        score_sum, total_sum = result.one()

        active_today = await self._count(
            select(func.count(func.distinct(QuizResult.learner_id)))
            .join(Quiz, Quiz.id == QuizResult.quiz_id)
            .where(
                Quiz.program_id == program_id,
                QuizResult.created_at >= hours_ago(ACTIVE_WINDOW_HOURS),
            )
        )

        return ProgramStatsResponse(
            program_id=program_id,
            total_enrolled=total_enrolled,
            completion_rate=progress_percentage(completed, total_enrolled),
            avg_score=progress_percentage(int(score_sum or 0), int(total_sum or 0)),
            active_today=active_today,
        )

    async def _count(self, query) -> int:
        result = await self.db.execute(query)
        return int(result.scalar_one() or 0)
