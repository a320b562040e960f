# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Reward ledger: one-shot XP grants for completed programs.

A learner earns a program's reward points exactly once, by claiming it
after the enrollment reaches completion. The claim flag, the XP increment
and the level update are applied in a single transaction:

1. Flip ``xp_claimed`` with a conditional UPDATE that only matches a
   completed, unclaimed enrollment. Of two racing claims only one sees a
   matching row.
2. Increment the learner's XP in the database, not in Python.
3. Raise the level if the new XP total crosses a boundary. Levels never
   go down.

Example:
    service = RewardService(db)
    result = await service.claim_reward(learner_id, program_id)
    print(result.xp_points, result.level)
"""

import logging

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.config import get_settings
from src.core.exceptions import (
    LearnerNotFoundError,
    PreconditionFailedError,
    ProgramNotFoundError,
)
from src.domains.enrollment.service import NotEnrolledError
from src.infrastructure.database.models import Enrollment, Learner, Program
from src.infrastructure.events import EventBus, EventTypes, get_event_bus
from src.models.reward import LearnerStatsResponse, RewardClaimResponse

logger = logging.getLogger(__name__)


class EnrollmentNotCompletedError(PreconditionFailedError):
    """Raised when claiming the reward of an unfinished program."""

    pass


class RewardAlreadyClaimedError(PreconditionFailedError):
    """Raised when the reward of a program was already claimed."""

    pass


def compute_level(xp_points: int, xp_per_level: int = 1000) -> int:
    """Compute the level reached with the given XP.

    Level 1 covers the first ``xp_per_level`` points, level 2 the next,
    and so on.

    Args:
        xp_points: Total XP of the learner.
        xp_per_level: XP needed per level.

    Returns:
        Level, at least 1.
    """
    if xp_per_level <= 0:
        raise ValueError("xp_per_level must be positive")
    return max(0, xp_points) // xp_per_level + 1


class RewardService:
    """Service for claiming program rewards and reading XP standing."""

    def __init__(
        self,
        db: AsyncSession,
        event_bus: EventBus | None = None,
        xp_per_level: int | None = None,
    ) -> None:
        """Initialize the reward service.

        Args:
            db: Async database session.
            event_bus: Event bus for domain events. Defaults to the process bus.
            xp_per_level: XP per level. Defaults to the configured value.
        """
        self.db = db
        self._event_bus = event_bus or get_event_bus()
        self._xp_per_level = xp_per_level or get_settings().rewards.xp_per_level

    async def claim_reward(self, learner_id: str, program_id: str) -> RewardClaimResponse:
        """Claim the XP reward of a completed program.

        Args:
            learner_id: Learner claiming the reward.
            program_id: Completed program.

        Returns:
            XP and level after the claim.

        Raises:
            NotEnrolledError: If the learner is not enrolled.
            EnrollmentNotCompletedError: If the program is not completed.
            RewardAlreadyClaimedError: If the reward was already claimed.
            LearnerNotFoundError: If the learner record does not exist.
        """
        flipped = await self.db.execute(
            update(Enrollment)
            .where(
                Enrollment.learner_id == learner_id,
                Enrollment.program_id == program_id,
                Enrollment.completed.is_(True),
                Enrollment.xp_claimed.is_(False),
            )
            .values(xp_claimed=True)
            .execution_options(synchronize_session=False)
        )

        if flipped.rowcount == 0:
            await self.db.rollback()
            await self._raise_claim_rejection(learner_id, program_id)

        result = await self.db.execute(
            select(Program.reward_points).where(Program.id == program_id)
        )
        reward_points = result.scalar_one_or_none()
        if reward_points is None:
            await self.db.rollback()
            raise ProgramNotFoundError(f"Program {program_id} not found")

        credited = await self.db.execute(
            update(Learner)
            .where(Learner.id == learner_id)
            .values(xp_points=Learner.xp_points + reward_points)
            .execution_options(synchronize_session=False)
        )
        if credited.rowcount == 0:
            await self.db.rollback()
            raise LearnerNotFoundError(f"Learner {learner_id} not found")

        result = await self.db.execute(
            select(Learner)
            .where(Learner.id == learner_id)
            .execution_options(populate_existing=True)
        )
        learner = result.scalar_one()

        previous_level = learner.level
        new_level = compute_level(learner.xp_points, self._xp_per_level)
        if new_level > previous_level:
            learner.level = new_level

        await self.db.commit()

        logger.info(
            "Reward claimed: learner=%s, program=%s, points=%d, xp=%d, level=%d",
            learner_id,
            program_id,
            reward_points,
            learner.xp_points,
            learner.level,
        )

        await self._event_bus.publish(
            EventTypes.Reward.CLAIMED,
            {
                "learner_id": learner_id,
                "program_id": program_id,
                "reward_points": reward_points,
                "xp_points": learner.xp_points,
            },
        )
        if learner.level > previous_level:
            await self._event_bus.publish(
                EventTypes.Reward.LEVEL_UP,
                {
                    "learner_id": learner_id,
                    "previous_level": previous_level,
                    "level": learner.level,
                },
            )

        return RewardClaimResponse(
            program_id=program_id,
            reward_points=reward_points,
            xp_points=learner.xp_points,
            level=learner.level,
            previous_level=previous_level,
            leveled_up=learner.level > previous_level,
        )

    async def get_learner_stats(self, learner_id: str) -> LearnerStatsResponse:
        """Get a learner's XP, level and program counters.

        Raises:
            LearnerNotFoundError: If the learner does not exist.
        """
        result = await self.db.execute(select(Learner).where(Learner.id == learner_id))
        learner = result.scalar_one_or_none()
        if not learner:
            raise LearnerNotFoundError(f"Learner {learner_id} not found")

        completed = await self._count_enrollments(
            Enrollment.learner_id == learner_id,
            Enrollment.completed.is_(True),
        )
        claimable = await self._count_enrollments(
            Enrollment.learner_id == learner_id,
            Enrollment.completed.is_(True),
            Enrollment.xp_claimed.is_(False),
        )

        next_level_xp = learner.level * self._xp_per_level

        return LearnerStatsResponse(
            learner_id=learner.id,
            xp_points=learner.xp_points,
            level=learner.level,
            next_level_xp=next_level_xp,
            xp_to_next_level=max(0, next_level_xp - learner.xp_points),
            completed_programs=completed,
            claimable_programs=claimable,
        )

    async def _count_enrollments(self, *conditions) -> int:
        result = await self.db.execute(
            select(func.count()).select_from(Enrollment).where(*conditions)
        )
        return int(result.scalar_one() or 0)

    async def _raise_claim_rejection(self, learner_id: str, program_id: str) -> None:
        """Explain why a claim matched no enrollment row."""
        result = await self.db.execute(
            select(Enrollment).where(
                Enrollment.learner_id == learner_id,
                Enrollment.program_id == program_id,
            )
        )
        enrollment = result.scalar_one_or_none()

        if enrollment is None:
            raise NotEnrolledError("You are not enrolled in this program")
        if enrollment.xp_claimed:
            logger.warning(
                "Rejected duplicate claim: learner=%s, program=%s",
                learner_id,
                program_id,
            )
            raise RewardAlreadyClaimedError("XP already claimed for this program")
        raise EnrollmentNotCompletedError("Program not completed yet")
