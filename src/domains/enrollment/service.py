# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Enrollment service: the state machine of a learner in a program.

States move forward only:

    NOT_ENROLLED -> ENROLLED -> COMPLETED -> REWARD_CLAIMED

Unenrolling is the only way back and discards the enrollment together
with the learner's episode marks and quiz results for the program.

Progress is never accepted from callers (apart from the admin override);
it is recomputed from the completion ledger. Recomputation first touches
the enrollment row with a no-op UPDATE, which takes the row lock on
PostgreSQL and the write lock on SQLite, and only then reads the ledger.
Concurrent recomputes are therefore serialized and the last one to run
sees every committed completion. The completed flag is only ever set,
never cleared.
"""

from __future__ import annotations

import logging

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.core.exceptions import (
    ForbiddenError,
    NotFoundError,
    PreconditionFailedError,
    ProgramNotFoundError,
)
from src.domains.progress.ledger import CompletionLedger
from src.infrastructure.database.models import (
    Enrollment,
    Episode,
    EpisodeProgress,
    Learner,
    Program,
    Quiz,
    QuizResult,
)
from src.infrastructure.events import EventBus, EventTypes, get_event_bus
from src.models.common import LearnerRole
from src.models.enrollment import (
    EnrollmentResponse,
    ParticipantResponse,
    ProgramSummary,
)
from src.models.progress import EpisodeCompletionResponse, EpisodeResponse
from src.utils.datetime import utc_now

logger = logging.getLogger(__name__)


class EpisodeNotFoundError(NotFoundError):
    """Raised when an episode is not found."""

    pass


class NotEnrolledError(PreconditionFailedError):
    """Raised when the learner is not enrolled in the program."""

    pass


class InvalidProgressOverrideError(PreconditionFailedError):
    """Raised when a manual override would reopen a completed enrollment."""

    pass


class EnrollmentService:
    """Service for the enrollment state machine.

    Attributes:
        db: Async database session.
    """

    def __init__(
        self,
        db: AsyncSession,
        event_bus: EventBus | None = None,
        ledger: CompletionLedger | None = None,
    ) -> None:
        """Initialize enrollment service.

        Args:
            db: Async database session.
            event_bus: Event bus for domain events. Defaults to the process bus.
            ledger: Completion ledger. Defaults to one bound to the same session.
        """
        self.db = db
        self._event_bus = event_bus or get_event_bus()
        self._ledger = ledger or CompletionLedger(db)

    # ========== State transitions ==========

    async def enroll(self, learner_id: str, program_id: str) -> EnrollmentResponse:
        """Enroll a learner in a program.

        Enrolling twice returns the existing enrollment unchanged.

        Args:
            learner_id: Learner identifier.
            program_id: Program identifier.

        Returns:
            The new or existing enrollment.

        Raises:
            ProgramNotFoundError: If the program does not exist.
        """
        program = await self._get_program(program_id)

        existing = await self._get_enrollment(learner_id, program_id)
        if existing:
            return self._to_response(existing, program)

        enrollment = Enrollment(
            learner_id=learner_id,
            program_id=program_id,
            progress=0,
            completed=False,
            xp_claimed=False,
        )
        self.db.add(enrollment)

        try:
            await self.db.commit()
        except IntegrityError:
            # A concurrent enroll for the same pair won the insert
            await self.db.rollback()
            existing = await self._get_enrollment(learner_id, program_id)
            if existing is None:
                raise
            return self._to_response(existing, program)

        logger.info("Enrolled learner: learner=%s, program=%s", learner_id, program_id)

        await self._event_bus.publish(
            EventTypes.Enrollment.CREATED,
            {"learner_id": learner_id, "program_id": program_id},
        )

        return self._to_response(enrollment, program)

    async def unenroll(
        self,
        learner_id: str,
        program_id: str,
        missing_ok: bool = False,
    ) -> bool:
        """Remove an enrollment and the learner's progress facts for the program.

        Episode marks and quiz results of the learner scoped to the program
        are deleted in the same transaction as the enrollment.

        Args:
            learner_id: Learner identifier.
            program_id: Program identifier.
            missing_ok: Return False instead of raising when not enrolled.

        Returns:
            True if an enrollment was removed.

        Raises:
            NotEnrolledError: If not enrolled and missing_ok is False.
        """
        enrollment = await self._get_enrollment(learner_id, program_id)
        if enrollment is None:
            if missing_ok:
                return False
            raise NotEnrolledError("You are not enrolled in this program")

        program_episodes = select(Episode.id).where(Episode.program_id == program_id)
        program_quizzes = select(Quiz.id).where(Quiz.program_id == program_id)

        await self.db.execute(
            delete(EpisodeProgress)
            .where(
                EpisodeProgress.learner_id == learner_id,
                EpisodeProgress.episode_id.in_(program_episodes),
            )
            .execution_options(synchronize_session=False)
        )
        await self.db.execute(
            delete(QuizResult)
            .where(
                QuizResult.learner_id == learner_id,
                QuizResult.quiz_id.in_(program_quizzes),
            )
            .execution_options(synchronize_session=False)
        )
        await self.db.delete(enrollment)
        await self.db.commit()

        logger.info("Removed enrollment: learner=%s, program=%s", learner_id, program_id)

        await self._event_bus.publish(
            EventTypes.Enrollment.REMOVED,
            {"learner_id": learner_id, "program_id": program_id},
        )
        return True

    async def recompute_progress(
        self,
        learner_id: str,
        program_id: str,
    ) -> EnrollmentResponse | None:
        """Recompute an enrollment's progress from the completion ledger.

        A completed enrollment keeps progress 100. An enrollment reaching
        100 is marked completed and gets completed_at exactly once.

        Args:
            learner_id: Learner identifier.
            program_id: Program identifier.

        Returns:
            The updated enrollment, or None if the learner is not enrolled.
        """
        enrollment = await self._lock_enrollment(learner_id, program_id)
        if enrollment is None:
            await self.db.rollback()
            logger.debug(
                "Skipped recompute without enrollment: learner=%s, program=%s",
                learner_id,
                program_id,
            )
            return None

        snapshot = await self._ledger.compute(learner_id, program_id)
        newly_completed = False

        if not enrollment.completed:
            enrollment.progress = snapshot.percentage
            if snapshot.percentage >= 100:
                enrollment.completed = True
                enrollment.completed_at = utc_now()
                newly_completed = True

        await self.db.commit()

        logger.info(
            "Recomputed progress: learner=%s, program=%s, progress=%d, completed=%s",
            learner_id,
            program_id,
            enrollment.progress,
            enrollment.completed,
        )

        await self._event_bus.publish(
            EventTypes.Enrollment.PROGRESS_UPDATED,
            {
                "learner_id": learner_id,
                "program_id": program_id,
                "progress": enrollment.progress,
            },
        )
        if newly_completed:
            await self._event_bus.publish(
                EventTypes.Enrollment.COMPLETED,
                {"learner_id": learner_id, "program_id": program_id},
            )

        return self._to_response(enrollment)

    async def set_manual_progress(
        self,
        learner_id: str,
        program_id: str,
        progress: int,
        completed: bool | None = None,
        requested_by_role: str = LearnerRole.ADMIN.value,
    ) -> EnrollmentResponse:
        """Overwrite an enrollment's progress, bypassing the ledger.

        completed forces progress to 100, and progress 100 forces
        completed. A completed enrollment cannot be reopened or lowered.

        Args:
            learner_id: Learner whose enrollment is overridden.
            program_id: Program identifier.
            progress: New progress percentage (0-100).
            completed: New completion flag. Progress 100 sets it regardless.
            requested_by_role: Role of the caller.

        Returns:
            The updated enrollment.

        Raises:
            ForbiddenError: If the caller is not an admin.
            NotEnrolledError: If the learner is not enrolled.
            InvalidProgressOverrideError: If the override would reopen a
                completed enrollment.
        """
        if requested_by_role != LearnerRole.ADMIN.value:
            raise ForbiddenError("Only admins can override progress")

        progress = max(0, min(100, progress))
        completed = bool(completed) or progress >= 100
        if completed:
            progress = 100

        enrollment = await self._lock_enrollment(learner_id, program_id)
        if enrollment is None:
            await self.db.rollback()
            raise NotEnrolledError("Learner is not enrolled in this program")

        if enrollment.completed and not completed:
            await self.db.rollback()
            raise InvalidProgressOverrideError(
                "A completed enrollment cannot be reopened or lowered",
                details={"learner_id": learner_id, "program_id": program_id},
            )

        newly_completed = completed and not enrollment.completed
        enrollment.progress = progress
        if newly_completed:
            enrollment.completed = True
            enrollment.completed_at = utc_now()

        await self.db.commit()

        logger.info(
            "Manual progress override: learner=%s, program=%s, progress=%d, completed=%s",
            learner_id,
            program_id,
            progress,
            enrollment.completed,
        )

        if newly_completed:
            await self._event_bus.publish(
                EventTypes.Enrollment.COMPLETED,
                {"learner_id": learner_id, "program_id": program_id, "manual": True},
            )

        return self._to_response(enrollment)

    async def mark_episode_complete(
        self,
        learner_id: str,
        episode_id: str,
    ) -> EpisodeCompletionResponse:
        """Mark an episode as watched and recompute the enrollment.

        Re-marking an episode is a no-op for the mark. The mark is
        committed before the recompute so that concurrent completions of
        different episodes are all visible to the last recompute.

        Args:
            learner_id: Learner identifier.
            episode_id: Episode identifier.

        Returns:
            The completion mark and the enrollment state, if enrolled.

        Raises:
            EpisodeNotFoundError: If the episode does not exist.
        """
        result = await self.db.execute(select(Episode).where(Episode.id == episode_id))
        episode = result.scalar_one_or_none()
        if not episode:
            raise EpisodeNotFoundError(f"Episode {episode_id} not found")

        mark = await self._get_episode_mark(learner_id, episode_id)
        if mark is None:
            mark = EpisodeProgress(
                learner_id=learner_id,
                episode_id=episode_id,
                completed=True,
                completed_at=utc_now(),
            )
            self.db.add(mark)
            try:
                await self.db.commit()
            except IntegrityError:
                # Same episode completed concurrently; keep the stored mark
                await self.db.rollback()
                mark = await self._get_episode_mark(learner_id, episode_id)
                if mark is None:
                    raise
            else:
                logger.info(
                    "Episode completed: learner=%s, episode=%s",
                    learner_id,
                    episode_id,
                )

        enrollment = await self.recompute_progress(learner_id, episode.program_id)

        return EpisodeCompletionResponse(
            episode_id=episode_id,
            completed=mark.completed,
            completed_at=mark.completed_at,
            enrollment=enrollment,
        )

    # ========== Queries ==========

    async def get_enrollment(self, learner_id: str, program_id: str) -> EnrollmentResponse:
        """Get a learner's enrollment in a program.

        Raises:
            NotEnrolledError: If the learner is not enrolled.
        """
        enrollment = await self._get_enrollment(learner_id, program_id, with_program=True)
        if not enrollment:
            raise NotEnrolledError("You are not enrolled in this program")
        return self._to_response(enrollment, enrollment.program)

    async def list_enrollments(self, learner_id: str) -> list[EnrollmentResponse]:
        """List a learner's enrollments, most recent first."""
        query = (
            select(Enrollment)
            .options(selectinload(Enrollment.program))
            .where(Enrollment.learner_id == learner_id)
            .order_by(Enrollment.enrolled_at.desc())
        )
        result = await self.db.execute(query)
        return [self._to_response(e, e.program) for e in result.scalars().all()]

    async def list_participants(self, program_id: str) -> list[ParticipantResponse]:
        """List the learners enrolled in a program, most recent first.

        Raises:
            ProgramNotFoundError: If the program does not exist.
        """
        await self._get_program(program_id)

        query = (
            select(Enrollment, Learner)
            .join(Learner, Learner.id == Enrollment.learner_id)
            .where(Enrollment.program_id == program_id)
            .order_by(Enrollment.enrolled_at.desc())
        )
        result = await self.db.execute(query)

        return [
            ParticipantResponse(
                enrollment=self._to_response(enrollment),
                name=learner.name,
                email=learner.email,
                avatar=learner.avatar,
            )
            for enrollment, learner in result.all()
        ]

    async def list_program_episodes(
        self,
        program_id: str,
        learner_id: str | None = None,
    ) -> list[EpisodeResponse]:
        """List a program's episodes in order, with the learner's marks.

        Raises:
            ProgramNotFoundError: If the program does not exist.
        """
        await self._get_program(program_id)

        result = await self.db.execute(
            select(Episode).where(Episode.program_id == program_id).order_by(Episode.order)
        )
        episodes = result.scalars().all()

        completed_ids: set[str] = set()
        if learner_id and episodes:
            marks = await self.db.execute(
                select(EpisodeProgress.episode_id).where(
                    EpisodeProgress.learner_id == learner_id,
                    EpisodeProgress.completed.is_(True),
                    EpisodeProgress.episode_id.in_([e.id for e in episodes]),
                )
            )
            completed_ids = set(marks.scalars().all())

        return [
            EpisodeResponse(
                id=e.id,
                program_id=e.program_id,
                title=e.title,
                video_url=e.video_url,
                duration=e.duration,
                order=e.order,
                completed=e.id in completed_ids,
            )
            for e in episodes
        ]

    # ========== Internals ==========

    async def _get_program(self, program_id: str) -> Program:
        """Get program by ID.

        Raises:
            ProgramNotFoundError: If not found.
        """
        result = await self.db.execute(select(Program).where(Program.id == program_id))
        program = result.scalar_one_or_none()
        if not program:
            raise ProgramNotFoundError(f"Program {program_id} not found")
        return program

    async def _get_enrollment(
        self,
        learner_id: str,
        program_id: str,
        with_program: bool = False,
    ) -> Enrollment | None:
        query = select(Enrollment).where(
            Enrollment.learner_id == learner_id,
            Enrollment.program_id == program_id,
        )
        if with_program:
            query = query.options(selectinload(Enrollment.program))
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def _lock_enrollment(self, learner_id: str, program_id: str) -> Enrollment | None:
        """Lock the enrollment row for the rest of the transaction and load it.

        Returns:
            The freshly loaded enrollment, or None if it does not exist.
        """
        touched = await self.db.execute(
            update(Enrollment)
            .where(
                Enrollment.learner_id == learner_id,
                Enrollment.program_id == program_id,
            )
            .values(progress=Enrollment.progress)
            .execution_options(synchronize_session=False)
        )
        if touched.rowcount == 0:
            return None

        result = await self.db.execute(
            select(Enrollment)
            .where(
                Enrollment.learner_id == learner_id,
                Enrollment.program_id == program_id,
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _get_episode_mark(self, learner_id: str, episode_id: str) -> EpisodeProgress | None:
        result = await self.db.execute(
            select(EpisodeProgress).where(
                EpisodeProgress.learner_id == learner_id,
                EpisodeProgress.episode_id == episode_id,
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    def _to_response(
        enrollment: Enrollment,
        program: Program | None = None,
    ) -> EnrollmentResponse:
        """Convert an enrollment model to its response.

        The program relationship is never lazy-loaded here; pass it
        explicitly when it has been loaded.
        """
        return EnrollmentResponse(
            id=enrollment.id,
            learner_id=enrollment.learner_id,
            program_id=enrollment.program_id,
            progress=enrollment.progress,
            completed=enrollment.completed,
            enrolled_at=enrollment.enrolled_at,
            completed_at=enrollment.completed_at,
            xp_claimed=enrollment.xp_claimed,
            claimable=enrollment.completed and not enrollment.xp_claimed,
            program=ProgramSummary(
                id=program.id,
                title=program.title,
                description=program.description,
                reward_points=program.reward_points,
            )
            if program is not None
            else None,
        )
