# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Quiz grading service.

Grading compares each answer with the question's correct option index.
A quiz is passed only with full marks. Every attempt is stored, passed
or not, and a passing attempt triggers a progress recompute of the
learner's enrollment in the quiz's program.

Correct answers never leave the service before grading: the learner
view of a quiz strips them, and the per-question breakdown is only
returned together with a grade.
"""

import logging
from collections.abc import Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.core.exceptions import (
    ForbiddenError,
    InvalidInputError,
    NotFoundError,
    ProgramNotFoundError,
)
from src.domains.enrollment.service import EnrollmentService
from src.domains.progress.ledger import progress_percentage
from src.infrastructure.database.models import Program, Question, Quiz, QuizResult
from src.infrastructure.events import EventBus, EventTypes, get_event_bus
from src.models.common import LearnerRole
from src.models.quiz import (
    QuestionAdminResponse,
    QuestionBreakdown,
    QuestionInput,
    QuestionPublic,
    QuizAdminResponse,
    QuizGradeResponse,
    QuizPublicResponse,
    QuizResultSummary,
    UpdateQuestionRequest,
)

logger = logging.getLogger(__name__)

MIN_OPTIONS = 2


class QuizNotFoundError(NotFoundError):
    """Raised when a quiz is not found."""

    pass


class QuestionNotFoundError(NotFoundError):
    """Raised when a question is not found."""

    pass


class InvalidAnswerCountError(InvalidInputError):
    """Raised when the answer count differs from the question count."""

    pass


class InvalidQuestionError(InvalidInputError):
    """Raised when authored question data is malformed."""

    pass


def validate_question(text: str, options: Sequence[str], answer: int) -> None:
    """Validate authored question data.

    Args:
        text: Question text.
        options: Answer options.
        answer: Index of the correct option.

    Raises:
        InvalidQuestionError: If the text is blank, there are fewer than
            two options, or the answer index is out of range.
    """
    if not text or not text.strip():
        raise InvalidQuestionError("Question text cannot be empty")
    if len(options) < MIN_OPTIONS:
        raise InvalidQuestionError(
            f"A question needs at least {MIN_OPTIONS} options",
            details={"options": len(options)},
        )
    if not 0 <= answer < len(options):
        raise InvalidQuestionError(
            "Answer index is out of range",
            details={"answer": answer, "options": len(options)},
        )


class QuizService:
    """Service for taking, grading and authoring quizzes."""

    def __init__(
        self,
        db: AsyncSession,
        event_bus: EventBus | None = None,
        enrollment_service: EnrollmentService | None = None,
    ) -> None:
        """Initialize quiz service.

        Args:
            db: Async database session.
            event_bus: Event bus for domain events. Defaults to the process bus.
            enrollment_service: Used to recompute progress after a pass.
        """
        self.db = db
        self._event_bus = event_bus or get_event_bus()
        self._enrollments = enrollment_service or EnrollmentService(db, event_bus=self._event_bus)

    # ========== Learner view ==========

    async def get_quiz_for_program(self, program_id: str) -> QuizPublicResponse:
        """Get a program's quiz without its correct answers.

        Raises:
            QuizNotFoundError: If the program has no quiz.
        """
        result = await self.db.execute(
            select(Quiz)
            .options(selectinload(Quiz.questions))
            .where(Quiz.program_id == program_id)
            .order_by(Quiz.created_at)
            .limit(1)
        )
        quiz = result.scalar_one_or_none()
        if not quiz:
            raise QuizNotFoundError(f"No quiz found for program {program_id}")

        return QuizPublicResponse(
            id=quiz.id,
            program_id=quiz.program_id,
            questions=[
                QuestionPublic(id=q.id, text=q.text, options=list(q.options), order=q.order)
                for q in quiz.questions
            ],
        )

    async def grade(
        self,
        quiz_id: str,
        learner_id: str,
        answers: Sequence[int],
    ) -> QuizGradeResponse:
        """Grade an attempt and store the result.

        Args:
            quiz_id: Quiz identifier.
            learner_id: Learner taking the quiz.
            answers: Selected option index per question, in question order.

        Returns:
            Score, pass flag and per-question breakdown.

        Raises:
            QuizNotFoundError: If the quiz does not exist.
            InvalidAnswerCountError: If the number of answers differs from
                the number of questions. Nothing is stored.
        """
        quiz = await self._get_quiz(quiz_id)

        if len(answers) != len(quiz.questions):
            raise InvalidAnswerCountError(
                "Answer count does not match question count",
                details={"expected": len(quiz.questions), "received": len(answers)},
            )

        breakdown = [
            QuestionBreakdown(
                question_id=q.id,
                question=q.text,
                selected=selected,
                correct=q.answer,
                is_correct=selected == q.answer,
            )
            for q, selected in zip(quiz.questions, answers)
        ]

        response = await self._record_attempt(quiz, learner_id, breakdown)
        await self._event_bus.publish(
            EventTypes.Quiz.GRADED,
            {
                "learner_id": learner_id,
                "quiz_id": quiz.id,
                "score": response.score,
                "total": response.total,
                "passed": response.passed,
            },
        )
        return response

    async def auto_pass(
        self,
        quiz_id: str,
        learner_id: str,
        requested_by_role: str,
    ) -> QuizGradeResponse:
        """Record a perfect attempt without answers.

        Args:
            quiz_id: Quiz identifier.
            learner_id: Learner credited with the pass.
            requested_by_role: Role of the caller.

        Raises:
            ForbiddenError: If the caller is not an admin.
            QuizNotFoundError: If the quiz does not exist.
        """
        self._require_admin(requested_by_role, "auto-pass quizzes")
        quiz = await self._get_quiz(quiz_id)

        breakdown = [
            QuestionBreakdown(
                question_id=q.id,
                question=q.text,
                selected=q.answer,
                correct=q.answer,
                is_correct=True,
            )
            for q in quiz.questions
        ]

        response = await self._record_attempt(quiz, learner_id, breakdown)
        logger.info("Quiz auto-passed: learner=%s, quiz=%s", learner_id, quiz.id)

        await self._event_bus.publish(
            EventTypes.Quiz.AUTO_PASSED,
            {"learner_id": learner_id, "quiz_id": quiz.id},
        )
        return response

    async def list_results(self, learner_id: str, quiz_id: str) -> list[QuizResultSummary]:
        """List a learner's attempts at a quiz, newest first."""
        result = await self.db.execute(
            select(QuizResult)
            .where(QuizResult.learner_id == learner_id, QuizResult.quiz_id == quiz_id)
            .order_by(QuizResult.created_at.desc())
        )
        return [
            QuizResultSummary(
                id=r.id,
                quiz_id=r.quiz_id,
                score=r.score,
                total=r.total,
                passed=r.passed,
                created_at=r.created_at,
            )
            for r in result.scalars().all()
        ]

    # ========== Authoring ==========

    async def create_quiz(
        self,
        program_id: str,
        questions: Sequence[QuestionInput],
        requested_by_role: str,
    ) -> QuizAdminResponse:
        """Create a quiz with its questions.

        Raises:
            ForbiddenError: If the caller is not an admin.
            ProgramNotFoundError: If the program does not exist.
            InvalidQuestionError: If any question is malformed.
        """
        self._require_admin(requested_by_role, "author quizzes")

        result = await self.db.execute(select(Program.id).where(Program.id == program_id))
        if result.scalar_one_or_none() is None:
            raise ProgramNotFoundError(f"Program {program_id} not found")

        for item in questions:
            validate_question(item.text, item.options, item.answer)

        quiz = Quiz(program_id=program_id)
        quiz.questions = [
            Question(
                text=item.text.strip(),
                options=list(item.options),
                answer=item.answer,
                order=item.order if item.order is not None else index,
            )
            for index, item in enumerate(questions)
        ]
        self.db.add(quiz)
        await self.db.commit()

        logger.info(
            "Quiz created: program=%s, quiz=%s, questions=%d",
            program_id,
            quiz.id,
            len(quiz.questions),
        )

        return QuizAdminResponse(
            id=quiz.id,
            program_id=quiz.program_id,
            questions=[self._question_to_admin(q) for q in quiz.questions],
        )

    async def update_question(
        self,
        question_id: str,
        changes: UpdateQuestionRequest,
        requested_by_role: str,
    ) -> QuestionAdminResponse:
        """Apply a partial update to a question.

        The merged question is validated as a whole before saving.

        Raises:
            ForbiddenError: If the caller is not an admin.
            QuestionNotFoundError: If the question does not exist.
            InvalidQuestionError: If the result would be malformed.
        """
        self._require_admin(requested_by_role, "author quizzes")
        question = await self._get_question(question_id)

        text = changes.text if changes.text is not None else question.text
        options = changes.options if changes.options is not None else list(question.options)
        answer = changes.answer if changes.answer is not None else question.answer
        validate_question(text, options, answer)

        question.text = text.strip()
        question.options = list(options)
        question.answer = answer
        if changes.order is not None:
            question.order = changes.order

        await self.db.commit()
        logger.info("Question updated: question=%s", question_id)

        return self._question_to_admin(question)

    async def delete_question(self, question_id: str, requested_by_role: str) -> None:
        """Delete a question.

        Raises:
            ForbiddenError: If the caller is not an admin.
            QuestionNotFoundError: If the question does not exist.
        """
        self._require_admin(requested_by_role, "author quizzes")
        question = await self._get_question(question_id)

        await self.db.delete(question)
        await self.db.commit()
        logger.info("Question deleted: question=%s", question_id)

    # ========== Internals ==========

    async def _record_attempt(
        self,
        quiz: Quiz,
        learner_id: str,
        breakdown: list[QuestionBreakdown],
    ) -> QuizGradeResponse:
        total = len(breakdown)
        score = sum(1 for item in breakdown if item.is_correct)
        passed = score == total

        quiz_result = QuizResult(
            learner_id=learner_id,
            quiz_id=quiz.id,
            score=score,
            total=total,
            passed=passed,
        )
        self.db.add(quiz_result)
        await self.db.commit()

        logger.info(
            "Quiz graded: learner=%s, quiz=%s, score=%d/%d, passed=%s",
            learner_id,
            quiz.id,
            score,
            total,
            passed,
        )

        enrollment = None
        if passed:
            enrollment = await self._enrollments.recompute_progress(learner_id, quiz.program_id)

        return QuizGradeResponse(
            result_id=quiz_result.id,
            quiz_id=quiz.id,
            score=score,
            total=total,
            percentage=progress_percentage(score, total),
            passed=passed,
            breakdown=breakdown,
            enrollment=enrollment,
        )

    async def _get_quiz(self, quiz_id: str) -> Quiz:
        result = await self.db.execute(
            select(Quiz).options(selectinload(Quiz.questions)).where(Quiz.id == quiz_id)
        )
        quiz = result.scalar_one_or_none()
        if not quiz:
            raise QuizNotFoundError(f"Quiz {quiz_id} not found")
        return quiz

    async def _get_question(self, question_id: str) -> Question:
        result = await self.db.execute(select(Question).where(Question.id == question_id))
        question = result.scalar_one_or_none()
        if not question:
            raise QuestionNotFoundError(f"Question {question_id} not found")
        return question

    @staticmethod
    def _require_admin(role: str, action: str) -> None:
        if role != LearnerRole.ADMIN.value:
            raise ForbiddenError(f"Only admins can {action}")

    @staticmethod
    def _question_to_admin(question: Question) -> QuestionAdminResponse:
        return QuestionAdminResponse(
            id=question.id,
            quiz_id=question.quiz_id,
            text=question.text,
            options=list(question.options),
            answer=question.answer,
            order=question.order,
        )
