# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Quiz API endpoints.

Learner endpoints:
- GET /?programId= - Get a program's quiz without answers
- POST /submit - Submit answers for grading
- GET /{quiz_id}/results - Own attempt history

Admin endpoints:
- POST /{quiz_id}/auto-pass - Record a perfect attempt for a learner
- POST /manage - Create a quiz with questions
- PATCH /manage/questions/{question_id} - Update a question
- DELETE /manage/questions/{question_id} - Delete a question
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import get_db, require_admin, require_auth
from src.api.middleware.auth import CurrentUser
from src.api.middleware.rate_limit import RATE_LIMIT_QUIZ_SUBMIT, limiter
from src.domains.quiz import QuizService
from src.models.quiz import (
    CreateQuizRequest,
    QuestionAdminResponse,
    QuizAdminResponse,
    QuizGradeResponse,
    QuizPublicResponse,
    QuizResultListResponse,
    SubmitQuizRequest,
    UpdateQuestionRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_service(db: AsyncSession) -> QuizService:
    return QuizService(db=db)


@router.get(
    "",
    response_model=QuizPublicResponse,
    summary="Get program quiz",
    description="Get the quiz of a program. Correct answers are not included.",
)
async def get_quiz(
    program_id: Annotated[str, Query(alias="programId", min_length=1)],
    current_user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
) -> QuizPublicResponse:
    return await _get_service(db).get_quiz_for_program(program_id)


@router.post(
    "/submit",
    response_model=QuizGradeResponse,
    summary="Submit quiz",
    description="Grade an attempt. Full marks pass the quiz and update progress.",
)
@limiter.limit(RATE_LIMIT_QUIZ_SUBMIT)
async def submit_quiz(
    request: Request,
    data: SubmitQuizRequest,
    current_user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
) -> QuizGradeResponse:
    """Grade the current learner's answers."""
    return await _get_service(db).grade(data.quiz_id, current_user.id, data.answers)


@router.get(
    "/{quiz_id}/results",
    response_model=QuizResultListResponse,
    summary="List attempts",
)
async def list_results(
    quiz_id: str,
    current_user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
) -> QuizResultListResponse:
    items = await _get_service(db).list_results(current_user.id, quiz_id)
    return QuizResultListResponse(items=items, total=len(items))


@router.post(
    "/{quiz_id}/auto-pass",
    response_model=QuizGradeResponse,
    summary="Auto-pass quiz",
    description="Record a perfect attempt. Requires admin access.",
)
async def auto_pass(
    quiz_id: str,
    learner_id: Annotated[str | None, Query(alias="learnerId")] = None,
    current_user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> QuizGradeResponse:
    """Record a perfect attempt for a learner, or for the admin by default."""
    target = learner_id or current_user.id
    logger.info("Auto-pass by %s: quiz=%s, learner=%s", current_user.id, quiz_id, target)
    return await _get_service(db).auto_pass(quiz_id, target, requested_by_role=current_user.role)


@router.post(
    "/manage",
    response_model=QuizAdminResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create quiz",
)
async def create_quiz(
    data: CreateQuizRequest,
    current_user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> QuizAdminResponse:
    return await _get_service(db).create_quiz(
        data.program_id,
        data.questions,
        requested_by_role=current_user.role,
    )


@router.patch(
    "/manage/questions/{question_id}",
    response_model=QuestionAdminResponse,
    summary="Update question",
)
async def update_question(
    question_id: str,
    data: UpdateQuestionRequest,
    current_user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> QuestionAdminResponse:
    return await _get_service(db).update_question(
        question_id,
        data,
        requested_by_role=current_user.role,
    )


@router.delete(
    "/manage/questions/{question_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete question",
)
async def delete_question(
    question_id: str,
    current_user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> Response:
    await _get_service(db).delete_question(question_id, requested_by_role=current_user.role)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
