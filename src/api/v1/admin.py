# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Admin dashboard API endpoints.

All endpoints require admin access.

- GET /stats?programId= - Program statistics
- GET /participants?programId= - Program roster
- DELETE /participants - Remove a learner from a program
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import get_db, require_admin
from src.api.middleware.auth import CurrentUser
from src.domains.enrollment import EnrollmentService
from src.domains.progress import ProgressStatsService
from src.models.enrollment import ParticipantListResponse, RemoveParticipantRequest
from src.models.stats import ProgramStatsResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "/stats",
    response_model=ProgramStatsResponse,
    summary="Program statistics",
    description="Enrollment count, completion rate, average quiz score and learners active today.",
)
async def get_program_stats(
    program_id: Annotated[str, Query(alias="programId", min_length=1)],
    current_user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> ProgramStatsResponse:
    return await ProgressStatsService(db).get_program_stats(program_id)


@router.get(
    "/participants",
    response_model=ParticipantListResponse,
    summary="List participants",
)
async def list_participants(
    program_id: Annotated[str, Query(alias="programId", min_length=1)],
    current_user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> ParticipantListResponse:
    items = await EnrollmentService(db).list_participants(program_id)
    return ParticipantListResponse(items=items, total=len(items))


@router.delete(
    "/participants",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove participant",
    description="Unenroll a learner, discarding their progress in the program.",
)
async def remove_participant(
    data: RemoveParticipantRequest,
    current_user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> Response:
    """Remove a learner from a program."""
    logger.info(
        "Participant removal by %s: learner=%s, program=%s",
        current_user.id,
        data.learner_id,
        data.program_id,
    )
    await EnrollmentService(db).unenroll(data.learner_id, data.program_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
