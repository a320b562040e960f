# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Episode API endpoints.

- GET /?programId= - List a program's episodes with the learner's marks
- POST /complete - Mark an episode as watched
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import get_db, require_auth
from src.api.middleware.auth import CurrentUser
from src.domains.enrollment import EnrollmentService
from src.models.progress import (
    CompleteEpisodeRequest,
    EpisodeCompletionResponse,
    EpisodeListResponse,
)

router = APIRouter()


@router.get(
    "",
    response_model=EpisodeListResponse,
    summary="List episodes",
)
async def list_episodes(
    program_id: Annotated[str, Query(alias="programId", min_length=1)],
    current_user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
) -> EpisodeListResponse:
    """List a program's episodes in order."""
    items = await EnrollmentService(db).list_program_episodes(program_id, current_user.id)
    return EpisodeListResponse(items=items, total=len(items))


@router.post(
    "/complete",
    response_model=EpisodeCompletionResponse,
    summary="Complete episode",
    description="Mark an episode as watched and recompute the enrollment progress.",
)
async def complete_episode(
    data: CompleteEpisodeRequest,
    current_user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
) -> EpisodeCompletionResponse:
    return await EnrollmentService(db).mark_episode_complete(current_user.id, data.episode_id)
