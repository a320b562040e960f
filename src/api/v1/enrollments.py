# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Enrollment API endpoints.

This module provides endpoints for a learner's program enrollments:
- POST / - Enroll in a program (idempotent)
- GET / - List own enrollments
- GET /{program_id} - Get own enrollment in a program
- DELETE /{program_id} - Unenroll, discarding progress
- PATCH /progress - Override a learner's progress (admin)
"""

import logging

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import get_db, require_admin, require_auth
from src.api.middleware.auth import CurrentUser
from src.domains.enrollment import EnrollmentService
from src.models.enrollment import (
    EnrollmentListResponse,
    EnrollmentResponse,
    EnrollRequest,
    ManualProgressRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_service(db: AsyncSession) -> EnrollmentService:
    return EnrollmentService(db=db)


@router.post(
    "",
    response_model=EnrollmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Enroll in program",
    description="Enroll the current learner. Enrolling twice returns the existing enrollment.",
)
async def enroll(
    data: EnrollRequest,
    current_user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
) -> EnrollmentResponse:
    """Enroll the current learner in a program."""
    return await _get_service(db).enroll(current_user.id, data.program_id)


@router.get(
    "",
    response_model=EnrollmentListResponse,
    summary="List enrollments",
)
async def list_enrollments(
    current_user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
) -> EnrollmentListResponse:
    """List the current learner's enrollments, most recent first."""
    items = await _get_service(db).list_enrollments(current_user.id)
    return EnrollmentListResponse(items=items, total=len(items))


@router.patch(
    "/progress",
    response_model=EnrollmentResponse,
    summary="Override progress",
    description="Set a learner's progress directly. Requires admin access.",
)
async def set_progress(
    data: ManualProgressRequest,
    current_user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> EnrollmentResponse:
    """Override a learner's progress, bypassing the completion ledger."""
    logger.info(
        "Progress override by %s: learner=%s, program=%s, progress=%d",
        current_user.id,
        data.learner_id,
        data.program_id,
        data.progress,
    )
    return await _get_service(db).set_manual_progress(
        learner_id=data.learner_id,
        program_id=data.program_id,
        progress=data.progress,
        completed=data.completed,
        requested_by_role=current_user.role,
    )


@router.get(
    "/{program_id}",
    response_model=EnrollmentResponse,
    summary="Get enrollment",
)
async def get_enrollment(
    program_id: str,
    current_user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
) -> EnrollmentResponse:
    """Get the current learner's enrollment in a program."""
    return await _get_service(db).get_enrollment(current_user.id, program_id)


@router.delete(
    "/{program_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Unenroll",
    description="Leave a program. Episode marks and quiz results are discarded.",
)
async def unenroll(
    program_id: str,
    current_user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
) -> Response:
    """Unenroll the current learner from a program."""
    await _get_service(db).unenroll(current_user.id, program_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
