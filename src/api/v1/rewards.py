# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Reward API endpoints.

- POST /claim - Claim the XP reward of a completed program
- GET /me - Current XP, level and claimable programs
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import get_db, require_auth
from src.api.middleware.auth import CurrentUser
from src.domains.rewards import RewardService
from src.models.reward import ClaimRewardRequest, LearnerStatsResponse, RewardClaimResponse

router = APIRouter()


@router.post(
    "/claim",
    response_model=RewardClaimResponse,
    summary="Claim reward",
    description="Claim a completed program's XP. Each program pays out once.",
)
async def claim_reward(
    data: ClaimRewardRequest,
    current_user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
) -> RewardClaimResponse:
    return await RewardService(db).claim_reward(current_user.id, data.program_id)


@router.get(
    "/me",
    response_model=LearnerStatsResponse,
    summary="Get XP standing",
)
async def get_my_stats(
    current_user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
) -> LearnerStatsResponse:
    return await RewardService(db).get_learner_stats(current_user.id)
