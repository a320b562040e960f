# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Reward ledger models."""

from pydantic import Field

from src.models.common import CamelModel


class ClaimRewardRequest(CamelModel):
    """Claim the XP reward of a completed program."""

    program_id: str = Field(min_length=1)


class RewardClaimResponse(CamelModel):
    """Outcome of a successful claim.

    Attributes:
        program_id: Program whose reward was claimed.
        reward_points: XP granted by this claim.
        xp_points: Learner XP total after the claim.
        level: Learner level after the claim.
        previous_level: Learner level before the claim.
        leveled_up: Whether the claim crossed a level boundary.
    """

    program_id: str
    reward_points: int
    xp_points: int
    level: int
    previous_level: int
    leveled_up: bool


class LearnerStatsResponse(CamelModel):
    """XP and level overview for the current learner."""

    learner_id: str
    xp_points: int
    level: int
    next_level_xp: int
    xp_to_next_level: int
    completed_programs: int
    claimable_programs: int
