# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Reward domain package.

This package provides the reward ledger:
- One-shot XP claims for completed programs
- Level computation from XP
- Learner XP standing
"""

from src.domains.rewards.service import (
    EnrollmentNotCompletedError,
    RewardAlreadyClaimedError,
    RewardService,
    compute_level,
)

__all__ = [
    "RewardService",
    "compute_level",
    "EnrollmentNotCompletedError",
    "RewardAlreadyClaimedError",
]
