# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""API v1 routes package.

This package contains all v1 API endpoint definitions.
Each module provides a FastAPI router for a specific domain.

Modules:
    enrollments: Enrollment state machine endpoints.
    episodes: Episode listing and completion.
    quiz: Quiz taking, grading and authoring.
    rewards: XP claims and standing.
    discussion: Program discussion rooms (REST and WebSocket).
    admin: Admin dashboard (statistics, participants).
"""

from fastapi import APIRouter

from src.api.v1 import admin, discussion, enrollments, episodes, quiz, rewards

# Create the main v1 router
router = APIRouter(prefix="/api/v1")

# Include domain routers
router.include_router(enrollments.router, prefix="/enrollments", tags=["Enrollments"])
router.include_router(episodes.router, prefix="/episodes", tags=["Episodes"])
router.include_router(quiz.router, prefix="/quiz", tags=["Quiz"])
router.include_router(rewards.router, prefix="/rewards", tags=["Rewards"])
router.include_router(discussion.router, prefix="/discussion", tags=["Discussion"])
router.include_router(admin.router, prefix="/admin", tags=["Admin"])

__all__ = ["router"]
