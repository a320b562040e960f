# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Enrollment request and response models."""

from datetime import datetime

from pydantic import Field

from src.models.common import CamelModel


class EnrollRequest(CamelModel):
    """Request to enroll the current learner in a program."""

    program_id: str = Field(min_length=1)


class ManualProgressRequest(CamelModel):
    """Administrative override of an enrollment's progress.

    Attributes:
        learner_id: Learner whose enrollment is overridden.
        program_id: Program of the enrollment.
        progress: New progress percentage.
        completed: New completion flag. Omitted means derive from progress.
    """

    learner_id: str = Field(min_length=1)
    program_id: str = Field(min_length=1)
    progress: int = Field(ge=0, le=100)
    completed: bool | None = None


class RemoveParticipantRequest(CamelModel):
    """Admin request to remove a learner from a program."""

    learner_id: str = Field(min_length=1)
    program_id: str = Field(min_length=1)


class ProgramSummary(CamelModel):
    """Program fields shown alongside an enrollment."""

    id: str
    title: str
    description: str | None = None
    reward_points: int


class EnrollmentResponse(CamelModel):
    """Enrollment state for one (learner, program) pair."""

    id: str
    learner_id: str
    program_id: str
    progress: int
    completed: bool
    enrolled_at: datetime
    completed_at: datetime | None = None
    xp_claimed: bool
    claimable: bool = False
    program: ProgramSummary | None = None


class EnrollmentListResponse(CamelModel):
    """List of enrollments."""

    items: list[EnrollmentResponse]
    total: int


class ParticipantResponse(CamelModel):
    """An enrollment together with the learner's identity, for admins."""

    enrollment: EnrollmentResponse
    name: str
    email: str
    avatar: str | None = None


class ParticipantListResponse(CamelModel):
    """Roster of a program."""

    items: list[ParticipantResponse]
    total: int
