# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Episode and progress models."""

from datetime import datetime

from pydantic import Field

from src.models.common import CamelModel
from src.models.enrollment import EnrollmentResponse


class EpisodeResponse(CamelModel):
    """An episode with the current learner's completion mark."""

    id: str
    program_id: str
    title: str
    video_url: str | None = None
    duration: int | None = None
    order: int
    completed: bool = False


class EpisodeListResponse(CamelModel):
    """Ordered episodes of a program."""

    items: list[EpisodeResponse]
    total: int


class CompleteEpisodeRequest(CamelModel):
    """Request to mark an episode as watched."""

    episode_id: str = Field(min_length=1)


class EpisodeCompletionResponse(CamelModel):
    """Result of marking an episode complete.

    enrollment is None when the learner is not enrolled in the program;
    the mark is still stored.
    """

    episode_id: str
    completed: bool
    completed_at: datetime
    enrollment: EnrollmentResponse | None = None
