# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Admin dashboard statistics model."""

from src.models.common import CamelModel


class ProgramStatsResponse(CamelModel):
    """Aggregate figures for one program.

    Attributes:
        program_id: Program the figures describe.
        total_enrolled: Number of enrollments.
        completion_rate: Percentage of enrollments that are completed.
        avg_score: Average quiz attempt score as a percentage.
        active_today: Distinct learners with a quiz attempt in the last 24 hours.
    """

    program_id: str
    total_enrolled: int
    completion_rate: int
    avg_score: int
    active_today: int
