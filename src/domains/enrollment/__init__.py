# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Enrollment domain package.

This package provides the enrollment state machine:
- Enrolling and unenrolling learners
- Progress recomputation from the completion ledger
- Episode completion marks
- Admin progress overrides and participant management
"""

from src.domains.enrollment.service import (
    EnrollmentService,
    EpisodeNotFoundError,
    InvalidProgressOverrideError,
    NotEnrolledError,
)

__all__ = [
    "EnrollmentService",
    "EpisodeNotFoundError",
    "InvalidProgressOverrideError",
    "NotEnrolledError",
]
