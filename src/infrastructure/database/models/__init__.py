# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""SQLAlchemy models for QuestLMS.

Importing this package registers every table on Base.metadata, which is
what Alembic autogenerate and the test fixtures rely on.
"""

from src.infrastructure.database.models.base import (
    Base,
    TimestampMixin,
    UUIDPrimaryKeyMixin,
    generate_uuid,
)
from src.infrastructure.database.models.discussion import DiscussionMessage
from src.infrastructure.database.models.learner import Learner
from src.infrastructure.database.models.learning import (
    Enrollment,
    Episode,
    EpisodeProgress,
    Program,
    Question,
    Quiz,
    QuizResult,
)

__all__ = [
    "Base",
    "TimestampMixin",
    "UUIDPrimaryKeyMixin",
    "generate_uuid",
    "Learner",
    "Program",
    "Episode",
    "EpisodeProgress",
    "Quiz",
    "Question",
    "QuizResult",
    "Enrollment",
    "DiscussionMessage",
]
