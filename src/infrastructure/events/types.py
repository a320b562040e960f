# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Centralized event type definitions for QuestLMS.

Adding a new event:
1. Add a constant to the appropriate class here
2. Publish it from the owning service; pattern subscribers pick it up
"""


class EventTypes:
    """All event types in QuestLMS organized by domain."""

    class Enrollment:
        """Enrollment state machine events."""

        CREATED = "enrollment.created"
        REMOVED = "enrollment.removed"
        PROGRESS_UPDATED = "enrollment.progress.updated"
        COMPLETED = "enrollment.completed"

    class Quiz:
        """Quiz grading events."""

        GRADED = "quiz.graded"
        AUTO_PASSED = "quiz.auto_passed"

    class Reward:
        """Reward ledger events."""

        CLAIMED = "reward.claimed"
        LEVEL_UP = "reward.level_up"

    class Discussion:
        """Discussion room events."""

        MESSAGE_POSTED = "discussion.message.posted"
        MESSAGE_LIKED = "discussion.message.liked"
        ROOM_CLEARED = "discussion.room.cleared"


class EventPatterns:
    """Wildcard patterns for subscribing to groups of events."""

    ALL = "*"
    ALL_ENROLLMENT = "enrollment.*"
    ALL_QUIZ = "quiz.*"
    ALL_REWARD = "reward.*"
    ALL_DISCUSSION = "discussion.*"
