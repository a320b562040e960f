# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Domain services layer for QuestLMS.

This package contains domain services that encapsulate business logic.
Each domain module provides services that orchestrate operations
across the database and the event bus.

Domains:
    auth: Access token validation for the identity provider's JWTs.
    progress: Completion ledger and program statistics.
    enrollment: Enrollment state machine (enroll, progress, completion).
    rewards: XP claims and level computation.
    quiz: Quiz grading and authoring.
    discussion: Program discussion messages and likes.
"""
