"""QuestLMS Backend.

Gamified learning-management core: enrollment progress and completion,
XP rewards and levels, quiz grading, and real-time program discussions.

Copyright (C) 2025 Global Digital Labs (gdlabs.io)
SPDX-License-Identifier: LGPL-3.0-or-later
"""

__version__ = "1.0.0"
