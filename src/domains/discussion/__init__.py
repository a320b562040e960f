# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Discussion domain package.

This package provides persisted program room messages:
- Room history
- Posting and liking messages
- Clearing a room (admin)
"""

from src.domains.discussion.service import (
    DiscussionService,
    EmptyMessageError,
    MessageNotFoundError,
    MessageTooLongError,
)

__all__ = [
    "DiscussionService",
    "MessageNotFoundError",
    "EmptyMessageError",
    "MessageTooLongError",
]
