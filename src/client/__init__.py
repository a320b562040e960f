# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Discussion client.

Provides the REST client, the reconnecting live channel and the room
view that combines them with an optimistic like and a polling fallback.
"""

from src.client.api import DiscussionAPI, DiscussionAPIError
from src.client.live import ChannelNotConnectedError, LiveChannel
from src.client.policy import ConnectionMode, ConnectionPolicy
from src.client.room import (
    DiscussionRoom,
    InvalidLikeTransitionError,
    LikeState,
    PendingLike,
)

__all__ = [
    "ChannelNotConnectedError",
    "ConnectionMode",
    "ConnectionPolicy",
    "DiscussionAPI",
    "DiscussionAPIError",
    "DiscussionRoom",
    "InvalidLikeTransitionError",
    "LikeState",
    "LiveChannel",
    "PendingLike",
]
