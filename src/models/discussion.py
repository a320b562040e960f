# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Discussion room models."""

from datetime import datetime

from pydantic import Field

from src.models.common import CamelModel


class PostMessageRequest(CamelModel):
    """A new message for a program room."""

    program_id: str = Field(min_length=1)
    message: str


class DiscussionAuthor(CamelModel):
    """Public identity of a message author."""

    id: str
    name: str
    avatar: str | None = None


class DiscussionMessageResponse(CamelModel):
    """A persisted discussion message."""

    id: str
    program_id: str
    learner_id: str
    message: str
    likes: int
    created_at: datetime
    user: DiscussionAuthor | None = None


class DiscussionListResponse(CamelModel):
    """Messages of a room, oldest first."""

    items: list[DiscussionMessageResponse]
    total: int


class LikeResponse(CamelModel):
    """Like counter after an increment."""

    id: str
    likes: int


class ClearRoomResponse(CamelModel):
    """Result of clearing a room."""

    program_id: str
    deleted: int
