# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Discussion message model."""

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.infrastructure.database.models.base import Base, UUIDPrimaryKeyMixin
from src.infrastructure.database.models.learner import Learner
from src.utils.datetime import utc_now


class DiscussionMessage(UUIDPrimaryKeyMixin, Base):
    """A chat message posted in a program's discussion room."""

    __tablename__ = "discussion_messages"
    __table_args__ = (
        Index("ix_discussion_messages_program_created", "program_id", "created_at"),
        CheckConstraint("likes >= 0", name="ck_discussion_messages_likes_non_negative"),
    )

    program_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("programs.id", ondelete="CASCADE"), nullable=False
    )
    learner_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("learners.id", ondelete="CASCADE"), nullable=False
    )
    message: Mapped[str] = mapped_column(Text, nullable=False)
    likes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )

    learner: Mapped[Learner] = relationship(lazy="joined")
